"""
Model access for test generation
================================

- Circuit Breaker: fast-fails while the model endpoint is down
- Retry: exponential backoff for transient failures
- Model Client: prompt, call, parse and validate a TestSpecification
- Usage: cost estimation and daily caps
"""

from .circuit_breaker import CircuitBreaker, CircuitState, Closed, Open, HalfOpen
from .retry import RetryPolicy, retry_async
from .model_client import (
    ResilientModelClient, ClientContext, ApiCallLogEntry,
    ChatCompletion, OpenAIChatTransport
)
from .usage import UsageTracker, DailyUsage, calculate_cost

__all__ = [
    'CircuitBreaker', 'CircuitState', 'Closed', 'Open', 'HalfOpen',
    'RetryPolicy', 'retry_async',
    'ResilientModelClient', 'ClientContext', 'ApiCallLogEntry',
    'ChatCompletion', 'OpenAIChatTransport',
    'UsageTracker', 'DailyUsage', 'calculate_cost'
]
