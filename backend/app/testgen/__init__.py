"""
AI Test Generation Pipeline

Turns automated page analysis into executable UI test cases:
- ResilientModelClient asks an LLM for an abstract test plan, behind a
  circuit breaker, retry policy and structural validation
- SelectorGenerator binds element descriptions to robust, unique selectors
- TestCaseGenerator assembles and persists the concrete test case
"""

from .brain.model_client import ResilientModelClient
from .brain.circuit_breaker import CircuitState
from .core.selector_generator import SelectorGenerator
from .core.test_generator import TestCaseGenerator
from .core.test_validator import TestValidator
from .config import AIConfig, get_ai_config
from .errors import (
    TestGenerationError,
    ConfigurationError,
    CircuitOpenError,
    MaxRetriesExceededError,
    ModelServiceError,
    ValidationError,
    UsageLimitExceededError
)
from .storage import JsonTestCaseStore

__all__ = [
    "ResilientModelClient",
    "CircuitState",
    "SelectorGenerator",
    "TestCaseGenerator",
    "TestValidator",
    "AIConfig",
    "get_ai_config",
    "TestGenerationError",
    "ConfigurationError",
    "CircuitOpenError",
    "MaxRetriesExceededError",
    "ModelServiceError",
    "ValidationError",
    "UsageLimitExceededError",
    "JsonTestCaseStore"
]

__version__ = "1.0.0"
