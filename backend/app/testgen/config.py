"""
OpenAI configuration for AI test generation.

Static defaults live in dataclasses; a handful of values can be
overridden from the environment (loaded from backend/.env by main.py).
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import ConfigurationError


@dataclass
class ModelSelection:
    default: str = "gpt-4-turbo-preview"
    fallback: str = "gpt-3.5-turbo"
    analysis: str = "gpt-4-turbo-preview"   # complex web page analysis
    generation: str = "gpt-4-turbo-preview"  # test case generation


@dataclass
class ModelParameters:
    temperature: float = 0.3  # low for deterministic output
    max_tokens: int = 4000
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0


@dataclass
class RetrySettings:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 4000
    backoff_multiplier: float = 2


@dataclass
class CircuitBreakerSettings:
    failure_threshold: int = 5      # consecutive failures before opening
    reset_timeout_ms: int = 60000   # time before a half-open trial
    half_open_max_attempts: int = 1


@dataclass
class RateLimitSettings:
    requests_per_minute: int = 60
    tokens_per_minute: int = 90000


@dataclass
class TimeoutSettings:
    request_timeout_ms: int = 30000
    analysis_timeout_ms: int = 45000
    generation_timeout_ms: int = 30000


@dataclass
class ModelPricing:
    """USD per 1K tokens"""
    prompt: float
    completion: float


def _default_pricing() -> Dict[str, ModelPricing]:
    return {
        "gpt-4-turbo-preview": ModelPricing(prompt=0.01, completion=0.03),
        "gpt-3.5-turbo": ModelPricing(prompt=0.0005, completion=0.0015),
    }


@dataclass
class UsageLimit:
    daily_requests: int
    daily_tokens: int
    daily_cost: float


@dataclass
class UsageLimits:
    per_user: UsageLimit = field(
        default_factory=lambda: UsageLimit(daily_requests=100, daily_tokens=100000, daily_cost=10.0)
    )
    per_project: UsageLimit = field(
        default_factory=lambda: UsageLimit(daily_requests=500, daily_tokens=500000, daily_cost=50.0)
    )


@dataclass
class PromptSettings:
    system_role: str = (
        "You are an expert QA engineer specializing in web application testing. "
        "Your task is to analyze web pages and generate comprehensive, "
        "maintainable test cases."
    )
    max_elements: int = 50  # keeps the prompt inside the context window


@dataclass
class AIConfig:
    """Complete configuration for the model client"""
    api_key: Optional[str] = None
    organization: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    models: ModelSelection = field(default_factory=ModelSelection)
    parameters: ModelParameters = field(default_factory=ModelParameters)
    retry: RetrySettings = field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = field(default_factory=CircuitBreakerSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    timeout: TimeoutSettings = field(default_factory=TimeoutSettings)
    pricing: Dict[str, ModelPricing] = field(default_factory=_default_pricing)
    limits: UsageLimits = field(default_factory=UsageLimits)
    prompts: PromptSettings = field(default_factory=PromptSettings)

    @classmethod
    def from_env(cls) -> "AIConfig":
        """Build a config, applying environment overrides"""
        config = cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            organization=os.getenv("OPENAI_ORGANIZATION") or None,
        )
        if os.getenv("OPENAI_BASE_URL"):
            config.base_url = os.getenv("OPENAI_BASE_URL").rstrip("/")
        if os.getenv("AI_MODEL_GENERATION"):
            config.models.generation = os.getenv("AI_MODEL_GENERATION")
        if os.getenv("AI_MODEL_ANALYSIS"):
            config.models.analysis = os.getenv("AI_MODEL_ANALYSIS")
        if os.getenv("AI_RETRY_MAX_ATTEMPTS"):
            config.retry.max_attempts = int(os.getenv("AI_RETRY_MAX_ATTEMPTS"))
        if os.getenv("AI_CIRCUIT_FAILURE_THRESHOLD"):
            config.circuit_breaker.failure_threshold = int(os.getenv("AI_CIRCUIT_FAILURE_THRESHOLD"))
        return config

    def get_api_key(self) -> str:
        """Return the API key or raise ConfigurationError"""
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
        return self.api_key

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def get_model_for_operation(self, operation: str) -> str:
        if operation == "analysis":
            return self.models.analysis
        if operation == "generation":
            return self.models.generation
        return self.models.default

    def is_valid_model(self, model: str) -> bool:
        return model in (
            self.models.default,
            self.models.fallback,
            self.models.analysis,
            self.models.generation,
        )

    def get_timeout_ms(self, operation: str) -> int:
        if operation == "analysis":
            return self.timeout.analysis_timeout_ms
        if operation == "generation":
            return self.timeout.generation_timeout_ms
        return self.timeout.request_timeout_ms


_config: Optional[AIConfig] = None


def get_ai_config() -> AIConfig:
    """Get the process-wide config, built from the environment on first use"""
    global _config
    if _config is None:
        _config = AIConfig.from_env()
    return _config
