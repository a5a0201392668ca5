"""
Error taxonomy for the AI test generation pipeline.

Transport and timeout failures are retried and only surface as
MaxRetriesExceededError. Structural problems with model output surface
immediately as ValidationError.
"""

from typing import List, Optional


class TestGenerationError(Exception):
    """Base class for all pipeline errors"""
    __test__ = False


class ConfigurationError(TestGenerationError):
    """Required configuration (e.g. the API key) is missing or invalid"""


class CircuitOpenError(TestGenerationError):
    """Raised when the circuit breaker rejects a call without trying it"""

    def __init__(self, message: str = "Circuit breaker is OPEN. Service temporarily unavailable.",
                 retry_after_ms: Optional[int] = None):
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class MaxRetriesExceededError(TestGenerationError):
    """Transient failures used up the whole retry budget"""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        detail = f" {last_error}" if last_error else ""
        super().__init__(
            f"AI service temporarily unavailable after {attempts} attempts.{detail}"
        )
        self.attempts = attempts
        self.last_error = last_error


class ModelServiceError(TestGenerationError):
    """The completion endpoint answered with a non-success status"""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"API error: {status_code}{' ' + detail if detail else ''}")
        self.status_code = status_code


class ValidationError(TestGenerationError):
    """Model output failed the structural contract. Never retried."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = issues or []


class UsageLimitExceededError(TestGenerationError):
    """A per-user or per-project daily cap has been reached"""

    def __init__(self, scope: str, key: str, limit_name: str, used: float, limit: float):
        super().__init__(
            f"Daily {limit_name} limit reached for {scope} '{key}' ({used}/{limit})"
        )
        self.scope = scope
        self.key = key
        self.limit_name = limit_name
        self.used = used
        self.limit = limit
