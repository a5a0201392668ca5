"""
Retry with exponential backoff.

The sleep function is injectable so tests can run the loop without
waiting.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ..errors import MaxRetriesExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 4000
    backoff_multiplier: float = 2

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay_ms=settings.initial_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            backoff_multiplier=settings.backoff_multiplier
        )

    def delay_for(self, attempt: int) -> int:
        """Delay in ms after the given (1-based) failed attempt"""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return int(min(delay, self.max_delay_ms))


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    no_retry: Tuple[Type[BaseException], ...] = (),
    label: str = "operation"
) -> T:
    """
    Run operation(attempt) until it succeeds or the policy is exhausted.

    Exceptions listed in no_retry propagate immediately. Anything else is
    retried; once max_attempts is used up MaxRetriesExceededError is raised
    carrying the last error.
    """
    last_error: Optional[Exception] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation(attempt)
        except no_retry:
            raise
        except Exception as e:
            last_error = e
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"[RETRY] {label} attempt {attempt}/{policy.max_attempts} failed: {e}. "
                    f"Retrying in {delay}ms..."
                )
                await sleep(delay / 1000)

    logger.error(f"[RETRY] {label} failed after {policy.max_attempts} attempts: {last_error}")
    raise MaxRetriesExceededError(policy.max_attempts, last_error)
