"""
Circuit Breaker
===============

Stops calling a failing model endpoint for a cooldown period, then lets a
limited number of trial calls through before resuming normal traffic.

The state is a tagged union so that illegal combinations (an open breaker
with a trial counter, a closed breaker with an open timestamp) cannot be
represented:

    Closed(consecutive_failures) -> Open(since) -> HalfOpen(trials_used)
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from ..errors import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Reportable name of the current state"""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class Closed:
    consecutive_failures: int = 0


@dataclass(frozen=True)
class Open:
    since: float  # clock() reading when the breaker opened


@dataclass(frozen=True)
class HalfOpen:
    trials_used: int = 0
    trial_successes: int = 0


BreakerState = Union[Closed, Open, HalfOpen]


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Callers bracket every remote call with before_call() and then either
    record_success() or record_failure(). The clock is injectable and must
    return seconds.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout_ms: int = 60000,
        half_open_max_attempts: int = 1,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout_ms = reset_timeout_ms
        self.half_open_max_attempts = half_open_max_attempts
        self.clock = clock
        self.state: BreakerState = Closed()

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.monotonic) -> "CircuitBreaker":
        return cls(
            failure_threshold=settings.failure_threshold,
            reset_timeout_ms=settings.reset_timeout_ms,
            half_open_max_attempts=settings.half_open_max_attempts,
            clock=clock
        )

    def get_state(self) -> CircuitState:
        if isinstance(self.state, Open):
            return CircuitState.OPEN
        if isinstance(self.state, HalfOpen):
            return CircuitState.HALF_OPEN
        return CircuitState.CLOSED

    def _elapsed_ms(self, since: float) -> float:
        return (self.clock() - since) * 1000

    def before_call(self):
        """Admit a call or raise CircuitOpenError"""
        state = self.state

        if isinstance(state, Open):
            elapsed = self._elapsed_ms(state.since)
            if elapsed < self.reset_timeout_ms:
                raise CircuitOpenError(retry_after_ms=int(self.reset_timeout_ms - elapsed))
            logger.info("[CIRCUIT] Reset timeout elapsed, moving to HALF_OPEN")
            state = HalfOpen()

        if isinstance(state, HalfOpen):
            if state.trials_used >= self.half_open_max_attempts:
                self.state = state
                raise CircuitOpenError(
                    "Circuit breaker is HALF_OPEN and its trial budget is in use."
                )
            self.state = HalfOpen(
                trials_used=state.trials_used + 1,
                trial_successes=state.trial_successes
            )

    def record_success(self):
        state = self.state
        if isinstance(state, HalfOpen):
            successes = state.trial_successes + 1
            if successes >= self.half_open_max_attempts:
                logger.info("[CIRCUIT] Trial call succeeded, circuit CLOSED")
                self.state = Closed()
            else:
                self.state = HalfOpen(trials_used=state.trials_used, trial_successes=successes)
        else:
            self.state = Closed()

    def record_failure(self):
        state = self.state
        if isinstance(state, HalfOpen):
            logger.warning("[CIRCUIT] Trial call failed, circuit re-OPENED")
            self.state = Open(since=self.clock())
            return

        if isinstance(state, Open):
            # a call admitted before the breaker opened has now failed too
            self.state = Open(since=self.clock())
            return

        failures = state.consecutive_failures + 1
        if failures >= self.failure_threshold:
            logger.warning(
                f"[CIRCUIT] {failures} consecutive failures, circuit OPEN "
                f"for {self.reset_timeout_ms}ms"
            )
            self.state = Open(since=self.clock())
        else:
            self.state = Closed(consecutive_failures=failures)

    def reset(self):
        """Force the breaker back to CLOSED with counters zeroed"""
        self.state = Closed()
