"""
Unit tests for CircuitBreaker.

Tests the CLOSED -> OPEN -> HALF_OPEN -> CLOSED lifecycle with a manual clock.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from testgen.brain.circuit_breaker import CircuitBreaker, CircuitState, Closed, HalfOpen, Open
from testgen.config import CircuitBreakerSettings
from testgen.errors import CircuitOpenError


@pytest.fixture
def breaker(fake_clock):
    return CircuitBreaker(
        failure_threshold=3,
        reset_timeout_ms=60000,
        half_open_max_attempts=1,
        clock=fake_clock
    )


def trip(breaker: CircuitBreaker, times: int):
    for _ in range(times):
        breaker.before_call()
        breaker.record_failure()


class TestClosedState:
    """Test behaviour while the breaker is closed."""

    def test_starts_closed(self, breaker):
        """Test a new breaker admits calls."""
        assert breaker.get_state() == CircuitState.CLOSED
        breaker.before_call()

    def test_failures_below_threshold_stay_closed(self, breaker):
        """Test failures under the threshold keep the breaker closed."""
        trip(breaker, 2)

        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.state == Closed(consecutive_failures=2)

    def test_success_resets_failure_count(self, breaker):
        """Test a success zeroes the consecutive failure counter."""
        trip(breaker, 2)
        breaker.before_call()
        breaker.record_success()
        trip(breaker, 2)

        assert breaker.get_state() == CircuitState.CLOSED

    def test_from_settings(self, fake_clock):
        """Test construction from config settings."""
        settings = CircuitBreakerSettings(failure_threshold=7, reset_timeout_ms=5000, half_open_max_attempts=2)

        breaker = CircuitBreaker.from_settings(settings, clock=fake_clock)

        assert breaker.failure_threshold == 7
        assert breaker.reset_timeout_ms == 5000
        assert breaker.half_open_max_attempts == 2


class TestOpenState:
    """Test behaviour while the breaker is open."""

    def test_opens_at_threshold(self, breaker):
        """Test the breaker opens after N consecutive failures."""
        trip(breaker, 3)

        assert breaker.get_state() == CircuitState.OPEN

    def test_rejects_calls_while_open(self, breaker, fake_clock):
        """Test calls fail fast before the reset timeout."""
        trip(breaker, 3)
        fake_clock.advance(10)

        with pytest.raises(CircuitOpenError) as exc_info:
            breaker.before_call()

        assert "Circuit breaker is OPEN" in str(exc_info.value)
        assert exc_info.value.retry_after_ms == 50000
        assert breaker.get_state() == CircuitState.OPEN

    def test_moves_to_half_open_after_timeout(self, breaker, fake_clock):
        """Test the first call after the timeout is a trial."""
        trip(breaker, 3)
        fake_clock.advance(60)

        breaker.before_call()

        assert breaker.get_state() == CircuitState.HALF_OPEN
        assert breaker.state == HalfOpen(trials_used=1)

    def test_late_failure_restarts_timer(self, breaker, fake_clock):
        """Test a failure recorded while open restarts the cooldown."""
        trip(breaker, 3)
        fake_clock.advance(30)

        breaker.record_failure()

        assert breaker.state == Open(since=fake_clock())


class TestHalfOpenState:
    """Test trial calls after the cooldown."""

    def test_trial_success_closes(self, breaker, fake_clock):
        """Test a successful trial closes the breaker."""
        trip(breaker, 3)
        fake_clock.advance(61)

        breaker.before_call()
        breaker.record_success()

        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.state == Closed()

    def test_trial_failure_reopens(self, breaker, fake_clock):
        """Test a failed trial re-opens with a fresh timer."""
        trip(breaker, 3)
        fake_clock.advance(61)

        breaker.before_call()
        breaker.record_failure()

        assert breaker.get_state() == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            breaker.before_call()

    def test_trial_budget_exhausted(self, breaker, fake_clock):
        """Test extra calls are rejected while the trial is in flight."""
        trip(breaker, 3)
        fake_clock.advance(61)
        breaker.before_call()

        with pytest.raises(CircuitOpenError):
            breaker.before_call()

        assert breaker.get_state() == CircuitState.HALF_OPEN

    def test_multiple_trials_required(self, fake_clock):
        """Test the breaker closes only after every trial succeeds."""
        breaker = CircuitBreaker(
            failure_threshold=1, reset_timeout_ms=1000, half_open_max_attempts=2, clock=fake_clock
        )
        trip(breaker, 1)
        fake_clock.advance(2)

        breaker.before_call()
        breaker.record_success()
        assert breaker.get_state() == CircuitState.HALF_OPEN

        breaker.before_call()
        breaker.record_success()
        assert breaker.get_state() == CircuitState.CLOSED


class TestReset:
    """Test forced reset."""

    def test_reset_from_open(self, breaker):
        """Test reset closes an open breaker."""
        trip(breaker, 3)

        breaker.reset()

        assert breaker.get_state() == CircuitState.CLOSED
        breaker.before_call()

    def test_reset_from_half_open(self, breaker, fake_clock):
        """Test reset clears trial counters."""
        trip(breaker, 3)
        fake_clock.advance(61)
        breaker.before_call()

        breaker.reset()

        assert breaker.state == Closed()
