"""
Unit tests for usage tracking and cost estimation.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from testgen.brain.usage import UsageTracker, calculate_cost
from testgen.config import AIConfig, UsageLimit
from testgen.errors import UsageLimitExceededError


class FakeDay:
    def __init__(self, day: str = "2024-01-01"):
        self.day = day

    def __call__(self) -> str:
        return self.day


@pytest.fixture
def config():
    return AIConfig(api_key="test-api-key")


class TestCalculateCost:
    """Test cost estimation."""

    def test_known_model(self, config):
        cost = calculate_cost(config, "gpt-4-turbo-preview", 1000, 1000)

        assert cost == pytest.approx(0.04)

    def test_cheaper_model(self, config):
        cost = calculate_cost(config, "gpt-3.5-turbo", 2000, 1000)

        assert cost == pytest.approx(0.0025)

    def test_unknown_model_uses_default_pricing(self, config):
        """Test models without pricing are billed as the default model."""
        assert calculate_cost(config, "custom-model", 1000, 0) == pytest.approx(0.01)


class TestUsageTracker:
    """Test daily counters and caps."""

    def test_record_accumulates(self, config):
        tracker = UsageTracker(config, today=FakeDay())

        tracker.record("gpt-4-turbo-preview", 1000, 500, user_id="u1", project_id="p1")
        tracker.record("gpt-4-turbo-preview", 1000, 500, user_id="u1")

        user = tracker.get_usage(UsageTracker.USER, "u1")
        project = tracker.get_usage(UsageTracker.PROJECT, "p1")
        assert user.requests == 2
        assert user.tokens == 3000
        assert user.cost == pytest.approx(0.05)
        assert project.requests == 1

    def test_request_cap(self, config):
        config.limits.per_user = UsageLimit(daily_requests=1, daily_tokens=100000, daily_cost=10.0)
        tracker = UsageTracker(config, today=FakeDay())
        tracker.record("gpt-4-turbo-preview", 10, 10, user_id="u1")

        with pytest.raises(UsageLimitExceededError) as exc_info:
            tracker.check_limits(user_id="u1")

        assert exc_info.value.limit_name == "request"
        assert exc_info.value.scope == "user"

    def test_token_cap_per_project(self, config):
        config.limits.per_project = UsageLimit(daily_requests=500, daily_tokens=100, daily_cost=50.0)
        tracker = UsageTracker(config, today=FakeDay())
        tracker.record("gpt-4-turbo-preview", 80, 40, project_id="p1")

        with pytest.raises(UsageLimitExceededError) as exc_info:
            tracker.check_limits(project_id="p1")

        assert exc_info.value.limit_name == "token"

    def test_other_keys_unaffected(self, config):
        config.limits.per_user = UsageLimit(daily_requests=1, daily_tokens=100000, daily_cost=10.0)
        tracker = UsageTracker(config, today=FakeDay())
        tracker.record("gpt-4-turbo-preview", 10, 10, user_id="u1")

        tracker.check_limits(user_id="u2")

    def test_counters_roll_over(self, config):
        """Test a new day starts from zero."""
        config.limits.per_user = UsageLimit(daily_requests=1, daily_tokens=100000, daily_cost=10.0)
        day = FakeDay("2024-01-01")
        tracker = UsageTracker(config, today=day)
        tracker.record("gpt-4-turbo-preview", 10, 10, user_id="u1")

        day.day = "2024-01-02"

        tracker.check_limits(user_id="u1")
        assert tracker.get_usage(UsageTracker.USER, "u1").requests == 0
