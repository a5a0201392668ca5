"""
Usage tracking for model calls.

Estimates cost from the pricing table and enforces the daily per-user and
per-project request/token/cost caps.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from ..config import AIConfig, UsageLimit
from ..errors import UsageLimitExceededError

logger = logging.getLogger(__name__)


@dataclass
class DailyUsage:
    """Usage counters for one scope key on one day"""
    day: str = ""
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


def calculate_cost(config: AIConfig, model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimated USD cost; unknown models use the default model's pricing"""
    pricing = config.pricing.get(model) or config.pricing[config.models.default]
    return (
        (prompt_tokens / 1000) * pricing.prompt +
        (completion_tokens / 1000) * pricing.completion
    )


class UsageTracker:
    """In-memory daily usage counters keyed by (scope, key)"""

    USER = "user"
    PROJECT = "project"

    def __init__(self, config: AIConfig, today: Callable[[], str] = lambda: date.today().isoformat()):
        self.config = config
        self.today = today
        self._usage: Dict[Tuple[str, str], DailyUsage] = {}

    def _counters(self, scope: str, key: str) -> DailyUsage:
        today = self.today()
        usage = self._usage.get((scope, key))
        if usage is None or usage.day != today:
            # new day, counters roll over
            usage = DailyUsage(day=today)
            self._usage[(scope, key)] = usage
        return usage

    def _limit_for(self, scope: str) -> UsageLimit:
        if scope == self.USER:
            return self.config.limits.per_user
        return self.config.limits.per_project

    def _check(self, scope: str, key: str):
        usage = self._counters(scope, key)
        limit = self._limit_for(scope)

        if usage.requests >= limit.daily_requests:
            raise UsageLimitExceededError(scope, key, "request", usage.requests, limit.daily_requests)
        if usage.tokens >= limit.daily_tokens:
            raise UsageLimitExceededError(scope, key, "token", usage.tokens, limit.daily_tokens)
        if usage.cost >= limit.daily_cost:
            raise UsageLimitExceededError(scope, key, "cost", round(usage.cost, 4), limit.daily_cost)

    def check_limits(self, user_id: Optional[str] = None, project_id: Optional[str] = None):
        """Raise UsageLimitExceededError if either scope has reached a cap"""
        if user_id:
            self._check(self.USER, user_id)
        if project_id:
            self._check(self.PROJECT, project_id)

    def record(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None
    ) -> float:
        """Record one successful call and return its estimated cost"""
        cost = calculate_cost(self.config, model, prompt_tokens, completion_tokens)
        tokens = prompt_tokens + completion_tokens

        for scope, key in ((self.USER, user_id), (self.PROJECT, project_id)):
            if not key:
                continue
            usage = self._counters(scope, key)
            usage.requests += 1
            usage.tokens += tokens
            usage.cost += cost

            limit = self._limit_for(scope)
            if usage.cost > limit.daily_cost * 0.8:
                logger.warning(
                    f"[USAGE] {scope} '{key}' has used ${usage.cost:.2f} "
                    f"of ${limit.daily_cost:.2f} today"
                )

        return cost

    def get_usage(self, scope: str, key: str) -> DailyUsage:
        return self._counters(scope, key)
