"""Cache validation for generated insights.

An entry is reused only while both hold:
1. Its data hash matches the current sessions (nothing was added, edited
   or deleted inside the window)
2. It is younger than the freshness window of its insight type
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

from deepwork.storage.models import CachedInsight

from .periods import DAILY, MONTHLY, WEEKLY, parse_activity

DEFAULT_BACKGROUND_REFRESH_RATIO = 0.8


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class FreshnessPolicy:
    """Maximum age of a cached insight per insight type."""

    daily: timedelta = field(default_factory=lambda: timedelta(days=1))
    weekly: timedelta = field(default_factory=lambda: timedelta(days=7))
    monthly: timedelta = field(default_factory=lambda: timedelta(days=30))
    activity: timedelta = field(default_factory=lambda: timedelta(days=7))

    def max_age(self, insight_type: str) -> timedelta | None:
        """Freshness window for a type, or None if the type is unknown."""
        if insight_type == DAILY:
            return self.daily
        if insight_type == WEEKLY:
            return self.weekly
        if insight_type == MONTHLY:
            return self.monthly
        if parse_activity(insight_type) is not None:
            return self.activity
        return None

    def max_age_ms(self, insight_type: str) -> int | None:
        age = self.max_age(insight_type)
        return None if age is None else age // timedelta(milliseconds=1)


class CacheValidator:
    """Decides whether a cached insight can be served."""

    def __init__(
        self,
        policy: FreshnessPolicy | None = None,
        clock: Callable[[], int] = now_ms,
        background_refresh_ratio: float = DEFAULT_BACKGROUND_REFRESH_RATIO,
    ) -> None:
        """Initialize validator.

        Args:
            policy: Freshness windows per insight type
            clock: Returns the current time in epoch milliseconds
            background_refresh_ratio: Fraction of the freshness window after
                which a proactive refresh is suggested
        """
        self._policy = policy or FreshnessPolicy()
        self._clock = clock
        self._refresh_ratio = background_refresh_ratio

    @property
    def policy(self) -> FreshnessPolicy:
        return self._policy

    def is_valid(
        self,
        cached: CachedInsight | None,
        fresh_hash: str,
        insight_type: str,
    ) -> bool:
        """Check whether a cached insight may be returned.

        Args:
            cached: Stored entry, if any
            fresh_hash: Hash of the sessions currently in the window
            insight_type: Type the entry was requested for

        Returns:
            True if the entry matches current data and has not expired
        """
        if cached is None:
            return False

        if cached.data_hash != fresh_hash:
            return False

        max_age = self._policy.max_age_ms(insight_type)
        if max_age is None:
            return False

        return self._clock() - cached.generated_at < max_age

    def should_regenerate_in_background(
        self,
        cached: CachedInsight | None,
        insight_type: str,
    ) -> bool:
        """Advisory check for refreshing an entry before it expires.

        Returns:
            True once the entry is older than the refresh ratio of its window
        """
        if cached is None:
            return True

        max_age = self._policy.max_age_ms(insight_type)
        if max_age is None:
            max_age = self._policy.weekly // timedelta(milliseconds=1)

        return self._clock() - cached.generated_at > max_age * self._refresh_ratio


__all__ = [
    "CacheValidator",
    "FreshnessPolicy",
    "now_ms",
]
