"""Insight generation orchestrator.

Resolves the window, loads sessions, serves a valid cached insight when one
exists, and otherwise aggregates, prompts, generates and caches a new one.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from deepwork.llm.client import CompletionResult
from deepwork.sessions.models import Session
from deepwork.storage.errors import StorageError
from deepwork.storage.models import CachedInsight

from .aggregator import DataAggregator
from .cache import CacheValidator, now_ms
from .hashing import hash_sessions
from .periods import TimePeriod, TimePeriodResolver, parse_activity
from .prompts import PromptBuilder
from .singleflight import SingleFlight

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Unable to generate insight at this time. Please try again later."


class SessionDataSource(Protocol):
    """Protocol for reading sessions."""

    def get_sessions_by_range(
        self, start: int, end: int, activity_type: str | None = None
    ) -> list[Session]:
        """Get sessions overlapping [start, end]; empty list when none."""
        ...


class InsightCacheStore(Protocol):
    """Protocol for insight cache persistence."""

    def get(self, insight_type: str, start: int, end: int) -> CachedInsight | None:
        """Get the entry for a key."""
        ...

    def upsert(self, entry: CachedInsight) -> str:
        """Store an entry, replacing any with the same key."""
        ...

    def delete_older_than(self, timestamp_ms: int) -> int:
        """Delete entries generated before a cutoff."""
        ...


class TextGenerator(Protocol):
    """Protocol for turning prompts into insight text."""

    def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        """Generate text; never raises."""
        ...


@dataclass
class InsightResult:
    """Displayable outcome of an insight request."""

    success: bool
    insight_text: str
    insight_type: str
    time_period: TimePeriod | None = None
    generated_at: int | None = None
    from_cache: bool = False
    is_empty: bool = False
    is_fallback: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Shape consumed by the UI layer."""
        metadata: dict[str, Any] = {
            "insightType": self.insight_type,
            "timePeriod": self.time_period.to_dict() if self.time_period else None,
            "fromCache": self.from_cache,
            "isEmpty": self.is_empty,
        }
        if self.generated_at is not None:
            metadata["generatedAt"] = self.generated_at
        if self.is_fallback:
            metadata["isFallback"] = True
        if self.error is not None:
            metadata["error"] = self.error
        return {
            "success": self.success,
            "insightText": self.insight_text,
            "metadata": metadata,
        }


class InsightOrchestrator:
    """Generates or retrieves cached insights.

    Concurrent requests for the same cache key share a single generation.
    """

    def __init__(
        self,
        session_source: SessionDataSource,
        cache_store: InsightCacheStore,
        text_generator: TextGenerator,
        resolver: TimePeriodResolver | None = None,
        aggregator: DataAggregator | None = None,
        prompt_builder: PromptBuilder | None = None,
        validator: CacheValidator | None = None,
        include_trends: bool = True,
        clock: Callable[[], int] = now_ms,
        single_flight: SingleFlight[InsightResult] | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            session_source: Source of sessions
            cache_store: Persistence for generated insights
            text_generator: Client producing insight text
            resolver: Time window resolver (UTC if not given)
            aggregator: Session aggregator
            prompt_builder: Prompt templates
            validator: Cache validity rules
            include_trends: Whether to compare against the preceding window
            clock: Returns the current time in epoch milliseconds
            single_flight: Deduplicates concurrent generation per cache key
        """
        self._sessions = session_source
        self._cache = cache_store
        self._text = text_generator
        self._resolver = resolver or TimePeriodResolver()
        self._aggregator = aggregator or DataAggregator()
        self._prompts = prompt_builder or PromptBuilder()
        self._validator = validator or CacheValidator(clock=clock)
        self._include_trends = include_trends
        self._clock = clock
        self._flight: SingleFlight[InsightResult] = single_flight or SingleFlight()

    @property
    def resolver(self) -> TimePeriodResolver:
        return self._resolver

    def generate(
        self,
        insight_type: str,
        reference: datetime | None = None,
        activity_type: str | None = None,
        force_regenerate: bool = False,
    ) -> InsightResult:
        """Generate an insight or return a valid cached one.

        Args:
            insight_type: 'daily', 'weekly', 'monthly' or 'activity_<id>_week'
            reference: Instant to generate for (defaults to now)
            activity_type: Activity filter (defaults to the id in the type)
            force_regenerate: Skip the cache lookup

        Returns:
            InsightResult; failures other than an unknown type are reported
            through ``success=False`` instead of raising

        Raises:
            UnknownInsightTypeError: If the insight type is not recognized
        """
        activity = activity_type or parse_activity(insight_type)
        if reference is None:
            reference = datetime.now(self._resolver.tz)

        period = self._resolver.resolve(insight_type, reference, activity)
        logger.debug(
            "Generating %s insight for %s (%d-%d)",
            insight_type,
            period.label,
            period.start,
            period.end,
        )

        try:
            return self._generate(insight_type, period, activity, force_regenerate)
        except Exception as e:
            logger.exception("Error generating %s insight", insight_type)
            return InsightResult(
                success=False,
                insight_text=ERROR_MESSAGE,
                insight_type=insight_type,
                time_period=period,
                error=str(e),
            )

    def _generate(
        self,
        insight_type: str,
        period: TimePeriod,
        activity: str | None,
        force_regenerate: bool,
    ) -> InsightResult:
        sessions = self._load_sessions(period, activity)
        logger.info("Loaded %d sessions for %s insight", len(sessions), insight_type)

        if not sessions:
            return self._empty_result(insight_type, period, activity)

        data_hash = hash_sessions(sessions)
        key = (insight_type, period.start, period.end)

        if not force_regenerate:
            hit = self._valid_cached(key, data_hash)
            if hit is not None:
                logger.info("Cache hit for %s insight", insight_type)
                return self._cached_result(hit, period, from_cache=True)

        def produce() -> InsightResult:
            # A generation for this key may have finished since the read above
            if not force_regenerate:
                stored = self._valid_cached(key, data_hash)
                if stored is not None:
                    logger.info("Insight for %s was generated concurrently", insight_type)
                    return self._cached_result(stored, period, from_cache=True)
            return self._regenerate(insight_type, period, activity, sessions, data_hash)

        logger.info("Cache miss or forced regeneration for %s insight", insight_type)
        result, shared = self._flight.do(key, produce)
        if shared:
            logger.debug("Reused in-flight generation for %s insight", insight_type)
        return result

    def _valid_cached(self, key: tuple[str, int, int], data_hash: str) -> CachedInsight | None:
        """Return the stored entry for ``key`` if it may be served, else None."""
        cached = self._read_cache(key)
        if self._validator.is_valid(cached, data_hash, key[0]):
            return cached
        return None

    def _load_sessions(self, period: TimePeriod, activity: str | None) -> list[Session]:
        sessions = self._sessions.get_sessions_by_range(period.start, period.end, activity)
        if activity is not None:
            sessions = [s for s in sessions if s.activity_type == activity]
        return sessions

    def _regenerate(
        self,
        insight_type: str,
        period: TimePeriod,
        activity: str | None,
        sessions: Sequence[Session],
        data_hash: str,
    ) -> InsightResult:
        previous = self._load_previous_sessions(insight_type, period, activity)
        summary = self._aggregator.aggregate(
            sessions,
            include_trends=previous is not None,
            previous_period_sessions=previous,
        )
        summary.activity = activity

        prompt = self._prompts.build(summary, insight_type, activity, period)
        completion = self._text.complete(prompt)

        if not completion.success:
            # Fallback text is shown but never cached as if it were model output
            logger.error(
                "Text generation failed for %s insight, returning fallback: %s",
                insight_type,
                completion.error,
            )
            return InsightResult(
                success=True,
                insight_text=completion.text,
                insight_type=insight_type,
                time_period=period,
                generated_at=self._clock(),
                is_fallback=True,
                error=completion.error,
            )

        entry = CachedInsight(
            insight_type=insight_type,
            generated_at=self._clock(),
            data_hash=data_hash,
            insight_text=completion.text,
            period_start=period.start,
            period_end=period.end,
        )
        stored = self._write_cache(entry)
        return self._cached_result(stored, period, from_cache=False)

    def _load_previous_sessions(
        self,
        insight_type: str,
        period: TimePeriod,
        activity: str | None,
    ) -> list[Session] | None:
        if not self._include_trends:
            return None
        previous_period = self._resolver.previous(insight_type, period, activity)
        try:
            return self._load_sessions(previous_period, activity)
        except StorageError as e:
            logger.warning("Could not load previous period for trends: %s", e)
            return None

    def _read_cache(self, key: tuple[str, int, int]) -> CachedInsight | None:
        try:
            return self._cache.get(*key)
        except StorageError as e:
            logger.error("Cache read failed, treating as miss: %s", e)
            return None

    def _write_cache(self, entry: CachedInsight) -> CachedInsight:
        """Persist an entry and return what the store now holds."""
        try:
            self._cache.upsert(entry)
            stored = self._cache.get(*entry.key)
        except StorageError as e:
            logger.error("Cache write failed, returning uncached insight: %s", e)
            return entry

        if stored is None:
            logger.error("Cached insight missing after upsert for %s", entry.key)
            return entry
        return stored

    def _cached_result(
        self, cached: CachedInsight, period: TimePeriod, from_cache: bool
    ) -> InsightResult:
        return InsightResult(
            success=True,
            insight_text=cached.insight_text,
            insight_type=cached.insight_type,
            time_period=TimePeriod(cached.period_start, cached.period_end, period.label),
            generated_at=cached.generated_at,
            from_cache=from_cache,
        )

    def _empty_result(
        self, insight_type: str, period: TimePeriod, activity: str | None
    ) -> InsightResult:
        logger.info("No sessions found for %s insight", insight_type)
        if parse_activity(insight_type) is not None:
            text = (
                f"No {activity} sessions recorded in the last 7 days. "
                "Start one to see personalized insights!"
            )
        else:
            text = (
                f"No focus sessions recorded for {period.label.lower()}. "
                "Start a session to see personalized insights!"
            )
        return InsightResult(
            success=True,
            insight_text=text,
            insight_type=insight_type,
            time_period=period,
            is_empty=True,
        )

    def needs_background_refresh(
        self,
        insight_type: str,
        reference: datetime | None = None,
        activity_type: str | None = None,
    ) -> bool:
        """Check whether the stored insight is due for a proactive refresh.

        Raises:
            UnknownInsightTypeError: If the insight type is not recognized
        """
        activity = activity_type or parse_activity(insight_type)
        if reference is None:
            reference = datetime.now(self._resolver.tz)
        period = self._resolver.resolve(insight_type, reference, activity)
        cached = self._read_cache((insight_type, period.start, period.end))
        return self._validator.should_regenerate_in_background(cached, insight_type)

    def purge_cache(self, older_than: timedelta) -> int:
        """Delete cached insights generated more than ``older_than`` ago.

        Returns:
            Number of deleted entries
        """
        cutoff = self._clock() - older_than // timedelta(milliseconds=1)
        deleted = self._cache.delete_older_than(cutoff)
        logger.info("Purged %d cached insights older than %s", deleted, older_than)
        return deleted


__all__ = [
    "ERROR_MESSAGE",
    "InsightCacheStore",
    "InsightOrchestrator",
    "InsightResult",
    "SessionDataSource",
    "TextGenerator",
]
