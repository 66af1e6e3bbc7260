"""Unit tests for the insight orchestrator.

Uses in-memory fakes for the session source, cache store and text
generator so no database or API is involved.
"""

import threading
import time
from datetime import UTC, datetime, timedelta

import pytest

from deepwork.insights.errors import UnknownInsightTypeError
from deepwork.insights.generator import ERROR_MESSAGE, InsightOrchestrator, InsightResult
from deepwork.insights.hashing import hash_sessions
from deepwork.insights.periods import TimePeriodResolver
from deepwork.insights.singleflight import SingleFlight
from deepwork.llm.client import FALLBACK_INSIGHT, CompletionResult
from deepwork.sessions.models import Session
from deepwork.storage.errors import InsightCacheError, SessionStoreError
from deepwork.storage.models import CachedInsight

# Wednesday; last week is Mon 2024-01-08 .. Sun 2024-01-14
REFERENCE = datetime(2024, 1, 17, 12, 0, tzinfo=UTC)
NOW_MS = int(REFERENCE.timestamp()) * 1000
WEEK_START_MS = int(datetime(2024, 1, 8, tzinfo=UTC).timestamp()) * 1000
WEEK_END_MS = int(datetime(2024, 1, 15, tzinfo=UTC).timestamp()) * 1000 - 1
HOUR_MS = 3_600_000
DAY_MS = 24 * HOUR_MS


def make_session(
    session_id: str,
    activity: str,
    duration: int,
    start_ms: int,
    description: str | None = None,
) -> Session:
    return Session(
        id=session_id,
        activity_type=activity,
        duration_seconds=duration,
        start_time=start_ms,
        end_time=start_ms + duration * 1000,
        description=description,
        created_at=start_ms + duration * 1000,
    )


class FakeSessionSource:
    """In-memory session store matching sessions by overlap."""

    def __init__(self, sessions: list[Session] | None = None) -> None:
        self.sessions = list(sessions or [])
        self.queries: list[tuple[int, int, str | None]] = []
        self.error: Exception | None = None

    def get_sessions_by_range(
        self, start: int, end: int, activity_type: str | None = None
    ) -> list[Session]:
        self.queries.append((start, end, activity_type))
        if self.error is not None:
            raise self.error
        return [
            s
            for s in self.sessions
            if s.start_time <= end
            and s.end_time >= start
            and (activity_type is None or s.activity_type == activity_type)
        ]


class FakeCacheStore:
    """In-memory insight cache keyed by (type, start, end)."""

    def __init__(self) -> None:
        self.entries: dict[tuple[str, int, int], CachedInsight] = {}
        self.upserts = 0
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None

    def get(self, insight_type: str, start: int, end: int) -> CachedInsight | None:
        if self.read_error is not None:
            raise self.read_error
        return self.entries.get((insight_type, start, end))

    def upsert(self, entry: CachedInsight) -> str:
        if self.write_error is not None:
            raise self.write_error
        self.upserts += 1
        existing = self.entries.get(entry.key)
        doc_id = existing.id if existing else f"doc{self.upserts}"
        self.entries[entry.key] = CachedInsight(**{**entry.__dict__, "id": doc_id})
        return doc_id

    def delete_older_than(self, timestamp_ms: int) -> int:
        stale = [k for k, v in self.entries.items() if v.generated_at < timestamp_ms]
        for key in stale:
            del self.entries[key]
        return len(stale)


class FakeTextGenerator:
    """Returns canned completions and records prompts."""

    def __init__(self, text: str = "You coded most on Tuesday.", success: bool = True) -> None:
        self.text = text
        self.success = success
        self.prompts: list[str] = []
        self.gate: threading.Event | None = None

    def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        self.prompts.append(prompt)
        if self.gate is not None:
            self.gate.wait(2.0)
        if not self.success:
            return CompletionResult(text=FALLBACK_INSIGHT, success=False, error="rate limited")
        return CompletionResult(text=self.text, success=True, attempts=1)


class Clock:
    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def last_week_sessions() -> list[Session]:
    return [
        make_session("s1", "coding", 3600, WEEK_START_MS + 9 * HOUR_MS, "auth refactor"),
        make_session("s2", "coding", 1800, WEEK_START_MS + DAY_MS + 9 * HOUR_MS),
        make_session("s3", "reading", 900, WEEK_START_MS + 2 * DAY_MS + 20 * HOUR_MS),
    ]


@pytest.fixture
def source(last_week_sessions: list[Session]) -> FakeSessionSource:
    return FakeSessionSource(last_week_sessions)


@pytest.fixture
def cache() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def text() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def orchestrator(
    source: FakeSessionSource, cache: FakeCacheStore, text: FakeTextGenerator, clock: Clock
) -> InsightOrchestrator:
    return InsightOrchestrator(source, cache, text, clock=clock)


class TestGenerate:
    """Tests for InsightOrchestrator.generate()."""

    def test_generates_and_caches(
        self, orchestrator: InsightOrchestrator, cache: FakeCacheStore, text: FakeTextGenerator
    ) -> None:
        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert result.success
        assert result.insight_text == "You coded most on Tuesday."
        assert not result.from_cache
        assert result.generated_at == NOW_MS
        assert result.time_period is not None
        assert result.time_period.start == WEEK_START_MS
        assert result.time_period.end == WEEK_END_MS
        assert len(text.prompts) == 1

        stored = cache.entries[("weekly", WEEK_START_MS, WEEK_END_MS)]
        assert stored.insight_text == "You coded most on Tuesday."
        assert stored.generated_at == NOW_MS

    def test_second_call_served_from_cache(
        self,
        orchestrator: InsightOrchestrator,
        text: FakeTextGenerator,
        clock: Clock,
    ) -> None:
        first = orchestrator.generate("weekly", reference=REFERENCE)
        clock.now += 2 * 60_000

        second = orchestrator.generate("weekly", reference=REFERENCE)

        assert second.from_cache
        assert second.insight_text == first.insight_text
        assert second.generated_at == first.generated_at
        assert len(text.prompts) == 1

    def test_cached_hash_matches_sessions(
        self,
        orchestrator: InsightOrchestrator,
        cache: FakeCacheStore,
        last_week_sessions: list[Session],
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)

        stored = cache.entries[("weekly", WEEK_START_MS, WEEK_END_MS)]
        assert stored.data_hash == hash_sessions(last_week_sessions)

    def test_changed_data_regenerates(
        self,
        orchestrator: InsightOrchestrator,
        source: FakeSessionSource,
        cache: FakeCacheStore,
        text: FakeTextGenerator,
    ) -> None:
        """A session added inside the window invalidates the cached text."""
        orchestrator.generate("weekly", reference=REFERENCE)
        source.sessions.append(
            make_session("s4", "gym", 2700, WEEK_START_MS + 4 * DAY_MS, "legs")
        )
        text.text = "Gym showed up this week."

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert not result.from_cache
        assert result.insight_text == "Gym showed up this week."
        assert len(text.prompts) == 2
        assert len(cache.entries) == 1

    def test_expired_entry_regenerates(
        self, orchestrator: InsightOrchestrator, text: FakeTextGenerator, clock: Clock
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)
        clock.now += 7 * DAY_MS

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert not result.from_cache
        assert result.generated_at == clock.now
        assert len(text.prompts) == 2

    def test_force_regenerate_bypasses_cache(
        self, orchestrator: InsightOrchestrator, text: FakeTextGenerator
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)

        result = orchestrator.generate("weekly", reference=REFERENCE, force_regenerate=True)

        assert not result.from_cache
        assert len(text.prompts) == 2

    def test_sessions_outside_window_ignored(
        self, orchestrator: InsightOrchestrator, source: FakeSessionSource
    ) -> None:
        """Sessions from the current week do not leak into last week."""
        source.sessions.append(make_session("now", "coding", 600, NOW_MS - HOUR_MS))

        orchestrator.generate("weekly", reference=REFERENCE)

        assert source.queries[0][:2] == (WEEK_START_MS, WEEK_END_MS)

    def test_prompt_contains_aggregates(
        self, orchestrator: InsightOrchestrator, text: FakeTextGenerator
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)

        prompt = text.prompts[0]
        assert "Sessions completed: 3" in prompt
        assert "Total focus time: 1.75 hours" in prompt
        assert "- auth refactor" in prompt

    def test_unknown_type_raises(self, orchestrator: InsightOrchestrator) -> None:
        with pytest.raises(UnknownInsightTypeError):
            orchestrator.generate("yearly", reference=REFERENCE)

    def test_defaults_to_now(self, orchestrator: InsightOrchestrator) -> None:
        result = orchestrator.generate("daily")
        assert result.success
        assert result.time_period is not None
        assert result.time_period.end < time.time() * 1000


class TestEmptyWindow:
    """Tests for windows without sessions."""

    def test_empty_result(
        self, cache: FakeCacheStore, text: FakeTextGenerator, clock: Clock
    ) -> None:
        orchestrator = InsightOrchestrator(FakeSessionSource(), cache, text, clock=clock)

        result = orchestrator.generate("daily", reference=REFERENCE)

        assert result.success
        assert result.is_empty
        assert result.insight_text.startswith("No focus sessions recorded for yesterday.")
        assert result.generated_at is None
        assert text.prompts == []
        assert cache.entries == {}

    def test_empty_activity_result(self, cache: FakeCacheStore, text: FakeTextGenerator) -> None:
        orchestrator = InsightOrchestrator(FakeSessionSource(), cache, text)

        result = orchestrator.generate("activity_gym_week", reference=REFERENCE)

        assert result.is_empty
        assert result.insight_text.startswith("No gym sessions recorded in the last 7 days.")

    def test_empty_result_is_deterministic(
        self, cache: FakeCacheStore, text: FakeTextGenerator
    ) -> None:
        orchestrator = InsightOrchestrator(FakeSessionSource(), cache, text)

        first = orchestrator.generate("monthly", reference=REFERENCE)
        second = orchestrator.generate("monthly", reference=REFERENCE)

        assert first == second


class TestActivityInsights:
    """Tests for activity-scoped insight types."""

    def test_filters_to_activity(
        self,
        source: FakeSessionSource,
        cache: FakeCacheStore,
        text: FakeTextGenerator,
        clock: Clock,
    ) -> None:
        reference = datetime(2024, 1, 14, 23, 0, tzinfo=UTC)
        orchestrator = InsightOrchestrator(source, cache, text, clock=clock)

        result = orchestrator.generate("activity_coding_week", reference=reference)

        assert result.success
        assert result.time_period is not None
        assert result.time_period.label == "Last 7 days - coding"
        assert source.queries[0][2] == "coding"
        assert "Sessions: 2" in text.prompts[0]
        assert "reading" not in text.prompts[0]

    def test_explicit_activity_filter(
        self,
        source: FakeSessionSource,
        cache: FakeCacheStore,
        text: FakeTextGenerator,
    ) -> None:
        orchestrator = InsightOrchestrator(source, cache, text)

        orchestrator.generate("weekly", reference=REFERENCE, activity_type="reading")

        assert "Sessions completed: 1" in text.prompts[0]


class TestTrends:
    """Tests for previous-period comparison."""

    def test_previous_period_loaded(
        self,
        source: FakeSessionSource,
        cache: FakeCacheStore,
        text: FakeTextGenerator,
    ) -> None:
        source.sessions.append(
            make_session("old", "coding", 3600, WEEK_START_MS - 3 * DAY_MS)
        )
        orchestrator = InsightOrchestrator(source, cache, text)

        orchestrator.generate("weekly", reference=REFERENCE)

        assert source.queries[1] == (WEEK_START_MS - 7 * DAY_MS, WEEK_START_MS - 1, None)
        assert "Compared to the previous week:" in text.prompts[0]
        assert "- Sessions: +2" in text.prompts[0]
        assert "- Change: +75%" in text.prompts[0]

    def test_trends_disabled(
        self,
        source: FakeSessionSource,
        cache: FakeCacheStore,
        text: FakeTextGenerator,
    ) -> None:
        orchestrator = InsightOrchestrator(source, cache, text, include_trends=False)

        orchestrator.generate("weekly", reference=REFERENCE)

        assert len(source.queries) == 1
        assert "Compared to" not in text.prompts[0]


class TestFailures:
    """Tests for error handling."""

    def test_fallback_not_cached(
        self, source: FakeSessionSource, cache: FakeCacheStore, clock: Clock
    ) -> None:
        orchestrator = InsightOrchestrator(
            source, cache, FakeTextGenerator(success=False), clock=clock
        )

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert result.success
        assert result.is_fallback
        assert result.insight_text == FALLBACK_INSIGHT
        assert result.error == "rate limited"
        assert cache.entries == {}

    def test_session_source_failure(
        self,
        orchestrator: InsightOrchestrator,
        source: FakeSessionSource,
        text: FakeTextGenerator,
    ) -> None:
        source.error = SessionStoreError("connection refused")

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert not result.success
        assert result.insight_text == ERROR_MESSAGE
        assert result.error == "connection refused"
        assert result.time_period is not None
        assert text.prompts == []

    def test_cache_read_failure_is_miss(
        self, orchestrator: InsightOrchestrator, cache: FakeCacheStore
    ) -> None:
        cache.read_error = InsightCacheError("read failed")

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert result.success
        assert not result.from_cache
        assert result.insight_text == "You coded most on Tuesday."

    def test_cache_write_failure_returns_text(
        self, orchestrator: InsightOrchestrator, cache: FakeCacheStore
    ) -> None:
        cache.write_error = InsightCacheError("write failed")

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert result.success
        assert result.insight_text == "You coded most on Tuesday."
        assert cache.entries == {}

    def test_unexpected_error_reported(
        self, source: FakeSessionSource, cache: FakeCacheStore
    ) -> None:
        class BrokenGenerator:
            def complete(self, prompt, max_tokens=None, temperature=None):
                raise RuntimeError("unexpected")

        orchestrator = InsightOrchestrator(source, cache, BrokenGenerator())

        result = orchestrator.generate("weekly", reference=REFERENCE)

        assert not result.success
        assert result.error == "unexpected"


class HeldReadCache(FakeCacheStore):
    """Cache whose first read on the held thread pauses after looking up the entry."""

    def __init__(self) -> None:
        super().__init__()
        self.held_thread: threading.Thread | None = None
        self.read_done = threading.Event()
        self.release = threading.Event()

    def get(self, insight_type: str, start: int, end: int) -> CachedInsight | None:
        entry = super().get(insight_type, start, end)
        if threading.current_thread() is self.held_thread and not self.read_done.is_set():
            self.read_done.set()
            self.release.wait(2.0)
        return entry


class TestConcurrentGeneration:
    """Concurrent requests for the same key share one generation."""

    def test_single_generation_for_same_key(
        self, source: FakeSessionSource, cache: FakeCacheStore, clock: Clock
    ) -> None:
        text = FakeTextGenerator()
        text.gate = threading.Event()
        flight: SingleFlight[InsightResult] = SingleFlight()
        orchestrator = InsightOrchestrator(
            source, cache, text, clock=clock, single_flight=flight
        )
        key = ("weekly", WEEK_START_MS, WEEK_END_MS)
        results: list[InsightResult] = []

        def request() -> None:
            results.append(orchestrator.generate("weekly", reference=REFERENCE))

        first = threading.Thread(target=request)
        first.start()
        deadline = time.monotonic() + 2.0
        while not flight.in_flight(key) and time.monotonic() < deadline:
            time.sleep(0.005)

        second = threading.Thread(target=request)
        second.start()
        while flight.waiting(key) < 1 and time.monotonic() < deadline:
            time.sleep(0.005)

        text.gate.set()
        first.join(2.0)
        second.join(2.0)

        assert len(text.prompts) == 1
        assert cache.upserts == 1
        assert len(results) == 2
        assert results[0].insight_text == results[1].insight_text

    def test_generation_finished_after_cache_read_is_reused(
        self, source: FakeSessionSource, text: FakeTextGenerator, clock: Clock
    ) -> None:
        """A request that missed the cache picks up an insight stored meanwhile."""
        cache = HeldReadCache()
        orchestrator = InsightOrchestrator(source, cache, text, clock=clock)
        results: list[InsightResult] = []

        late = threading.Thread(
            target=lambda: results.append(orchestrator.generate("weekly", reference=REFERENCE))
        )
        cache.held_thread = late
        late.start()
        assert cache.read_done.wait(2.0)

        first = orchestrator.generate("weekly", reference=REFERENCE)
        cache.release.set()
        late.join(2.0)

        assert not first.from_cache
        assert len(text.prompts) == 1
        assert cache.upserts == 1
        assert len(results) == 1
        assert results[0].from_cache
        assert results[0].insight_text == first.insight_text


class TestMaintenance:
    """Tests for refresh checks and cache purging."""

    def test_needs_refresh_without_entry(self, orchestrator: InsightOrchestrator) -> None:
        assert orchestrator.needs_background_refresh("weekly", reference=REFERENCE)

    def test_fresh_entry_does_not_need_refresh(
        self, orchestrator: InsightOrchestrator, clock: Clock
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)
        clock.now += DAY_MS

        assert not orchestrator.needs_background_refresh("weekly", reference=REFERENCE)

    def test_aging_entry_needs_refresh(
        self, orchestrator: InsightOrchestrator, clock: Clock
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)
        clock.now += 6 * DAY_MS

        assert orchestrator.needs_background_refresh("weekly", reference=REFERENCE)

    def test_purge_cache(
        self, orchestrator: InsightOrchestrator, cache: FakeCacheStore, clock: Clock
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)
        orchestrator.generate(
            "activity_coding_week", reference=REFERENCE - timedelta(days=2, hours=13)
        )
        assert len(cache.entries) == 2
        clock.now += 40 * DAY_MS

        assert orchestrator.purge_cache(timedelta(days=30)) == 2
        assert cache.entries == {}

    def test_purge_keeps_recent(
        self, orchestrator: InsightOrchestrator, cache: FakeCacheStore
    ) -> None:
        orchestrator.generate("weekly", reference=REFERENCE)
        assert orchestrator.purge_cache(timedelta(days=30)) == 0
        assert len(cache.entries) == 1


class TestResultShape:
    """Tests for InsightResult.to_dict()."""

    def test_to_dict(self, orchestrator: InsightOrchestrator) -> None:
        data = orchestrator.generate("weekly", reference=REFERENCE).to_dict()

        assert data["success"] is True
        assert data["insightText"] == "You coded most on Tuesday."
        assert data["metadata"]["insightType"] == "weekly"
        assert data["metadata"]["fromCache"] is False
        assert data["metadata"]["generatedAt"] == NOW_MS
        assert data["metadata"]["timePeriod"] == {
            "start": WEEK_START_MS,
            "end": WEEK_END_MS,
            "label": "Last 7 days",
        }
        assert "error" not in data["metadata"]

    def test_resolver_exposed(self, orchestrator: InsightOrchestrator) -> None:
        assert isinstance(orchestrator.resolver, TimePeriodResolver)
