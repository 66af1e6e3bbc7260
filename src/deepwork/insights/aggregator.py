"""Session aggregation for insight prompts.

Reduces an unbounded list of sessions to per-activity statistics plus a
handful of sample notes, so prompt size depends on the number of distinct
activities rather than the number of sessions.
"""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from deepwork.sessions.models import Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_DESCRIPTION_SAMPLES = 3
DEFAULT_TOP_ACTIVITIES = 3
DEFAULT_HOURS_PRECISION = 2


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ties toward positive infinity (2.5 -> 3, -2.5 -> -2), unlike built-in round()."""
    quantum = Decimal(1).scaleb(-digits)
    return float((Decimal(str(value)) + quantum / 2).quantize(quantum, rounding=ROUND_FLOOR))


def seconds_to_hours(seconds: float, digits: int = DEFAULT_HOURS_PRECISION) -> float:
    return round_half_up(seconds / 3600, digits)


def seconds_to_minutes(seconds: float) -> int:
    return int(round_half_up(seconds / 60))


@dataclass
class ActivityStats:
    """Aggregated statistics for one activity."""

    session_count: int
    total_hours: float
    avg_minutes: int
    sample_descriptions: list[str] = field(default_factory=list)
    total_seconds: int = 0


@dataclass
class TopActivity:
    """An activity ranked by total focus time."""

    activity: str
    hours: float
    percentage: float = 0.0


@dataclass
class Trends:
    """Change against the preceding period."""

    session_count_change: int
    hours_change: float
    percentage_change: int


@dataclass
class Summary:
    """Compact statistical summary of a session set."""

    total_sessions: int = 0
    total_hours: float = 0.0
    avg_session_minutes: int = 0
    activities_breakdown: dict[str, ActivityStats] = field(default_factory=dict)
    description_density: float = 0.0
    top_activities: list[TopActivity] = field(default_factory=list)
    trends: Trends | None = None
    activity: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.total_sessions == 0

    def sample_descriptions(self) -> dict[str, list[str]]:
        """Sample notes grouped by activity, omitting activities without notes."""
        return {
            name: stats.sample_descriptions
            for name, stats in self.activities_breakdown.items()
            if stats.sample_descriptions
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DataAggregator:
    """Aggregates sessions into a Summary.

    Deterministic: the same sessions in the same order always give the
    same summary. Empty input yields an all-zero summary.
    """

    def __init__(
        self,
        max_description_samples: int = DEFAULT_MAX_DESCRIPTION_SAMPLES,
        top_activities: int = DEFAULT_TOP_ACTIVITIES,
        hours_precision: int = DEFAULT_HOURS_PRECISION,
    ) -> None:
        """Initialize aggregator.

        Args:
            max_description_samples: Notes kept per activity
            top_activities: Number of activities in the ranking
            hours_precision: Decimal places for hour values
        """
        self._max_samples = max_description_samples
        self._top_n = top_activities
        self._precision = hours_precision

    def aggregate(
        self,
        sessions: Sequence[Session],
        include_trends: bool = False,
        previous_period_sessions: Sequence[Session] | None = None,
    ) -> Summary:
        """Aggregate sessions into a summary.

        Args:
            sessions: Sessions in the window
            include_trends: Whether to compare against the previous period
            previous_period_sessions: Sessions of the preceding window

        Returns:
            Summary of the sessions
        """
        if not sessions:
            return Summary()

        total_sessions = len(sessions)
        total_seconds = sum(s.duration_seconds for s in sessions)

        breakdown = self._group_by_activity(sessions)
        with_notes = sum(1 for s in sessions if s.note)

        summary = Summary(
            total_sessions=total_sessions,
            total_hours=seconds_to_hours(total_seconds, self._precision),
            avg_session_minutes=seconds_to_minutes(total_seconds / total_sessions),
            activities_breakdown=breakdown,
            description_density=with_notes / total_sessions,
            top_activities=self._top_activities(breakdown, total_seconds),
        )

        if include_trends and previous_period_sessions is not None:
            summary.trends = self._calculate_trends(sessions, previous_period_sessions)

        logger.debug(
            "Aggregated %d sessions into %d activities", total_sessions, len(breakdown)
        )
        return summary

    def aggregate_by_activity(
        self,
        sessions: Sequence[Session],
        activity_type: str,
        include_trends: bool = False,
        previous_period_sessions: Sequence[Session] | None = None,
    ) -> Summary:
        """Aggregate only the sessions of one activity.

        Args:
            sessions: Sessions of any activity
            activity_type: Activity to keep

        Returns:
            Summary tagged with the activity name
        """
        filtered = [s for s in sessions if s.activity_type == activity_type]
        previous = None
        if previous_period_sessions is not None:
            previous = [s for s in previous_period_sessions if s.activity_type == activity_type]
        summary = self.aggregate(
            filtered,
            include_trends=include_trends,
            previous_period_sessions=previous,
        )
        summary.activity = activity_type
        return summary

    def _group_by_activity(self, sessions: Sequence[Session]) -> dict[str, ActivityStats]:
        """Group sessions by activity, keeping first-seen unique notes."""
        counts: dict[str, int] = {}
        durations: dict[str, int] = {}
        notes: dict[str, list[str]] = {}

        for session in sessions:
            activity = session.activity_type
            counts[activity] = counts.get(activity, 0) + 1
            durations[activity] = durations.get(activity, 0) + session.duration_seconds
            samples = notes.setdefault(activity, [])

            note = session.note
            if note and len(samples) < self._max_samples and note not in samples:
                samples.append(note)

        return {
            activity: ActivityStats(
                session_count=counts[activity],
                total_hours=seconds_to_hours(durations[activity], self._precision),
                avg_minutes=seconds_to_minutes(durations[activity] / counts[activity]),
                sample_descriptions=notes[activity],
                total_seconds=durations[activity],
            )
            for activity in counts
        }

    def _top_activities(
        self, breakdown: dict[str, ActivityStats], total_seconds: int
    ) -> list[TopActivity]:
        # sorted() is stable, so ties keep encounter order
        ranked = sorted(breakdown.items(), key=lambda item: item[1].total_seconds, reverse=True)
        return [
            TopActivity(
                activity=activity,
                hours=stats.total_hours,
                percentage=round_half_up(stats.total_seconds / total_seconds * 100, 1)
                if total_seconds
                else 0.0,
            )
            for activity, stats in ranked[: self._top_n]
        ]

    def _calculate_trends(
        self, current: Sequence[Session], previous: Sequence[Session]
    ) -> Trends:
        current_seconds = sum(s.duration_seconds for s in current)
        previous_seconds = sum(s.duration_seconds for s in previous)

        if previous_seconds == 0:
            # Going from nothing to something counts as a full increase
            percentage_change = 100
        else:
            percentage_change = int(
                round_half_up((current_seconds - previous_seconds) / previous_seconds * 100)
            )

        return Trends(
            session_count_change=len(current) - len(previous),
            hours_change=seconds_to_hours(current_seconds - previous_seconds, self._precision),
            percentage_change=percentage_change,
        )


__all__ = [
    "ActivityStats",
    "DataAggregator",
    "Summary",
    "TopActivity",
    "Trends",
    "round_half_up",
    "seconds_to_hours",
    "seconds_to_minutes",
]
