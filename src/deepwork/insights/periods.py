"""Time windows for insight types.

Boundaries are computed on local calendar dates and only then converted to
epoch milliseconds, so a daylight-saving transition inside a window changes
its length but never inverts or empties it.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from .errors import UnknownInsightTypeError

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ACTIVITY_TYPE_PATTERN = re.compile(r"^activity_(?P<activity>.+)_week$")


@dataclass(frozen=True)
class TimePeriod:
    """A resolved insight window.

    ``end`` is the last millisecond inside the window, so a daily period
    ends at 23:59:59.999 local time.
    """

    start: int
    end: int
    label: str

    def contains(self, timestamp_ms: int) -> bool:
        """Check whether an instant falls inside the window."""
        return self.start <= timestamp_ms <= self.end

    def to_dict(self) -> dict[str, int | str]:
        return {"start": self.start, "end": self.end, "label": self.label}


def activity_insight_type(activity: str) -> str:
    """Build the insight type for a single activity's week."""
    return f"activity_{activity}_week"


def parse_activity(insight_type: str) -> str | None:
    """Extract the activity id from an activity-scoped insight type.

    Returns:
        Activity id, or None if the type is not activity-scoped.
    """
    match = _ACTIVITY_TYPE_PATTERN.match(insight_type)
    return match.group("activity") if match else None


def is_known_insight_type(insight_type: str) -> bool:
    return insight_type in (DAILY, WEEKLY, MONTHLY) or parse_activity(insight_type) is not None


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(timestamp_ms: int, tz: tzinfo) -> datetime:
    """Convert epoch milliseconds to an aware datetime in ``tz``."""
    return (_EPOCH + timedelta(milliseconds=timestamp_ms)).astimezone(tz)


def _local_midnight_ms(day: date, tz: tzinfo) -> int:
    return to_epoch_ms(datetime.combine(day, time.min, tzinfo=tz))


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _previous_month_start(day: date) -> date:
    first = _month_start(day)
    return _month_start(first - timedelta(days=1))


class TimePeriodResolver:
    """Resolves an insight type and reference instant to a TimePeriod.

    Pure: the same inputs always yield the same period, which matters
    because period bounds are part of the insight cache key.
    """

    def __init__(self, tz: tzinfo | str | None = None) -> None:
        """Initialize resolver.

        Args:
            tz: Zone that defines calendar days. Accepts a tzinfo or an IANA
                name; defaults to UTC.
        """
        if tz is None:
            tz = ZoneInfo("UTC")
        elif isinstance(tz, str):
            tz = ZoneInfo(tz)
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def localize(self, reference: datetime) -> datetime:
        """Express a reference instant in the resolver's zone.

        Naive datetimes are taken to already be local wall-clock time.
        """
        if reference.tzinfo is None:
            return reference.replace(tzinfo=self._tz)
        return reference.astimezone(self._tz)

    def resolve(
        self,
        insight_type: str,
        reference: datetime,
        activity_type: str | None = None,
    ) -> TimePeriod:
        """Resolve the window an insight covers.

        Args:
            insight_type: 'daily', 'weekly', 'monthly' or 'activity_<id>_week'
            reference: Instant the insight is generated for
            activity_type: Activity label for activity-scoped types. Defaults
                to the id embedded in the insight type.

        Returns:
            TimePeriod for the insight

        Raises:
            UnknownInsightTypeError: If the type is not recognized
        """
        local = self.localize(reference)
        today = local.date()

        if insight_type == DAILY:
            return TimePeriod(
                start=_local_midnight_ms(today - timedelta(days=1), self._tz),
                end=_local_midnight_ms(today, self._tz) - 1,
                label="Yesterday",
            )

        if insight_type == WEEKLY:
            # Weeks start on Monday 00:00
            week_start = today - timedelta(days=today.weekday())
            return TimePeriod(
                start=_local_midnight_ms(week_start - timedelta(days=7), self._tz),
                end=_local_midnight_ms(week_start, self._tz) - 1,
                label="Last 7 days",
            )

        if insight_type == MONTHLY:
            month_start = _month_start(today)
            return TimePeriod(
                start=_local_midnight_ms(_previous_month_start(today), self._tz),
                end=_local_midnight_ms(month_start, self._tz) - 1,
                label="Last month",
            )

        activity = parse_activity(insight_type)
        if activity is not None:
            # Wall-clock arithmetic keeps the window at 7 local days across DST
            window_start = datetime.combine(
                today - timedelta(days=7), local.time(), tzinfo=self._tz
            )
            end = to_epoch_ms(local)
            start = min(to_epoch_ms(window_start), end - 1)
            return TimePeriod(
                start=start,
                end=end,
                label=f"Last 7 days - {activity_type or activity}",
            )

        raise UnknownInsightTypeError(insight_type)

    def previous(
        self,
        insight_type: str,
        period: TimePeriod,
        activity_type: str | None = None,
    ) -> TimePeriod:
        """Resolve the window immediately preceding ``period``.

        Used for trend comparison: resolving from the current start yields
        the day, week, month or 7-day span before it.
        """
        # Rolling windows include both bounds, so step back off the shared instant
        reference_ms = period.start - 1 if parse_activity(insight_type) else period.start
        return self.resolve(
            insight_type,
            from_epoch_ms(reference_ms, self._tz),
            activity_type=activity_type,
        )


__all__ = [
    "DAILY",
    "MONTHLY",
    "TimePeriod",
    "TimePeriodResolver",
    "WEEKLY",
    "activity_insight_type",
    "from_epoch_ms",
    "is_known_insight_type",
    "parse_activity",
    "to_epoch_ms",
]
