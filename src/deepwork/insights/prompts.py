"""Prompt templates for insight generation.

Every template lists the numbers first, then the user's own session notes
grouped by activity, then the instruction. The instruction always caps
the answer at 2-3 sentences and asks for one observation tied to the data.
"""

from .aggregator import Summary, TopActivity, Trends
from .errors import UnknownInsightTypeError
from .periods import DAILY, MONTHLY, WEEKLY, TimePeriod, parse_activity

# Notes are quoted only when the share of annotated sessions exceeds this;
# at 0 they appear whenever any session has one
MIN_DESCRIPTION_DENSITY = 0.0

INSTRUCTION = """Write 2-3 sentences for the user that:
1. Make one specific observation grounded in the numbers or notes above
2. Offer one concrete suggestion that follows from that observation
Do not give generic encouragement, and do not mention data that is not listed above."""

EMPTY_INSTRUCTION = """The user has no focus sessions for {scope}. Write a short, non-judgmental message (1-2 sentences) that:
1. Acknowledges they may be just getting started or taking a break
2. Invites them to start their next focus session
Do not analyze or invent any session data."""


def _signed(value: float, suffix: str = "") -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:g}{suffix}"


class PromptBuilder:
    """Renders a Summary into an instruction for the text generator."""

    def __init__(self, min_description_density: float = MIN_DESCRIPTION_DENSITY) -> None:
        """Initialize builder.

        Args:
            min_description_density: Notes are included only when the share of
                annotated sessions is above this value
        """
        self._min_density = min_description_density

    def build(
        self,
        summary: Summary,
        insight_type: str,
        activity_type: str | None = None,
        period: TimePeriod | None = None,
    ) -> str:
        """Build the prompt for an insight type.

        Args:
            summary: Aggregated session data
            insight_type: 'daily', 'weekly', 'monthly' or 'activity_<id>_week'
            activity_type: Activity name for activity-scoped insights
            period: Window the summary covers, used for labels

        Returns:
            Prompt text

        Raises:
            UnknownInsightTypeError: If the type has no template
        """
        activity = activity_type or parse_activity(insight_type)

        if insight_type == DAILY:
            label = period.label if period else "Yesterday"
            if summary.is_empty:
                return self.build_empty(label.lower())
            return self._build_daily(summary, label)

        if insight_type == WEEKLY:
            label = period.label if period else "Last 7 days"
            if summary.is_empty:
                return self.build_empty("last week")
            return self._build_weekly(summary, label)

        if insight_type == MONTHLY:
            label = period.label if period else "Last month"
            if summary.is_empty:
                return self.build_empty("last month")
            return self._build_monthly(summary, label, period)

        if activity is not None:
            if summary.is_empty:
                return self.build_empty(f"{activity} in the last 7 days")
            return self._build_activity(summary, activity)

        raise UnknownInsightTypeError(insight_type)

    def build_empty(self, scope: str) -> str:
        """Prompt for a window without sessions."""
        return EMPTY_INSTRUCTION.format(scope=scope)

    def _build_daily(self, summary: Summary, label: str) -> str:
        lines = [
            f"Focus session data for {label.lower()}:",
            "",
            f"Total sessions: {summary.total_sessions}",
            f"Total focus time: {summary.total_hours:g} hours",
            f"Average session: {summary.avg_session_minutes} minutes",
            "",
            "Activity breakdown:",
            self._format_activities(summary.top_activities),
        ]
        lines.extend(self._format_notes(summary))
        lines.extend(["", INSTRUCTION])
        return "\n".join(lines)

    def _build_weekly(self, summary: Summary, label: str) -> str:
        top = summary.top_activities[0].activity if summary.top_activities else "N/A"
        lines = [
            f"Weekly focus data ({label}, Monday to Sunday):",
            "",
            f"Sessions completed: {summary.total_sessions}",
            f"Total focus time: {summary.total_hours:g} hours",
            f"Average session length: {summary.avg_session_minutes} minutes",
            f"Most focused activity: {top}",
        ]
        lines.extend(self._format_trends(summary.trends, "previous week"))
        lines.extend(["", "Activity distribution:", self._format_activities(summary.top_activities)])
        lines.extend(self._format_notes(summary))
        lines.extend(["", INSTRUCTION])
        return "\n".join(lines)

    def _build_monthly(self, summary: Summary, label: str, period: TimePeriod | None) -> str:
        days = 30
        if period is not None:
            days = max(1, round((period.end + 1 - period.start) / 86_400_000))
        daily_average = summary.total_hours / days
        lines = [
            f"Monthly focus data ({label}):",
            "",
            f"Total sessions: {summary.total_sessions}",
            f"Total focus hours: {summary.total_hours:g}",
            f"Daily average: {daily_average:.1f} hours over {days} days",
            f"Average session: {summary.avg_session_minutes} minutes",
            f"Sessions with notes: {summary.description_density:.0%}",
        ]
        lines.extend(self._format_trends(summary.trends, "previous month"))
        lines.extend(["", "Top focus areas:", self._format_activities(summary.top_activities)])
        lines.extend(self._format_notes(summary))
        lines.extend(["", INSTRUCTION])
        return "\n".join(lines)

    def _build_activity(self, summary: Summary, activity: str) -> str:
        lines = [
            f"The user's {activity} sessions over the last 7 days:",
            "",
            f"Sessions: {summary.total_sessions}",
            f"Total time: {summary.total_hours:g} hours",
            f"Average duration: {summary.avg_session_minutes} minutes",
        ]
        lines.extend(self._format_trends(summary.trends, "7 days before"))
        lines.extend(self._format_notes(summary))
        lines.extend(
            [
                "",
                f"Focus the observation on how the user works on {activity}.",
                INSTRUCTION,
            ]
        )
        return "\n".join(lines)

    def _format_activities(self, top_activities: list[TopActivity]) -> str:
        if not top_activities:
            return "- No activities recorded"
        return "\n".join(
            f"{i}. {top.activity}: {top.hours:g}h ({top.percentage:.0f}%)"
            for i, top in enumerate(top_activities, 1)
        )

    def _format_trends(self, trends: Trends | None, compared_to: str) -> list[str]:
        if trends is None:
            return []
        return [
            "",
            f"Compared to the {compared_to}:",
            f"- Sessions: {_signed(trends.session_count_change)}",
            f"- Focus time: {_signed(trends.hours_change, ' hours')}",
            f"- Change: {_signed(trends.percentage_change, '%')}",
        ]

    def _format_notes(self, summary: Summary) -> list[str]:
        if summary.description_density <= self._min_density:
            return []
        notes = summary.sample_descriptions()
        if not notes:
            return []
        lines = ["", "Session notes by activity:"]
        for activity, samples in notes.items():
            lines.append(f"{activity}:")
            lines.extend(f"- {sample}" for sample in samples)
        return lines


__all__ = ["EMPTY_INSTRUCTION", "INSTRUCTION", "PromptBuilder"]
