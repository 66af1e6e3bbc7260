"""Error types for insight generation."""


class InsightError(Exception):
    """Base exception for insight-related errors."""

    pass


class UnknownInsightTypeError(InsightError):
    """Raised for an insight type that has no time period or template."""

    def __init__(self, insight_type: str) -> None:
        super().__init__(f"Unknown insight type: {insight_type}")
        self.insight_type = insight_type


__all__ = ["InsightError", "UnknownInsightTypeError"]
