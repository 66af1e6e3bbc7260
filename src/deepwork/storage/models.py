"""Data models for MongoDB storage."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CachedInsight:
    """A stored insight, one per (insight_type, period_start, period_end).

    Attributes:
        insight_type: Type the insight was generated for
        generated_at: Generation instant in epoch milliseconds
        data_hash: Fingerprint of the sessions the text was generated from
        insight_text: Generated text
        period_start: Window start in epoch milliseconds
        period_end: Window end in epoch milliseconds
        id: MongoDB document ID
    """

    insight_type: str
    generated_at: int
    data_hash: str
    insight_text: str
    period_start: int
    period_end: int
    id: str | None = None

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.insight_type, self.period_start, self.period_end)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for MongoDB storage."""
        return {
            "insight_type": self.insight_type,
            "generated_at": self.generated_at,
            "data_hash": self.data_hash,
            "insight_text": self.insight_text,
            "time_period_start": self.period_start,
            "time_period_end": self.period_end,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedInsight":
        """Create from MongoDB document."""
        doc_id = data.get("_id")
        return cls(
            insight_type=data["insight_type"],
            generated_at=int(data["generated_at"]),
            data_hash=data["data_hash"],
            insight_text=data["insight_text"],
            period_start=int(data["time_period_start"]),
            period_end=int(data["time_period_end"]),
            id=str(doc_id) if doc_id is not None else None,
        )


__all__ = ["CachedInsight"]
