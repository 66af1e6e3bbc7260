"""Data models for focus sessions.

Sessions are owned by the session store; this package only reads them.
"""

from dataclasses import dataclass
from typing import Any


class InvalidSessionError(ValueError):
    """Raised when a session record violates its invariants."""

    pass


@dataclass(frozen=True)
class Session:
    """A completed focus session.

    Attributes:
        id: Store-assigned identifier
        activity_type: Activity the session is tagged with (e.g., "coding")
        duration_seconds: Focused time; authoritative for aggregation since
            paused sessions make it differ from end_time - start_time
        start_time: Start instant in epoch milliseconds
        end_time: End instant in epoch milliseconds
        description: Optional user note
        created_at: Creation instant in epoch milliseconds
    """

    id: str
    activity_type: str
    duration_seconds: int
    start_time: int
    end_time: int
    description: str | None = None
    created_at: int = 0

    def __post_init__(self) -> None:
        if not self.activity_type:
            raise InvalidSessionError("Session activity_type must not be empty")
        if self.duration_seconds <= 0:
            raise InvalidSessionError(
                f"Session {self.id} has non-positive duration: {self.duration_seconds}"
            )
        if self.end_time < self.start_time:
            raise InvalidSessionError(f"Session {self.id} ends before it starts")

    @property
    def note(self) -> str:
        """Trimmed description, empty when there is none."""
        return self.description.strip() if isinstance(self.description, str) else ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for MongoDB storage."""
        return {
            "activity_type": self.activity_type,
            "duration_seconds": self.duration_seconds,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "description": self.description,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        """Create from MongoDB document."""
        start_time = int(data["start_time"])
        return cls(
            id=str(data.get("_id", data.get("id", ""))),
            activity_type=data["activity_type"],
            duration_seconds=int(data["duration_seconds"]),
            start_time=start_time,
            end_time=int(data.get("end_time", start_time)),
            description=data.get("description"),
            created_at=int(data.get("created_at", start_time)),
        )


__all__ = ["InvalidSessionError", "Session"]
