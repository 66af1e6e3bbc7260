"""Focus session records."""

from .models import InvalidSessionError, Session

__all__ = ["InvalidSessionError", "Session"]
