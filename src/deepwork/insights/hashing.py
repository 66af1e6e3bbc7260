"""Data fingerprints for session sets.

The fingerprint only detects drift in the underlying sessions; it is not
meant to resist deliberate tampering.
"""

import hashlib
from collections.abc import Iterable

from deepwork.sessions.models import Session

EMPTY_HASH = "empty"


def _session_line(session: Session) -> str:
    # repr() keeps None distinct from "" and escapes separators inside notes
    return "|".join(
        (
            session.id,
            session.activity_type,
            str(session.duration_seconds),
            str(session.start_time),
            str(session.end_time),
            str(session.created_at),
            repr(session.description),
        )
    )


def hash_sessions(sessions: Iterable[Session]) -> str:
    """Fingerprint a set of sessions.

    The result ignores input order but changes whenever a session is added,
    removed, or has its identity, activity, duration, timing or description
    edited.

    Args:
        sessions: Sessions in the insight window

    Returns:
        Hex digest, or ``EMPTY_HASH`` for no sessions
    """
    lines = sorted(_session_line(s) for s in sessions)
    if not lines:
        return EMPTY_HASH

    digest = hashlib.sha256()
    for line in lines:
        digest.update(line.encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()[:32]


__all__ = ["EMPTY_HASH", "hash_sessions"]
