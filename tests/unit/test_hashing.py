"""Tests for session fingerprints."""

from dataclasses import replace

from deepwork.insights.hashing import EMPTY_HASH, hash_sessions
from deepwork.sessions.models import Session


def make_session(session_id: str, description: str | None = None) -> Session:
    return Session(
        id=session_id,
        activity_type="coding",
        duration_seconds=1800,
        start_time=1_705_000_000_000,
        end_time=1_705_001_800_000,
        description=description,
        created_at=1_705_001_800_000,
    )


class TestHashSessions:
    """Tests for hash_sessions()."""

    def test_empty(self) -> None:
        """No sessions gives the sentinel."""
        assert hash_sessions([]) == EMPTY_HASH

    def test_stable(self) -> None:
        sessions = [make_session("a"), make_session("b")]
        assert hash_sessions(sessions) == hash_sessions(list(sessions))

    def test_order_independent(self) -> None:
        """Query order does not change the fingerprint."""
        a, b = make_session("a"), make_session("b")
        assert hash_sessions([a, b]) == hash_sessions([b, a])

    def test_added_session_changes_hash(self) -> None:
        a = make_session("a")
        assert hash_sessions([a]) != hash_sessions([a, make_session("b")])

    def test_removed_session_changes_hash(self) -> None:
        a, b = make_session("a"), make_session("b")
        assert hash_sessions([a, b]) != hash_sessions([b])

    def test_edited_duration_changes_hash(self) -> None:
        a = make_session("a")
        assert hash_sessions([a]) != hash_sessions([replace(a, duration_seconds=1200)])

    def test_edited_activity_changes_hash(self) -> None:
        a = make_session("a")
        assert hash_sessions([a]) != hash_sessions([replace(a, activity_type="reading")])

    def test_edited_description_changes_hash(self) -> None:
        """Adding a note to a session is a data change."""
        a = make_session("a")
        assert hash_sessions([a]) != hash_sessions([replace(a, description="notes")])

    def test_missing_and_blank_description_differ(self) -> None:
        assert hash_sessions([make_session("a")]) != hash_sessions([make_session("a", "")])

    def test_separator_in_description(self) -> None:
        """Notes containing the field separator cannot collide with other fields."""
        first = make_session("a", "x|coding")
        second = make_session("a|x", "coding")
        assert hash_sessions([first]) != hash_sessions([second])

    def test_digest_format(self) -> None:
        digest = hash_sessions([make_session("a")])
        assert len(digest) == 32
        int(digest, 16)
