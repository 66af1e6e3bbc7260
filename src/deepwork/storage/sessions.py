"""MongoDB repository for focus sessions."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from deepwork.sessions.models import InvalidSessionError, Session

from .errors import SessionStoreError

if TYPE_CHECKING:
    from pymongo.collection import Collection
    from pymongo.database import Database

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for session storage."""

    COLLECTION_NAME = "sessions"

    def __init__(self, database: Database[dict[str, Any]]) -> None:
        """Initialize repository with database connection.

        Args:
            database: MongoDB database instance.
        """
        self._collection: Collection[dict[str, Any]] = database[self.COLLECTION_NAME]
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        """Create indexes for range queries."""
        self._collection.create_index([("start_time", DESCENDING)])
        self._collection.create_index([("activity_type", 1), ("start_time", DESCENDING)])

    def insert(self, session: Session) -> str:
        """Save a new session.

        The session's own id is used when set, otherwise one is generated.

        Returns:
            Document ID of the saved session.
        """
        doc_id = session.id or str(uuid.uuid4())
        document = {"_id": doc_id, **session.to_dict()}
        try:
            self._collection.insert_one(document)
        except PyMongoError as e:
            raise SessionStoreError(f"Failed to save session: {e}") from e
        return doc_id

    def update(self, session: Session) -> None:
        """Overwrite the stored fields of an existing session."""
        try:
            self._collection.update_one({"_id": session.id}, {"$set": session.to_dict()})
        except PyMongoError as e:
            raise SessionStoreError(f"Failed to update session {session.id}: {e}") from e

    def delete(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if a session was deleted.
        """
        try:
            result = self._collection.delete_one({"_id": session_id})
        except PyMongoError as e:
            raise SessionStoreError(f"Failed to delete session {session_id}: {e}") from e
        return result.deleted_count > 0

    def get(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        try:
            doc = self._collection.find_one({"_id": session_id})
        except PyMongoError as e:
            raise SessionStoreError(f"Failed to read session {session_id}: {e}") from e
        return Session.from_dict(doc) if doc else None

    def get_sessions_by_range(
        self,
        start: int,
        end: int,
        activity_type: str | None = None,
    ) -> list[Session]:
        """Get sessions overlapping a time range.

        Args:
            start: Range start in epoch milliseconds (inclusive).
            end: Range end in epoch milliseconds (inclusive).
            activity_type: Optional activity filter.

        Returns:
            Sessions, most recent first. Empty list when none match.
        """
        query: dict[str, Any] = {
            "start_time": {"$lte": end},
            "end_time": {"$gte": start},
        }
        if activity_type is not None:
            query["activity_type"] = activity_type

        try:
            cursor = self._collection.find(query).sort("start_time", DESCENDING)
            documents = list(cursor)
        except PyMongoError as e:
            raise SessionStoreError(f"Failed to query sessions: {e}") from e

        sessions = []
        for doc in documents:
            try:
                sessions.append(Session.from_dict(doc))
            except (InvalidSessionError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed session %s: %s", doc.get("_id"), e)
        return sessions


__all__ = ["SessionRepository"]
