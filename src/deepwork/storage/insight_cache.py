"""MongoDB repository for cached insights.

Holds at most one document per (insight_type, time_period_start,
time_period_end); regeneration overwrites it in place.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from .errors import InsightCacheError
from .models import CachedInsight

if TYPE_CHECKING:
    from pymongo.collection import Collection
    from pymongo.database import Database

logger = logging.getLogger(__name__)


class InsightCacheRepository:
    """Repository for generated insight storage."""

    COLLECTION_NAME = "insights_cache"

    def __init__(self, database: Database[dict[str, Any]]) -> None:
        """Initialize repository with database connection.

        Args:
            database: MongoDB database instance.
        """
        self._collection: Collection[dict[str, Any]] = database[self.COLLECTION_NAME]
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        """Create indexes, including the unique cache key."""
        self._collection.create_index(
            [
                ("insight_type", ASCENDING),
                ("time_period_start", ASCENDING),
                ("time_period_end", ASCENDING),
            ],
            unique=True,
        )
        self._collection.create_index("generated_at")

    @staticmethod
    def _key_filter(insight_type: str, start: int, end: int) -> dict[str, Any]:
        return {
            "insight_type": insight_type,
            "time_period_start": start,
            "time_period_end": end,
        }

    def get(self, insight_type: str, start: int, end: int) -> CachedInsight | None:
        """Get the cached insight for a key.

        Args:
            insight_type: Insight type.
            start: Period start in epoch milliseconds.
            end: Period end in epoch milliseconds.

        Returns:
            Cached insight or None if not found.

        Raises:
            InsightCacheError: If the read fails.
        """
        try:
            doc = self._collection.find_one(self._key_filter(insight_type, start, end))
        except PyMongoError as e:
            raise InsightCacheError(f"Failed to read cached insight: {e}") from e

        return CachedInsight.from_dict(doc) if doc else None

    def upsert(self, entry: CachedInsight) -> str:
        """Save an insight, replacing any entry with the same key.

        Args:
            entry: Insight to store.

        Returns:
            Document ID of the stored entry.

        Raises:
            InsightCacheError: If the write fails.
        """
        try:
            doc = self._collection.find_one_and_update(
                self._key_filter(*entry.key),
                {"$set": entry.to_dict()},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise InsightCacheError(f"Failed to store cached insight: {e}") from e

        logger.debug("Cached %s insight for %d-%d", *entry.key)
        return str(doc["_id"])

    def delete_older_than(self, timestamp_ms: int) -> int:
        """Delete insights generated before a cutoff.

        Args:
            timestamp_ms: Cutoff in epoch milliseconds.

        Returns:
            Number of deleted entries.
        """
        try:
            result = self._collection.delete_many({"generated_at": {"$lt": timestamp_ms}})
        except PyMongoError as e:
            raise InsightCacheError(f"Failed to purge cached insights: {e}") from e
        return result.deleted_count

    def delete_for_type(self, insight_type: str) -> int:
        """Delete every cached insight of one type.

        Returns:
            Number of deleted entries.
        """
        try:
            result = self._collection.delete_many({"insight_type": insight_type})
        except PyMongoError as e:
            raise InsightCacheError(f"Failed to delete cached insights: {e}") from e
        return result.deleted_count

    def count(self) -> int:
        return self._collection.count_documents({})


__all__ = ["InsightCacheRepository"]
