"""Contract tests for the insight cache repository.

Tests the MongoDB repository contract for cached insights.
"""

from unittest.mock import MagicMock

import pytest
from mongomock import MongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure

from deepwork.storage.errors import InsightCacheError, StorageError
from deepwork.storage.insight_cache import InsightCacheRepository
from deepwork.storage.models import CachedInsight

WEEK_START = 1_704_672_000_000
WEEK_END = 1_705_276_799_999


def make_entry(
    insight_type: str = "weekly",
    generated_at: int = 1_705_500_000_000,
    text: str = "Mornings were your most focused time.",
    start: int = WEEK_START,
    end: int = WEEK_END,
) -> CachedInsight:
    return CachedInsight(
        insight_type=insight_type,
        generated_at=generated_at,
        data_hash="3f1a9c",
        insight_text=text,
        period_start=start,
        period_end=end,
    )


@pytest.fixture
def mock_db():
    """Create a mock MongoDB database for testing."""
    client = MongoClient()
    return client["deepwork_test"]


@pytest.fixture
def repository(mock_db) -> InsightCacheRepository:
    """Create InsightCacheRepository with mock database."""
    return InsightCacheRepository(mock_db)


class TestInsightCacheGet:
    """Contract tests for InsightCacheRepository.get()."""

    def test_missing_key_returns_none(self, repository: InsightCacheRepository) -> None:
        assert repository.get("weekly", WEEK_START, WEEK_END) is None

    def test_round_trip(self, repository: InsightCacheRepository) -> None:
        entry = make_entry()
        doc_id = repository.upsert(entry)

        stored = repository.get("weekly", WEEK_START, WEEK_END)

        assert stored is not None
        assert stored.id == doc_id
        assert stored.insight_text == entry.insight_text
        assert stored.data_hash == entry.data_hash
        assert stored.generated_at == entry.generated_at
        assert stored.key == entry.key

    def test_key_requires_all_parts(self, repository: InsightCacheRepository) -> None:
        repository.upsert(make_entry())

        assert repository.get("daily", WEEK_START, WEEK_END) is None
        assert repository.get("weekly", WEEK_START + 1, WEEK_END) is None
        assert repository.get("weekly", WEEK_START, WEEK_END + 1) is None

    def test_document_field_names(self, repository: InsightCacheRepository, mock_db) -> None:
        repository.upsert(make_entry())

        doc = mock_db["insights_cache"].find_one({})

        assert doc["time_period_start"] == WEEK_START
        assert doc["time_period_end"] == WEEK_END
        assert doc["insight_type"] == "weekly"


class TestInsightCacheUpsert:
    """Contract tests for InsightCacheRepository.upsert()."""

    def test_upsert_overwrites_same_key(self, repository: InsightCacheRepository) -> None:
        """At most one entry exists per key."""
        first_id = repository.upsert(make_entry(text="old"))
        second_id = repository.upsert(make_entry(text="new", generated_at=1_705_600_000_000))

        stored = repository.get("weekly", WEEK_START, WEEK_END)

        assert first_id == second_id
        assert repository.count() == 1
        assert stored is not None
        assert stored.insight_text == "new"
        assert stored.generated_at == 1_705_600_000_000

    def test_distinct_keys_coexist(self, repository: InsightCacheRepository) -> None:
        repository.upsert(make_entry())
        repository.upsert(make_entry(insight_type="activity_coding_week"))
        repository.upsert(make_entry(start=WEEK_START - 7 * 86_400_000, end=WEEK_START - 1))

        assert repository.count() == 3

    def test_unique_index_enforced(self, repository: InsightCacheRepository, mock_db) -> None:
        repository.upsert(make_entry())

        with pytest.raises(DuplicateKeyError):
            mock_db["insights_cache"].insert_one(make_entry().to_dict())

    def test_driver_error_wrapped(self) -> None:
        database = MagicMock()
        collection = database.__getitem__.return_value
        collection.find_one_and_update.side_effect = OperationFailure("not primary")
        repository = InsightCacheRepository(database)

        with pytest.raises(InsightCacheError) as exc_info:
            repository.upsert(make_entry())

        assert isinstance(exc_info.value, StorageError)

    def test_read_error_wrapped(self) -> None:
        database = MagicMock()
        database.__getitem__.return_value.find_one.side_effect = OperationFailure("boom")
        repository = InsightCacheRepository(database)

        with pytest.raises(InsightCacheError):
            repository.get("weekly", WEEK_START, WEEK_END)


class TestInsightCacheCleanup:
    """Contract tests for cache cleanup."""

    def test_delete_older_than(self, repository: InsightCacheRepository) -> None:
        repository.upsert(make_entry(insight_type="daily", generated_at=1_000))
        repository.upsert(make_entry(insight_type="weekly", generated_at=5_000))

        deleted = repository.delete_older_than(5_000)

        assert deleted == 1
        assert repository.get("daily", WEEK_START, WEEK_END) is None
        assert repository.get("weekly", WEEK_START, WEEK_END) is not None

    def test_delete_for_type(self, repository: InsightCacheRepository) -> None:
        repository.upsert(make_entry())
        repository.upsert(make_entry(start=0, end=1))
        repository.upsert(make_entry(insight_type="daily"))

        assert repository.delete_for_type("weekly") == 2
        assert repository.count() == 1
