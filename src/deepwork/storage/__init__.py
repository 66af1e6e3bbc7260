"""MongoDB storage for DeepWork.

Provides session and insight cache repositories.
"""

from .client import MongoStorageClient, retry_on_connection_failure
from .errors import InsightCacheError, SessionStoreError, StorageError
from .insight_cache import InsightCacheRepository
from .models import CachedInsight
from .sessions import SessionRepository

__all__ = [
    "CachedInsight",
    "InsightCacheError",
    "InsightCacheRepository",
    "MongoStorageClient",
    "SessionRepository",
    "SessionStoreError",
    "StorageError",
    "retry_on_connection_failure",
]
