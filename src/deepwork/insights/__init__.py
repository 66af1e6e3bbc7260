"""Insight generation for DeepWork.

Turns a window of focus sessions into a short cached natural-language insight.
"""

from .aggregator import ActivityStats, DataAggregator, Summary, TopActivity, Trends
from .cache import CacheValidator, FreshnessPolicy
from .errors import InsightError, UnknownInsightTypeError
from .generator import (
    InsightCacheStore,
    InsightOrchestrator,
    InsightResult,
    SessionDataSource,
    TextGenerator,
)
from .hashing import hash_sessions
from .periods import (
    DAILY,
    MONTHLY,
    WEEKLY,
    TimePeriod,
    TimePeriodResolver,
    activity_insight_type,
)
from .prompts import PromptBuilder
from .singleflight import SingleFlight

__all__ = [
    "ActivityStats",
    "CacheValidator",
    "DAILY",
    "DataAggregator",
    "FreshnessPolicy",
    "InsightCacheStore",
    "InsightError",
    "InsightOrchestrator",
    "InsightResult",
    "MONTHLY",
    "PromptBuilder",
    "SessionDataSource",
    "SingleFlight",
    "Summary",
    "TextGenerator",
    "TimePeriod",
    "TimePeriodResolver",
    "TopActivity",
    "Trends",
    "UnknownInsightTypeError",
    "WEEKLY",
    "activity_insight_type",
    "hash_sessions",
]
