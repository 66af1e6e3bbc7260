"""Builds configured components from a DeepWorkConfig."""

from datetime import timedelta

from .config import DeepWorkConfig
from .insights.aggregator import DataAggregator
from .insights.cache import CacheValidator, FreshnessPolicy
from .insights.generator import InsightCacheStore, InsightOrchestrator, SessionDataSource
from .insights.periods import TimePeriodResolver
from .llm.client import TextGenerationClient, TextGenerationConfig
from .storage.client import MongoStorageClient


def create_text_client(config: DeepWorkConfig) -> TextGenerationClient:
    """Create the text generation client, API key from the environment."""
    llm = config.llm
    return TextGenerationClient(
        TextGenerationConfig.from_env(
            model=llm.model,
            max_tokens=llm.max_tokens,
            temperature=llm.temperature,
            timeout_seconds=llm.timeout_seconds,
            max_retries=llm.max_retries,
            retry_base_delay=llm.retry_base_delay,
            min_request_interval=llm.min_request_interval,
        )
    )


def create_storage(config: DeepWorkConfig) -> MongoStorageClient:
    storage = config.storage
    return MongoStorageClient(
        uri=storage.uri,
        database_name=storage.database,
        max_pool_size=storage.max_pool_size,
        connect_timeout_ms=storage.connect_timeout_ms,
        server_selection_timeout_ms=storage.server_selection_timeout_ms,
    )


def create_freshness_policy(config: DeepWorkConfig) -> FreshnessPolicy:
    insights = config.insights
    return FreshnessPolicy(
        daily=timedelta(days=insights.daily_max_age_days),
        weekly=timedelta(days=insights.weekly_max_age_days),
        monthly=timedelta(days=insights.monthly_max_age_days),
        activity=timedelta(days=insights.activity_max_age_days),
    )


def create_orchestrator(
    config: DeepWorkConfig,
    session_source: SessionDataSource,
    cache_store: InsightCacheStore,
    text_client: TextGenerationClient | None = None,
) -> InsightOrchestrator:
    """Wire an orchestrator from config and its collaborators.

    Args:
        config: Loaded configuration
        session_source: Source of sessions
        cache_store: Insight cache persistence
        text_client: Text generator; created from config if not given

    Returns:
        Configured InsightOrchestrator
    """
    insights = config.insights
    return InsightOrchestrator(
        session_source=session_source,
        cache_store=cache_store,
        text_generator=text_client or create_text_client(config),
        resolver=TimePeriodResolver(insights.timezone),
        aggregator=DataAggregator(
            max_description_samples=insights.max_description_samples,
            top_activities=insights.top_activities,
            hours_precision=insights.hours_precision,
        ),
        validator=CacheValidator(
            policy=create_freshness_policy(config),
            background_refresh_ratio=insights.background_refresh_ratio,
        ),
        include_trends=insights.include_trends,
    )


__all__ = [
    "create_freshness_policy",
    "create_orchestrator",
    "create_storage",
    "create_text_client",
]
