"""Configuration module for DeepWork insights.

This module provides configuration loading and profile management.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass
class LLMConfig:
    """Text generation configuration.

    The API key is never part of the file config; it is read from
    ANTHROPIC_API_KEY.
    """

    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 300
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    min_request_interval: float = 1.0


@dataclass
class StorageConfig:
    """MongoDB configuration."""

    uri: str = "mongodb://localhost:27017"
    database: str = "deepwork"
    max_pool_size: int = 10
    connect_timeout_ms: int = 5000
    server_selection_timeout_ms: int = 5000


@dataclass
class InsightsConfig:
    """Insight generation configuration."""

    timezone: str = "UTC"
    max_description_samples: int = 3
    top_activities: int = 3
    hours_precision: int = 2
    include_trends: bool = True
    daily_max_age_days: float = 1
    weekly_max_age_days: float = 7
    monthly_max_age_days: float = 30
    activity_max_age_days: float = 7
    background_refresh_ratio: float = 0.8
    retention_days: int = 90


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class DeepWorkConfig:
    """Main DeepWork configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    insights: InsightsConfig = field(default_factory=InsightsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigLoader(Protocol):
    """Protocol for configuration loading."""

    def load(self, path: Path) -> DeepWorkConfig:
        """Load configuration from file path."""
        ...

    def load_profile(self, profile: str) -> DeepWorkConfig:
        """Load configuration by profile name (dev, prod, test)."""
        ...

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        ...


# Public API
__all__ = [
    "ConfigLoader",
    "DeepWorkConfig",
    "InsightsConfig",
    "LLMConfig",
    "LoggingConfig",
    "StorageConfig",
]
