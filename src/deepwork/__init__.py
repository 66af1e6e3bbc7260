"""DeepWork Insights - cached natural-language insights for focus sessions.

DeepWork turns a history of timed work sessions into a short insight for
yesterday, last week, last month, or one activity's last 7 days:
- Deterministic calendar windows per insight type
- Data-fingerprinted cache with per-type freshness
- Compact session aggregation for small prompts
- Rate-limited, retrying text generation with a safe fallback

Usage:
    python -m deepwork generate daily
    python -m deepwork generate weekly --force
"""

__version__ = "0.1.0"

from .config import DeepWorkConfig
from .config.loader import load_config
from .insights import InsightOrchestrator, InsightResult

__all__ = [
    "DeepWorkConfig",
    "InsightOrchestrator",
    "InsightResult",
    "__version__",
    "load_config",
]
