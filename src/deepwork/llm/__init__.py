"""Text generation module for DeepWork insights.

Provides the client that turns rendered prompts into insight text.
"""

from .client import (
    FALLBACK_INSIGHT,
    SYSTEM_PROMPT,
    CompletionResult,
    TextGenerationClient,
    TextGenerationConfig,
)
from .errors import (
    LLMAPIError,
    LLMAuthError,
    LLMConnectivityError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    is_retryable,
)
from .ratelimit import RateLimiter

__all__ = [
    "CompletionResult",
    "FALLBACK_INSIGHT",
    "LLMAPIError",
    "LLMAuthError",
    "LLMConnectivityError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMTimeoutError",
    "RateLimiter",
    "SYSTEM_PROMPT",
    "TextGenerationClient",
    "TextGenerationConfig",
    "is_retryable",
]
