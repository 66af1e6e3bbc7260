"""Error types for the text generation client.

Each error carries a ``retryable`` flag used by the retry loop.
"""

# Lower-cased substrings that mark an otherwise unclassified error as transient.
RETRYABLE_MARKERS = (
    "rate_limit",
    "rate limit",
    "timeout",
    "timed out",
    "network",
    "econnreset",
    "etimedout",
    "overloaded",
)


class LLMError(Exception):
    """Base exception for text generation errors."""

    retryable: bool = False


class LLMRateLimitError(LLMError):
    """Raised when the API rejects a request for exceeding its rate limit."""

    retryable = True


class LLMTimeoutError(LLMError):
    """Raised when a request times out."""

    retryable = True


class LLMConnectivityError(LLMError):
    """Raised when the API cannot be reached."""

    retryable = True


class LLMAuthError(LLMError):
    """Raised when authentication fails."""

    pass


class LLMResponseError(LLMError):
    """Raised when the API returns an empty or malformed completion."""

    pass


class LLMAPIError(LLMError):
    """Raised when the API returns an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message.
            status_code: HTTP status code if available.
        """
        super().__init__(message)
        self.status_code = status_code
        # Server-side failures and overload are transient
        self.retryable = status_code is not None and (status_code >= 500 or status_code == 429)


def is_retryable(error: BaseException) -> bool:
    """Decide whether an error should be retried.

    Known errors use their ``retryable`` flag; anything else is matched
    against ``RETRYABLE_MARKERS``.
    """
    if isinstance(error, LLMError):
        return error.retryable
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


__all__ = [
    "LLMAPIError",
    "LLMAuthError",
    "LLMConnectivityError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMTimeoutError",
    "RETRYABLE_MARKERS",
    "is_retryable",
]
