"""Text generation client for insight text.

Wraps the Anthropic Messages API with request spacing, retry with
exponential backoff, and a fallback string when generation fails.
"""

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass

import anthropic

from deepwork.llm.errors import (
    LLMAPIError,
    LLMAuthError,
    LLMConnectivityError,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    is_retryable,
)
from deepwork.llm.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a productivity coach writing short insights about a user's focus sessions.

GUIDELINES:
- Ground every statement in the numbers and notes you are given
- Make one specific observation rather than generic encouragement
- Keep it to 2-3 sentences and under 80 words
- Plain prose only: no lists, headings, or markdown
- Never invent sessions, activities, or numbers that are not in the data"""

FALLBACK_INSIGHT = (
    "Great work on your focus sessions! Keep building your deep work habit. "
    "Track your progress over time to see improvements in your productivity patterns."
)


@dataclass
class TextGenerationConfig:
    """Configuration for the text generation client."""

    api_key: str | None = None
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 300
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    min_request_interval: float = 1.0

    @classmethod
    def from_env(cls, **overrides: object) -> "TextGenerationConfig":
        """Create config with the API key taken from the environment.

        A missing key is not an error here: the client then runs
        unconfigured and answers every request with the fallback text.

        Args:
            **overrides: Field values to use instead of the defaults.

        Returns:
            TextGenerationConfig with ``api_key`` from ANTHROPIC_API_KEY.
        """
        api_key = os.environ.get("ANTHROPIC_API_KEY", "").strip() or None
        return cls(api_key=api_key, **overrides)  # type: ignore[arg-type]


@dataclass
class CompletionResult:
    """Outcome of a completion request.

    ``success`` is False whenever ``text`` is the fallback string.
    """

    text: str
    success: bool
    attempts: int = 0
    model: str | None = None
    tokens_used: int = 0
    error: str | None = None


class TextGenerationClient:
    """Client for generating insight text.

    Never raises to its caller: unrecoverable failures end in
    ``FALLBACK_INSIGHT`` with ``success=False``.
    """

    def __init__(
        self,
        config: TextGenerationConfig,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize client.

        Args:
            config: Configuration for the client.
            rate_limiter: Shared limiter. Created from config if not given.
            sleep: Function used for backoff waits.
        """
        self._config = config
        self._sleep = sleep
        self._rate_limiter = rate_limiter or RateLimiter(
            min_interval_seconds=config.min_request_interval
        )
        self._client: anthropic.Anthropic | None = None
        if config.api_key:
            # Retries are handled here, not by the SDK
            self._client = anthropic.Anthropic(
                api_key=config.api_key,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
        else:
            logger.warning("ANTHROPIC_API_KEY not configured, insights will use fallback text")

    @property
    def is_configured(self) -> bool:
        """Whether an API key was supplied."""
        return self._client is not None

    def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        """Generate a completion for the prompt.

        Args:
            prompt: Rendered insight prompt.
            max_tokens: Override for the configured output token cap.
            temperature: Override for the configured sampling temperature.

        Returns:
            CompletionResult holding either model output or the fallback.
        """
        client = self._client
        if client is None:
            return CompletionResult(
                text=FALLBACK_INSIGHT,
                success=False,
                error="Text generation client is not configured",
            )

        max_attempts = self._config.max_retries + 1
        last_error: BaseException | None = None

        for attempt in range(1, max_attempts + 1):
            self._rate_limiter.acquire()
            logger.debug("Generating insight (attempt %d/%d)", attempt, max_attempts)

            try:
                text, model, tokens_used = self._send(
                    client,
                    prompt,
                    max_tokens if max_tokens is not None else self._config.max_tokens,
                    temperature if temperature is not None else self._config.temperature,
                )
            except Exception as e:
                last_error = e
                if not is_retryable(e):
                    logger.error("Insight generation failed with non-retryable error: %s", e)
                    break
                if attempt >= max_attempts:
                    logger.error(
                        "Insight generation failed after %d attempts: %s", attempt, e
                    )
                    break
                delay = self._retry_delay(attempt)
                logger.warning(
                    "Insight generation failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt,
                    max_attempts,
                    delay,
                    e,
                )
                self._sleep(delay)
                continue

            logger.info("Insight generated (%d tokens, attempt %d)", tokens_used, attempt)
            return CompletionResult(
                text=text,
                success=True,
                attempts=attempt,
                model=model,
                tokens_used=tokens_used,
            )

        logger.error("Using fallback insight text")
        return CompletionResult(
            text=FALLBACK_INSIGHT,
            success=False,
            attempts=attempt,
            error=str(last_error) if last_error else None,
        )

    def _retry_delay(self, failed_attempts: int) -> float:
        """Backoff delay after the given number of failed attempts."""
        return float(self._config.retry_base_delay * (2**failed_attempts))

    def _send(
        self,
        client: anthropic.Anthropic,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, str, int]:
        """Send one request and translate SDK errors.

        Returns:
            Tuple of (text, model, tokens_used).

        Raises:
            LLMError: Classified error for the retry loop.
        """
        try:
            response = client.messages.create(
                model=self._config.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AuthenticationError as e:
            raise LLMAuthError("Invalid API key. Please check your ANTHROPIC_API_KEY.") from e
        except anthropic.RateLimitError as e:
            raise LLMRateLimitError(f"Rate limit exceeded: {e.message}") from e
        except anthropic.APITimeoutError as e:
            # Catch timeout BEFORE connection error (timeout is a subclass)
            raise LLMTimeoutError(
                f"Request timed out after {self._config.timeout_seconds} seconds."
            ) from e
        except anthropic.APIConnectionError as e:
            raise LLMConnectivityError(f"Failed to connect to API: {e}") from e
        except anthropic.APIStatusError as e:
            raise LLMAPIError(f"API error: {e.message}", status_code=e.status_code) from e

        text = ""
        if response.content:
            text = getattr(response.content[0], "text", "") or ""
        text = text.strip()
        if not text:
            raise LLMResponseError("Empty response from API")

        tokens_used = response.usage.input_tokens + response.usage.output_tokens
        return text, response.model, tokens_used

    def get_stats(self) -> dict[str, object]:
        """Get usage statistics.

        Returns:
            Dict with request count, last request time and configuration state.
        """
        return {
            "total_requests": self._rate_limiter.request_count,
            "last_request_time": self._rate_limiter.last_request_time,
            "configured": self.is_configured,
        }


__all__ = [
    "CompletionResult",
    "FALLBACK_INSIGHT",
    "SYSTEM_PROMPT",
    "TextGenerationClient",
    "TextGenerationConfig",
]
