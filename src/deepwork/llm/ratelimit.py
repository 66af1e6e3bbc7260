"""Request spacing for the text generation client."""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforces a minimum interval between outgoing requests.

    One instance is owned by a client and shared by every call made
    through it, whichever insight triggered the call.
    """

    def __init__(
        self,
        min_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            min_interval_seconds: Minimum spacing between requests.
            clock: Monotonic clock returning seconds.
            sleep: Function used to wait.
        """
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request: float | None = None
        self._request_count = 0

    def acquire(self) -> float:
        """Block until a request may be sent, then record it.

        Returns:
            Seconds spent waiting.
        """
        with self._lock:
            waited = 0.0
            now = self._clock()
            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self._min_interval:
                    waited = self._min_interval - elapsed
                    logger.debug("Rate limiting: waiting %.3fs", waited)
                    self._sleep(waited)
                    now = self._clock()
            self._last_request = now
            self._request_count += 1
            return waited

    @property
    def last_request_time(self) -> float | None:
        """Clock value of the most recent request, if any."""
        return self._last_request

    @property
    def request_count(self) -> int:
        """Number of requests let through so far."""
        return self._request_count


__all__ = ["RateLimiter"]
