"""Duplicate call suppression.

Concurrent callers asking for the same key share one execution: the first
caller runs the function, later callers block until it finishes and receive
its result (or its exception).
"""

import logging
import threading
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Call(Generic[T]):
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: T | None = None
        self.error: BaseException | None = None
        self.waiters = 0


class SingleFlight(Generic[T]):
    """Runs at most one in-flight call per key."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[Hashable, _Call[T]] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> tuple[T, bool]:
        """Run ``fn`` unless a call for ``key`` is already in flight.

        Args:
            key: Deduplication key
            fn: Work to run

        Returns:
            Tuple of (result, shared). ``shared`` is True when the result came
            from another caller's execution.
        """
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.waiters += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            logger.debug("Waiting for in-flight call %s", key)
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, True  # type: ignore[return-value]

        try:
            call.result = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()

        return call.result, call.waiters > 0

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def waiting(self, key: Hashable) -> int:
        """Number of callers blocked on the in-flight call for ``key``."""
        with self._lock:
            call = self._calls.get(key)
            return call.waiters if call is not None else 0


__all__ = ["SingleFlight"]
