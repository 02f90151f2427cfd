import logging
import threading
import time
from typing import Callable, Protocol

from phone_auth.core.errors import RateLimited

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    def attempts(self, key: str) -> int:
        """Hits counted in the current window (0 when there is none)."""
        ...

    def hit(self, key: str, decay_seconds: int) -> int:
        """Increment the counter, opening the window on the first hit; return the new count."""
        ...

    def available_in(self, key: str) -> int:
        """Seconds until the current window closes (0 when there is none)."""
        ...

    def clear(self, key: str) -> None:
        ...


class InMemoryRateLimitStore:
    """
    Process-local fixed-window counters.

    For tests and single-process development; use RedisRateLimitStore when
    more than one worker serves requests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._buckets: dict[str, dict] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, decay_seconds: int) -> int:
        with self._lock:
            now = self.clock()
            bucket = self._buckets.get(key)
            if bucket is None or bucket["expires_at"] <= now:
                bucket = {"count": 0, "expires_at": now + decay_seconds}
                self._buckets[key] = bucket
            bucket["count"] += 1
            return bucket["count"]

    def attempts(self, key: str) -> int:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket["expires_at"] <= self.clock():
                return 0
            return bucket["count"]

    def available_in(self, key: str) -> int:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return 0
            remaining = bucket["expires_at"] - self.clock()
            if remaining <= 0:
                return 0
            return int(remaining + 0.999)

    def clear(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)


class RateLimiter:
    """Guards keys with "max N hits per decay window" policies."""

    def __init__(self, store: RateLimitStore):
        self.store = store

    def guard(self, key: str, max_attempts: int, decay_seconds: int) -> None:
        """
        Count one hit against key unless the window is already full.

        Raises:
            RateLimited: the window already holds max_attempts hits; carries
                the seconds until the window closes. Rejected calls are not counted.
        """
        if self.store.attempts(key) >= max_attempts:
            retry_after = max(1, self.store.available_in(key))
            logger.warning("Rate limit hit for %s (retry in %ss)", key, retry_after)
            raise RateLimited(retry_after)
        self.store.hit(key, decay_seconds)

    def available_in(self, key: str) -> int:
        return self.store.available_in(key)

    def clear(self, key: str) -> None:
        self.store.clear(key)
