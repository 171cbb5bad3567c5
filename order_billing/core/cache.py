from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACCESS_TOKEN_KEY = "plenty:access_token"
COUNTRIES_KEY = "plenty:countries"
ORDER_STATUSES_KEY = "plenty:order_statuses"


def shipping_rate_key(country_id: int) -> str:
    return f"shipping_rate:{country_id}"


class Clock(Protocol):
    def __call__(self) -> float:
        ...


@dataclass
class _Entry:
    value: Any
    expires_at: float


class InMemoryCache:
    """Process-wide key/value cache with a per-key time-to-live.

    Refreshes are not coordinated: two callers missing the same key at the
    same time both run the factory and the last write wins.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def remember(self, key: str, ttl_seconds: float, factory: Callable[[], T]) -> T:
        # None is never stored, so a missing value is looked up again next time.
        with self._lock:
            entry = self._live_entry(key)
        if entry is not None:
            return entry.value
        value = factory()
        if value is not None:
            self.set(key, value, ttl_seconds)
        else:
            logger.debug("cache remember skipped storing None: key=%s", key)
        return value


@lru_cache(maxsize=1)
def get_cache() -> InMemoryCache:
    return InMemoryCache()
