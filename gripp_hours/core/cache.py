"""
In-process TTL + LRU cache.

The same class backs both the server-side cache in front of the
reconciliation engine and the client-side cache in front of the HTTP call.
Each owner creates its own instance.

Expiry is driven by insertion time; eviction order is driven by a separate
access-time map that is refreshed on every hit. Concurrent writers to the
same key are last-write-wins.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from gripp_hours.core.config import settings
from gripp_hours.core.logging import get_logger
from gripp_hours.models.stats import CacheStats

logger = get_logger(__name__)

EMPLOYEE_WEEK = "employeeWeek"
EMPLOYEE_MONTH = "employeeMonth"


def employee_week_key(year: int, week: int) -> str:
    return f"{EMPLOYEE_WEEK}:{year}-W{week:02d}"


def employee_month_key(year: int, month: int) -> str:
    return f"{EMPLOYEE_MONTH}:{year}-{month:02d}"


def key_kind(key: Hashable) -> str:
    """The endpoint kind of a key: the prefix before ':' (or '_')."""
    text = str(key)
    for separator in (":", "_"):
        if separator in text:
            return text.split(separator, 1)[0]
    return text


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float


class TTLCache:
    """
    A bounded key/value store with time-based expiry.

    Args:
        ttl: Seconds an entry stays valid after insertion
        max_size: Number of entries before the least recently accessed one
            is evicted
        clock: Monotonic time source, replaceable in tests
        name: Label used in log lines
    """

    def __init__(
        self,
        ttl: float = settings.CACHE_TTL_SECONDS,
        max_size: int = settings.CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._access_times: dict[Hashable, float] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None on a miss or expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"[{self.name}] MISS {key}")
            return None

        now = self._clock()
        if now - entry.inserted_at >= self.ttl:
            logger.debug(f"[{self.name}] EXPIRED {key}")
            self.delete(key)
            return None

        self._access_times[key] = now
        logger.debug(f"[{self.name}] HIT {key}")
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_least_recently_used()

        now = self._clock()
        self._entries[key] = CacheEntry(value=value, inserted_at=now)
        self._access_times[key] = now
        logger.debug(f"[{self.name}] SET {key}")

    def delete(self, key: Hashable) -> bool:
        self._access_times.pop(key, None)
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._access_times.clear()
        logger.info(f"[{self.name}] cleared {count} entries")
        return count

    def has(self, key: Hashable) -> bool:
        """True if a live entry exists. Does not touch recency."""
        entry = self._entries.get(key)
        return entry is not None and self._clock() - entry.inserted_at < self.ttl

    def stats(self) -> CacheStats:
        self._purge_expired()
        by_kind: dict[str, int] = {}
        for key in self._entries:
            kind = key_kind(key)
            by_kind[kind] = by_kind.get(kind, 0) + 1
        return CacheStats(
            total=len(self._entries),
            by_kind=by_kind,
            keys=[str(key) for key in self._entries],
        )

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_least_recently_used(self) -> None:
        # Linear scan of the access map
        oldest_key = None
        oldest_time = None
        for key, accessed_at in self._access_times.items():
            if oldest_time is None or accessed_at < oldest_time:
                oldest_key, oldest_time = key, accessed_at

        if oldest_key is not None:
            self.delete(oldest_key)
            logger.debug(f"[{self.name}] EVICT {oldest_key}")

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.inserted_at >= self.ttl
        ]
        for key in expired:
            self.delete(key)
