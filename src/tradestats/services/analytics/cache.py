"""Bounded LRU cache for analytics results, keyed by fingerprint|settings key."""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from tradestats.libraries.performance.models import AnalyticsResult
from tradestats.services.compute.models import BridgeMode


@dataclass(frozen=True)
class CacheEntry:
    result: AnalyticsResult
    ms: float
    mode: BridgeMode
    expires_at: Optional[float]


def cache_key(fingerprint: str, settings_key: str) -> str:
    return f"{fingerprint}|{settings_key}"


class ResultCache:
    """
    Least-recently-used result cache with optional time-to-live.

    Args:
        max_size: Maximum number of entries; the least recently used is evicted first
        ttl_seconds: Entry lifetime, or None for no expiry
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        max_size: int = 16,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key and mark it most recently used."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def put(self, key: str, result: AnalyticsResult, ms: float, mode: BridgeMode) -> None:
        expires_at = None if self._ttl is None else self._clock() + self._ttl
        self._entries[key] = CacheEntry(result=result, ms=ms, mode=mode, expires_at=expires_at)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None
