from __future__ import annotations
import math, threading, time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

DEFAULT_TTL_MS = 60_000
TRACKED_PAIRS_KEY = "tradingpair"

_UNSET: Any = object()


def cache_key(venue: str, pair: str) -> str:
    return f"{venue}:{pair}"


@dataclass
class CacheEntry:
    value: Any
    expires_at: float        # clock seconds; inf never expires

    def visible(self, now: float) -> bool:
        return now <= self.expires_at


class SnapshotCache:
    """
    Process-wide key -> value store with per-entry expiry.

    Every call runs inside one critical section. Expired entries are
    dropped on the next read; there is no background sweep.
    """

    def __init__(self, default_ttl_ms: int = DEFAULT_TTL_MS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = _UNSET) -> None:
        if ttl_ms is _UNSET:
            ttl_ms = self.default_ttl_ms
        with self._lock:
            expires = math.inf if ttl_ms is None else self._clock() + ttl_ms / 1000
            self._store[key] = CacheEntry(value=value, expires_at=expires)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if not entry.visible(self._clock()):
                del self._store[key]
                return None
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def keys(self) -> List[str]:
        # raw view, expired-but-unread entries included
        with self._lock:
            return list(self._store)
