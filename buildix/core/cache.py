"""
Process-wide cache for slowly-changing configuration.

Entries carry an explicit TTL and are dropped by the write path that owns
them via invalidate(). The clock is injectable so tests stay deterministic.
"""
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Keyed cache with per-call TTL and explicit invalidation."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get_or_refresh(self, key: str, ttl: float, loader: Callable[[], Any]) -> Any:
        """Return the cached value for key, calling loader when missing or older than ttl seconds."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < ttl:
                return entry[1]

        # Load outside the lock; a concurrent refresh just overwrites with fresher data
        value = loader()
        with self._lock:
            self._entries[key] = (self._clock(), value)
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_config_cache = TTLCache()


def get_config_cache() -> TTLCache:
    return _config_cache


def set_config_cache(cache: Optional[TTLCache]) -> None:
    """Swap the process-wide cache (tests); None restores a fresh default."""
    global _config_cache
    _config_cache = cache or TTLCache()
