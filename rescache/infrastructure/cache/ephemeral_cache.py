"""Bounded in-process cache of already-decoded values.

Fronts the partition store for computed values (e.g. decoded API payloads)
so repeated lookups skip deserialization and network round-trips. Entries
expire by TTL (checked lazily on read and swept on a fixed interval) and the
cache never holds more than `max_size` entries: when a new key would exceed
capacity, the single oldest-inserted entry is evicted. Reads never change
eviction order.
"""

import asyncio
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Domain Layer Imports
from rescache.domain.interfaces.cache import ValueCache
from rescache.domain.models.common import CacheStats

logger = logging.getLogger(__name__)

# Default Configuration Constants
DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_SECONDS = 5 * 60  # 5 minutes
DEFAULT_SWEEP_INTERVAL_SECONDS = 2 * 60  # 2 minutes


@dataclass
class EphemeralEntry:
    """Internal representation of a cache entry with its insertion time."""
    key: str
    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


def make_key(prefix: str, *args: Any) -> str:
    """Generates a consistent, prefix-readable cache key.

    Mappings and sequences are JSON-encoded with sorted keys so that equal
    arguments always map to the same key.
    """
    parts = []
    for arg in args:
        if isinstance(arg, (dict, list, tuple)):
            parts.append(json.dumps(arg, sort_keys=True, default=str))
        else:
            parts.append(str(arg))
    return f"{prefix}:" + "|".join(parts)


class EphemeralValueCache(ValueCache):
    """Insertion-ordered, TTL-bounded value cache with a periodic sweep.

    A single lock guards the whole instance; every get/set/evict sequence
    runs to completion under it.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the ephemeral cache.

        Args:
            max_size: Maximum number of entries held at once.
            default_ttl: TTL in seconds used when `set` gets no explicit ttl.
            sweep_interval: Seconds between proactive expiry sweeps.
            clock: Monotonic time source; injectable for tests.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be > 0, got {default_ttl}")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, EphemeralEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None
        logger.info(f"EphemeralValueCache initialized (max={max_size}, ttl={default_ttl}s, sweep={sweep_interval}s)")

    # --- ValueCache Interface Implementation ---

    def get(self, key: str) -> Optional[Any]:
        """Returns the live value for a key, removing it if it has expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Ephemeral MISS for key: {key}")
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug(f"Ephemeral EXPIRED key on read: {key}")
                return None
            logger.debug(f"Ephemeral HIT for key: {key}")
            return entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Stores a value, evicting the oldest-inserted entry if at capacity."""
        effective_ttl = self.default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {effective_ttl}")
        with self._lock:
            # Overwrite keeps the key's original insertion position
            if key not in self._entries:
                while len(self._entries) >= self.max_size:
                    oldest_key = next(iter(self._entries))
                    del self._entries[oldest_key]
                    logger.debug(f"Ephemeral EVICTED key (oldest insertion): {oldest_key}")
            self._entries[key] = EphemeralEntry(
                key=key, value=value, inserted_at=self._clock(), ttl=effective_ttl
            )
            logger.debug(f"Ephemeral PUT key: {key} TTL: {effective_ttl}s")

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                logger.debug(f"Ephemeral DELETED key: {key}")
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared ephemeral cache: {size} entries")

    def invalidate_prefix(self, prefix: str) -> int:
        """Removes every entry whose key starts with prefix."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            logger.info(f"Invalidated {len(doomed)} ephemeral entries with prefix '{prefix}'")
        return len(doomed)

    def sweep(self) -> int:
        """Removes expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug(f"Ephemeral sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
            total = len(self._entries)
        return CacheStats(total=total, valid=total - expired, expired=expired, max_size=self.max_size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # --- Sweep Loop ---

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Starts the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Ephemeral sweep loop started (every {self.sweep_interval}s)")

    async def stop(self) -> None:
        """Cancels the sweep loop and waits for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Ephemeral sweep loop stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Ephemeral sweep failed: {e}", exc_info=True)
