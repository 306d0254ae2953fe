"""TTL-based caching service."""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from ..errors import CacheMiss, InvalidPayload

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0  # 5 minutes


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def keys(self) -> list[str]: ...


@dataclass(frozen=True)
class CacheEntry:
    """A single cache entry."""
    key: str
    payload: Any
    written_at: float


class TimedCache:
    """In-memory cache with a fixed TTL, optionally written through to storage.

    An entry is valid while ``now - written_at < ttl``. Expired entries are
    evicted lazily on the next read.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
        storage: Optional[KeyValueStorage] = None,
    ):
        self.ttl = ttl
        self._clock = clock
        self._storage = storage
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, written_at: float) -> bool:
        """Whether something written at written_at is still within the TTL."""
        return self._clock() - written_at < self.ttl

    def _load_stored(self, key: str) -> CacheEntry:
        raw = self._storage.get(key) if self._storage else None
        if raw is None:
            raise CacheMiss(key)
        try:
            record = json.loads(raw)
            return CacheEntry(
                key=key,
                payload=record["payload"],
                written_at=float(record["written_at"]),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise InvalidPayload(f"corrupted cache record for {key!r}") from e

    def _lookup(self, key: str) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            try:
                entry = self._load_stored(key)
            except InvalidPayload as e:
                logger.warning("%s; discarding", e)
                self._storage.remove(key)
                raise CacheMiss(key) from e
            self._entries[key] = entry

        if not self.is_fresh(entry.written_at):
            self._evict(key)
            raise CacheMiss(key)
        return entry

    def _evict(self, key: str) -> None:
        self._entries.pop(key, None)
        if self._storage:
            self._storage.remove(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Get cached data if not expired."""
        with self._lock:
            try:
                return self._lookup(key).payload
            except CacheMiss:
                return default

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Get the valid entry for key, including its write time."""
        with self._lock:
            try:
                return self._lookup(key)
            except CacheMiss:
                return None

    def has(self, key: str) -> bool:
        """Check whether a valid entry exists for key."""
        return self.entry(key) is not None

    def set(self, key: str, payload: Any) -> None:
        """Set cache data, replacing any previous entry."""
        entry = CacheEntry(key=key, payload=payload, written_at=self._clock())
        record = None
        if self._storage:
            record = json.dumps({"payload": payload, "written_at": entry.written_at})
        with self._lock:
            self._entries[key] = entry
            if record is not None:
                self._storage.set(key, record)

    def clear(self, key: str) -> None:
        """Invalidate a cache entry. Clearing an absent key is a no-op."""
        with self._lock:
            self._evict(key)

    def clear_all(self, keys: Optional[list[str]] = None) -> None:
        """Clear all cache entries, including ones only present in storage."""
        with self._lock:
            stored = set(self._storage.keys()) if self._storage else set()
            for key in set(self._entries) | stored | set(keys or ()):
                self._evict(key)

    def keys(self) -> list[str]:
        """Keys currently held in memory (expired ones until next read)."""
        with self._lock:
            return list(self._entries)
