"""
TTL Cache
=========

Thread-safe keyed cache whose entries expire a fixed time after insertion.
Expiry is checked lazily on read; ``sweep()`` removes expired entries in bulk.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, Optional, Tuple, TypeVar

from smart_paths.utils.exceptions import CacheCorruptionError
from smart_paths.utils.logging_config import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with its insertion time and lifetime.

    Attributes:
        value: The cached value.
        inserted_at: Clock reading when the value was stored.
        ttl: Lifetime in seconds.
    """
    value: V
    inserted_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.inserted_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl


@dataclass
class CacheStats:
    """Hit/miss counters for a TTL cache."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    corruptions: int = 0
    size: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "corruptions": self.corruptions,
            "size": self.size,
            "hit_ratio": round(self.hit_ratio, 4),
        }


class TTLCache(Generic[K, V]):
    """Keyed cache with per-entry expiry and metrics.

    Entries whose value fails ``validator`` are treated as corrupt: they are
    dropped and the read counts as a miss.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        validator: Optional[Callable[[Any], bool]] = None,
        name: str = "cache",
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Default lifetime of an entry.
            max_size: Optional bound; the oldest entry is evicted when full.
            clock: Monotonic time source (injectable for tests).
            validator: Optional predicate a cached value must satisfy.
            name: Name used in log messages.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._validator = validator
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Return the cached value, or ``default`` on miss/expiry/corruption."""
        entry = self._get_valid_entry(key)
        if entry is None:
            return default
        return entry.value

    def get_entry(self, key: K) -> Optional[CacheEntry[V]]:
        """Return the live entry (with its insertion time), counting as a read."""
        return self._get_valid_entry(key)

    def _get_valid_entry(self, key: K) -> Optional[CacheEntry[V]]:
        with self._lock:
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                self._stats.misses += 1
                return None

            now = self._clock()
            try:
                self._check_entry(key, entry)
            except CacheCorruptionError as e:
                logger.warning(f"{self.name}: {e}")
                self._entries.pop(key, None)
                self._stats.corruptions += 1
                self._stats.misses += 1
                return None

            if entry.is_expired(now):
                del self._entries[key]
                self._stats.expirations += 1
                self._stats.misses += 1
                return None

            self._stats.hits += 1
            return entry

    def _check_entry(self, key: K, entry: Any) -> None:
        if not isinstance(entry, CacheEntry):
            raise CacheCorruptionError(
                "Cache slot does not hold a CacheEntry", key=str(key)
            )
        if self._validator is None:
            return
        try:
            valid = self._validator(entry.value)
        except Exception as e:
            raise CacheCorruptionError(
                "Cache validator raised", key=str(key), cause=e
            )
        if not valid:
            raise CacheCorruptionError("Cached value failed validation", key=str(key))

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> CacheEntry[V]:
        """Store a value, replacing any existing entry for the key."""
        entry = CacheEntry(
            value=value,
            inserted_at=self._clock(),
            ttl=ttl if ttl is not None else self.ttl_seconds,
        )
        with self._lock:
            self._entries.pop(key, None)
            if self.max_size is not None and len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._stats.evictions += 1
            self._entries[key] = entry
        return entry

    def invalidate(self, key: K) -> bool:
        """Remove one entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[K], bool]) -> int:
        """Remove every entry whose key matches the predicate."""
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        """Remove all entries (statistics are kept)."""
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if not isinstance(entry, CacheEntry) or entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]
            self._stats.expirations += len(expired)
        if expired:
            logger.debug(f"{self.name}: swept {len(expired)} expired entries")
        return len(expired)

    def keys(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._entries.keys()))

    def items(self) -> Iterator[Tuple[K, V]]:
        """Snapshot of live (non-expired) key/value pairs."""
        with self._lock:
            now = self._clock()
            return iter([
                (key, entry.value) for key, entry in self._entries.items()
                if isinstance(entry, CacheEntry) and not entry.is_expired(now)
            ])

    def stats(self) -> CacheStats:
        """Get a copy of the current statistics."""
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                expirations=self._stats.expirations,
                evictions=self._stats.evictions,
                corruptions=self._stats.corruptions,
                size=len(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return isinstance(entry, CacheEntry) and not entry.is_expired(self._clock())
