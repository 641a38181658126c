"""
valpipe Result Cache

TTL- and size-bounded LRU cache for validator and rule results.

Keys combine the validator/rule name, a structural hash of the input
value (independent of dict key order), a hash of the active config and a
schema-version tag.

Concurrent validate() calls racing on one key may both miss and both
compute; the second write simply replaces the first with an equivalent
result.
"""

from __future__ import annotations
from collections import OrderedDict
from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
import hashlib
import json
import logging
import math

from .clock import Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# STRUCTURAL HASHING
# =============================================================================

def _normalize(value: Any) -> Any:
    """Reduce a value to JSON-compatible primitives with a canonical shape."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return {"__float__": repr(value)}
        return value
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": bytes(value).hex()}
    if isinstance(value, dict):
        if all(isinstance(k, str) for k in value):
            return {k: _normalize(v) for k, v in value.items()}
        # Non-string keys keep their type: {1: x} and {"1": x} differ
        pairs = [[_normalize(k), _normalize(v)] for k, v in value.items()]
        return {"__dict__": sorted(pairs, key=_sort_key)}
    if isinstance(value, tuple):
        return {"__tuple__": [_normalize(v) for v in value]}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items = [_normalize(v) for v in value]
        return {"__set__": sorted(items, key=_sort_key)}
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _normalize(getattr(value, f.name)) for f in fields(value)}
    if hasattr(value, "model_dump"):
        return _normalize(value.model_dump())
    if hasattr(value, "pattern") and hasattr(value, "flags"):
        return {"__pattern__": value.pattern, "flags": value.flags}
    return repr(value)


def _sort_key(item: Any) -> str:
    return json.dumps(item, sort_keys=True, default=str)


def stable_hash(value: Any, length: int = 16) -> str:
    """
    Deterministic structural hash.

    Two dicts with the same items in different insertion order hash equally.
    """
    content = json.dumps(
        _normalize(value),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(content.encode()).hexdigest()[:length]


@dataclass(frozen=True)
class CacheKey:
    """Identity of a cached result."""
    name: str
    value_hash: str
    config_hash: str
    schema_version: str

    def as_string(self) -> str:
        return f"{self.name}:{self.value_hash}:{self.config_hash}:{self.schema_version}"

    def __str__(self) -> str:
        return self.as_string()


def create_cache_key(
    name: str,
    value: Any,
    config: Any = None,
    schema_version: str = "1.0.0",
) -> CacheKey:
    """Build a cache key for running `name` over `value` with `config`."""
    return CacheKey(
        name=name,
        value_hash=stable_hash(value),
        config_hash=stable_hash(config),
        schema_version=str(schema_version),
    )


# =============================================================================
# CACHE
# =============================================================================

@dataclass
class CacheEntry(Generic[T]):
    """A cached result with its lifetime bookkeeping (times in ms)."""
    key: str
    result: T
    created_at: float
    expires_at: float
    last_accessed: float
    hit_count: int = 0
    owner: Optional[str] = None  # validator/rule name, when keyed by CacheKey

    def is_expired(self, now_ms: float) -> bool:
        return now_ms >= self.expires_at


class ResultCache(Generic[T]):
    """In-memory LRU cache with TTL expiry."""

    def __init__(
        self,
        max_size: int = 1000,
        ttl_ms: float = 300_000,
        clock: Optional[Clock] = None,
    ):
        self._max_size = max_size
        self._ttl_ms = ttl_ms
        self._clock = clock or Clock()
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @staticmethod
    def _key(key: Any) -> str:
        return key.as_string() if isinstance(key, CacheKey) else str(key)

    def get(self, key: Any) -> Optional[T]:
        """Return the cached result, or None on a miss (expired entries are evicted)."""
        k = self._key(key)
        now = self._clock.now_ms()
        entry = self._entries.get(k)

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(now):
            del self._entries[k]
            self._expirations += 1
            self._misses += 1
            logger.debug(f"Cache entry expired: {k}")
            return None

        entry.hit_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(k)
        self._hits += 1
        return entry.result

    def set(self, key: Any, result: T, ttl_ms: Optional[float] = None) -> None:
        """Insert or replace an entry, evicting least-recently-used overflow."""
        if self._max_size <= 0:
            return
        ttl = self._ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            return

        k = self._key(key)
        now = self._clock.now_ms()
        self._entries[k] = CacheEntry(
            key=k,
            result=result,
            created_at=now,
            expires_at=now + ttl,
            last_accessed=now,
            owner=key.name if isinstance(key, CacheKey) else None,
        )
        self._entries.move_to_end(k)

        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Cache evicted (LRU): {evicted}")

    def get_entry(self, key: Any) -> Optional[CacheEntry[T]]:
        """Peek at an entry without touching hit/miss counters."""
        return self._entries.get(self._key(key))

    def delete(self, key: Any) -> bool:
        return self._entries.pop(self._key(key), None) is not None

    def invalidate(self, name: str) -> int:
        """Drop every entry recorded for the validator/rule `name`."""
        stale = [k for k, e in self._entries.items() if e.owner == name]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug(f"Cache invalidated {len(stale)} entries for {name}")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        logger.debug("Cache cleared")

    def prune_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock.now_ms()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        self._expirations += len(expired)
        return len(expired)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        entry = self._entries.get(self._key(key))
        return entry is not None and not entry.is_expired(self._clock.now_ms())

    @property
    def hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    def keys(self) -> List[str]:
        return list(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_ms": self._ttl_ms,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self.hit_rate,
            "evictions": self._evictions,
            "expirations": self._expirations,
        }
