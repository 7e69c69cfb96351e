# tokengate/context.py
"""
TokenGate: Context and Caches

Explicit, injectable state shared by the engine components: the threshold
session, ledger providers and per-asset token metadata. Each cache has a
TTL; the metadata cache is also size-bounded.

Ownership facts are never cached.

Usage:
    ctx = GateContext.from_config(GateConfig.from_env())
    ctx.metadata.put(metadata_key(contract, 42), document)
    ctx.metadata.invalidate(metadata_key(contract, 42))
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar, Union

from .config import GateConfig

T = TypeVar("T")


def metadata_key(contract_address: str, asset_id: Union[int, str]) -> str:
    """Cache key for one asset's token metadata."""
    return f"{contract_address.lower()}_{asset_id}"


# =============================================================================
# Cache Primitives
# =============================================================================

@dataclass
class CacheEntry(Generic[T]):
    """Cached value with its insertion time."""
    value: T
    cached_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now > self.cached_at + self.ttl


class TTLCache(Generic[T]):
    """
    Key/value cache with per-entry TTL and optional size bound.

    When full, expired entries are dropped first, then the oldest.
    """

    def __init__(
        self,
        ttl: float,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry[T]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def put(self, key: Hashable, value: T) -> None:
        self._entries.pop(key, None)
        if self.max_size is not None and len(self._entries) >= self.max_size:
            self._evict()
        self._entries[key] = CacheEntry(value=value, cached_at=self._clock(), ttl=self.ttl)

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
        while self.max_size is not None and len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class SessionCache:
    """Single-slot cache for the threshold network session."""

    _KEY = "session"

    def __init__(self, ttl: float, clock: Callable[[], float] = time.time):
        self._cache: TTLCache[Any] = TTLCache(ttl=ttl, max_size=1, clock=clock)

    def get(self) -> Optional[Any]:
        return self._cache.get(self._KEY)

    def put(self, session: Any) -> None:
        self._cache.put(self._KEY, session)

    def clear(self) -> None:
        self._cache.clear()


# =============================================================================
# GateContext
# =============================================================================

@dataclass
class GateContext:
    """Configuration plus the caches owned by one engine instance."""
    config: GateConfig
    sessions: SessionCache
    providers: TTLCache
    metadata: TTLCache

    @classmethod
    def from_config(
        cls,
        config: Optional[GateConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> "GateContext":
        config = config or GateConfig()
        return cls(
            config=config,
            sessions=SessionCache(ttl=config.session_ttl, clock=clock),
            providers=TTLCache(ttl=config.provider_ttl, clock=clock),
            metadata=TTLCache(ttl=config.metadata_ttl, max_size=config.metadata_cache_size, clock=clock),
        )
