"""Explicit read cache with invalidation by operation name.

Reads go through ``get_or_load``; every write calls ``invalidate`` for the
operations whose results it can change. Nothing is refreshed implicitly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Hashable, Mapping
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, Hashable]

# Operation names shared by readers and the writes that invalidate them
LISTINGS = "listings"
LISTING_DETAIL = "listingDetail"
SELLER_LISTINGS = "sellerListings"
FAVORITE_IDS = "favoriteIds"
FAVORITE_CARS = "favoriteCars"
LISTING_IMAGES = "listingImages"


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


class QueryCache:
    """Results keyed by operation name and parameters.

    Expired entries are pruned on every write, and once more than
    *max_entries* remain the oldest are evicted.
    """

    def __init__(self, ttl_seconds: float | None = None, max_entries: int | None = None) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: dict[CacheKey, tuple[float, Any]] = {}

    def make_key(self, name: str, params: Mapping[str, Any] | None = None) -> CacheKey:
        return (name, _freeze(params or {}))

    def get(self, name: str, params: Mapping[str, Any] | None = None) -> Any | None:
        key = self.make_key(name, params)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._ttl is not None and time.monotonic() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, name: str, params: Mapping[str, Any] | None, value: Any) -> None:
        now = time.monotonic()
        key = self.make_key(name, params)
        self._entries.pop(key, None)
        self._entries[key] = (now, value)
        self._prune(now)

    def _prune(self, now: float) -> None:
        if self._ttl is not None:
            for key, (stored_at, _) in list(self._entries.items()):
                if now - stored_at > self._ttl:
                    del self._entries[key]
        if self._max_entries is not None:
            # dicts keep insertion order, so the first keys are the oldest
            while len(self._entries) > self._max_entries:
                del self._entries[next(iter(self._entries))]

    async def get_or_load(
        self,
        name: str,
        params: Mapping[str, Any] | None,
        loader: Callable[[], Awaitable[T]],
        cacheable: Callable[[T], bool] | None = None,
    ) -> T:
        """Return the cached value or await *loader* and remember its result.

        A loader that raises leaves the cache untouched, and so does a result
        that *cacheable* rejects.
        """
        cached = self.get(name, params)
        if cached is not None:
            return cached
        value = await loader()
        if cacheable is None or cacheable(value):
            self.set(name, params, value)
        return value

    def invalidate(self, *names: str) -> int:
        """Drop every entry of the given operations; returns how many were dropped."""
        doomed = [key for key in list(self._entries) if key[0] in names]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cached result(s) for %s", len(doomed), ", ".join(names))
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
