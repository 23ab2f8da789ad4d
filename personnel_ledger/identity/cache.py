"""Bounded, time-expiring read-through cache for identity reads."""

import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """LRU cache whose entries expire after a fixed time-to-live.

    Only read paths go through the cache. Writers call invalidate() for
    every key they touch; uniqueness checks always hit the database.
    """

    def __init__(
        self,
        max_size: int = 1024,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, V]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> V | None:
        """Return a fresh cached value, or None on miss/expiry."""
        item = self._entries.get(key)
        if item is None:
            self.misses += 1
            return None
        expires_at, value = item
        if expires_at <= self._clock():
            del self._entries[key]
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: Hashable, value: V) -> None:
        self._entries[key] = (self._clock() + self._ttl, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def invalidate(self, *keys: Hashable) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[V | None]],
    ) -> V | None:
        """Read-through: return the cached value or load and cache it.

        Misses (loader returned None) are not cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        if value is not None:
            self.put(key, value)
        return value
