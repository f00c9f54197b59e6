"""Async TTL + LRU cache with per-key request coalescing."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger("depsight.engine.cache")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    stored_at: float


@dataclass
class _Flight(Generic[V]):
    task: asyncio.Task[V]
    waiters: int = 0


class Cache(Generic[K, V]):
    """Memoizes an async ``fetch(key)``.

    - Entries older than *ttl* seconds are treated as absent.
    - At most *capacity* entries are kept; the least recently used goes first.
    - Concurrent misses for one key share a single upstream call and all
      waiters see the same value or exception.
    - Failures are never stored.
    - A cancelled waiter only cancels the upstream call when it was the last
      one waiting.
    """

    def __init__(
        self,
        fetch: Callable[[K], Awaitable[V]],
        *,
        ttl: float,
        capacity: int,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._fetch = fetch
        self._ttl = ttl
        self._capacity = capacity
        self._name = name
        self._clock = clock
        self._lock = asyncio.Lock()
        self._entries: OrderedDict[K, _CacheEntry[V]] = OrderedDict()
        self._inflight: dict[K, _Flight[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: K) -> V:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() - entry.stored_at < self._ttl:
                    self._entries.move_to_end(key)
                    log.debug("cache.hit", cache=self._name, key=str(key))
                    return entry.value
                del self._entries[key]
                log.debug("cache.expired", cache=self._name, key=str(key))

            flight = self._inflight.get(key)
            if flight is None:
                log.debug("cache.miss", cache=self._name, key=str(key))
                task = asyncio.ensure_future(self._populate(key))
                task.add_done_callback(_consume_exception)
                flight = _Flight(task=task)
                self._inflight[key] = flight
            flight.waiters += 1

        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                # last waiter went away
                flight.task.cancel()
                self._forget(key, flight.task)

    async def invalidate(self, key: K) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def _populate(self, key: K) -> V:
        task = asyncio.current_task()
        try:
            value = await self._fetch(key)
        except BaseException:
            self._forget(key, task)
            raise

        async with self._lock:
            self._entries[key] = _CacheEntry(value=value, stored_at=self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("cache.evict", cache=self._name, key=str(evicted))
            self._forget(key, task)
        return value

    def _forget(self, key: K, task: asyncio.Task | None) -> None:
        flight = self._inflight.get(key)
        if flight is not None and flight.task is task:
            del self._inflight[key]


def _consume_exception(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
