from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from knockrd.domain.ports.backend import BackendPort
from knockrd.domain.ports.cache_invalidation import CacheInvalidationPort
from knockrd.domain.services import is_cacheable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    present: bool
    cached_at: float


@dataclass(eq=False)
class _Fetch:
    started: float


class CachedBackend(BackendPort, CacheInvalidationPort):
    """
    Read-through / write-through cache in front of another backend.

    Both verdicts are cached ("present" and "absent") for at most cache_ttl
    seconds. Writes never populate the cache; they drop the local entry so
    the next read goes back to the store.

    All map mutations happen under one lock that is never held across an
    await. A miss registers a ticket before calling the store; invalidating
    the key cancels outstanding tickets, so a verdict fetched before a write
    (or before a change-feed event) is discarded instead of cached.
    """

    def __init__(
        self,
        backend: BackendPort,
        cache_ttl: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        if cache_ttl > backend.ttl_seconds:
            logger.warning(
                "cache ttl is longer than ttl; clamping",
                extra={"cache_ttl": cache_ttl, "ttl": backend.ttl_seconds},
            )
            cache_ttl = backend.ttl_seconds
        self._backend = backend
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._pending: dict[str, set[_Fetch]] = {}

    @property
    def ttl_seconds(self) -> int:
        return self._backend.ttl_seconds

    @property
    def cache_ttl(self) -> float:
        return self._cache_ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: str) -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry.cached_at > self._cache_ttl:
                del self._entries[key]
                return None
            return entry

    def _begin_fetch(self, key: str) -> _Fetch:
        # the verdict is as old as the moment the store call started
        ticket = _Fetch(started=self._clock())
        with self._lock:
            self._pending.setdefault(key, set()).add(ticket)
        return ticket

    def _end_fetch(self, key: str, ticket: _Fetch, present: bool | None) -> None:
        with self._lock:
            tickets = self._pending.get(key)
            if tickets is None or ticket not in tickets:
                # invalidated while the store call was in flight
                return
            tickets.discard(ticket)
            if not tickets:
                del self._pending[key]
            if present is not None:
                self._entries[key] = CacheEntry(present=present, cached_at=ticket.started)

    async def get(self, key: str) -> bool:
        if not is_cacheable(key):
            return await self._backend.get(key)

        entry = self._lookup(key)
        if entry is not None:
            logger.debug("cache hit", extra={"key": key, "present": entry.present})
            return entry.present

        ticket = self._begin_fetch(key)
        present: bool | None = None
        try:
            present = await self._backend.get(key)
        finally:
            self._end_fetch(key, ticket, present)
        logger.debug("cache miss", extra={"key": key, "present": present})
        return present

    async def set(self, key: str) -> None:
        # a timed-out write may still have landed, so drop the entry either way
        try:
            await self._backend.set(key)
        finally:
            self.invalidate(key)

    async def delete(self, key: str) -> None:
        try:
            await self._backend.delete(key)
        finally:
            self.invalidate(key)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._pending.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._pending.clear()
        logger.info("cache cleared")
