from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from knockrd.domain.entities import Item
from knockrd.domain.errors import StoreUnavailable
from knockrd.domain.ports.backend import BackendPort
from knockrd.domain.services import expires_at

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


class RedisBackend(BackendPort):
    """
    Allow-list items stored as `<table>:<key> -> <expires_at>`.

    Redis expires the key at expires_at (EXAT), but the verdict is always
    recomputed from the stored value at read time.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        table_name: str = "knockrd",
        ttl_seconds: int = 3600,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._redis = redis
        self._prefix = f"{table_name}:"
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    @property
    def key_prefix(self) -> str:
        return self._prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _call(self, op: str, key: str, aw: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(aw, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(f"{op} {key!r}: timed out after {self._timeout}s") from e
        except RedisError as e:
            raise StoreUnavailable(f"{op} {key!r}: {e}") from e

    async def set(self, key: str) -> None:
        item = Item(key=key, expires_at=expires_at(self._clock(), self._ttl))
        await self._call(
            "set",
            key,
            self._redis.set(self._key(key), str(item.expires_at), exat=item.expires_at),
        )

    async def get(self, key: str) -> bool:
        raw = await self._call("get", key, self._redis.get(self._key(key)))
        if raw is None:
            # expired or not found
            return False
        try:
            item = Item(key=key, expires_at=int(raw))
        except ValueError as e:
            raise StoreUnavailable(f"get {key!r}: unreadable item {raw!r}") from e
        now = self._clock()
        logger.debug(
            "item read",
            extra={
                "key": key,
                "expires_at": item.expires_at,
                "remain_s": int(item.remaining(now)),
            },
        )
        return item.is_live(now)

    async def delete(self, key: str) -> None:
        logger.debug("deleting item", extra={"key": key})
        await self._call("delete", key, self._redis.delete(self._key(key)))
