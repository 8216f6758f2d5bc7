from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from knockrd.application.stream_handler import StreamHandler
from knockrd.domain.entities import ChangeRecord, ChangeType
from knockrd.domain.errors import StreamProcessingError

logger = logging.getLogger(__name__)

# Redis keyspace event name -> change-feed record type
EVENT_TYPES: dict[str, ChangeType] = {
    "set": "modify",
    "expire": "modify",
    "rename_to": "modify",
    "del": "remove",
    "expired": "remove",
    "evicted": "remove",
    "rename_from": "remove",
}


@dataclass(frozen=True)
class RetryPolicy:
    base: float = 0.5  # base delay (seconds)
    max_delay: float = 30.0  # cap (seconds)
    max_attempts: int = 3  # per batch, including the first one

    def compute_delay(self, attempts: int) -> float:
        # attempts is the *current* number of attempts already made
        delay = self.base * (2**attempts)
        return delay if delay < self.max_delay else self.max_delay


class KeyspaceListener:
    """
    Hosts the StreamHandler on Redis keyspace notifications.

    Subscribes to `__keyspace@<db>__:<table>:*`, turns notifications into
    ChangeRecords and hands them over in batches. A batch the handler keeps
    rejecting is dropped after the retry policy gives up; pub/sub cannot
    redeliver, so the whole cache is cleared instead. The same happens after
    the subscription connection drops.
    """

    def __init__(
        self,
        *,
        redis: Redis,
        handler: StreamHandler,
        table_name: str,
        batch_size: int = 100,
        poll_interval: float = 1.0,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.redis = redis
        self.handler = handler
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._failures = 0
        db = redis.connection_pool.connection_kwargs.get("db", 0)
        self._channel_prefix = f"__keyspace@{db}__:{table_name}:"

    @property
    def pattern(self) -> str:
        return f"{self._channel_prefix}*"

    def to_record(self, message: dict[str, Any]) -> ChangeRecord | None:
        channel = message.get("channel")
        event = message.get("data")
        if not isinstance(channel, str) or not channel.startswith(self._channel_prefix):
            return None
        change_type = EVENT_TYPES.get(event) if isinstance(event, str) else None
        if change_type is None:
            return None
        return ChangeRecord(key=channel[len(self._channel_prefix) :], type=change_type)

    async def run_forever(self) -> None:
        logger.info(
            "keyspace listener started",
            extra={"pattern": self.pattern, "batch_size": self.batch_size},
        )
        while True:
            try:
                await self._listen()
            except (RedisError, OSError) as e:
                delay = self.retry_policy.compute_delay(self._failures)
                self._failures += 1
                logger.warning(
                    "change feed connection lost; clearing cache",
                    extra={"error": str(e), "retry_in_s": delay},
                )
                self.handler.reset()
                await self._sleep(delay)

    async def _listen(self) -> None:
        pubsub = self.redis.pubsub()
        try:
            await pubsub.psubscribe(self.pattern)
            # anything published before the subscription was missed
            self.handler.reset()
            self._failures = 0
            while True:
                await self._process_once(pubsub)
        finally:
            await pubsub.aclose()

    async def _process_once(self, pubsub) -> int:
        """
        Single iteration:
        - wait up to poll_interval for a notification
        - drain whatever else is already buffered, up to batch_size records
        - deliver the batch
        Returns the number of records delivered.
        """
        batch = await self._read_batch(pubsub)
        if batch:
            await self._deliver(batch)
        return len(batch)

    async def _read_batch(self, pubsub) -> list[ChangeRecord]:
        batch: list[ChangeRecord] = []
        message = await pubsub.get_message(
            ignore_subscribe_messages=True, timeout=self.poll_interval
        )
        while message is not None:
            record = self.to_record(message)
            if record is not None:
                batch.append(record)
                if len(batch) >= self.batch_size:
                    break
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.0)
        return batch

    async def _deliver(self, batch: list[ChangeRecord]) -> None:
        attempts = 0
        while True:
            try:
                self.handler.handle(batch)
                return
            except StreamProcessingError as e:
                attempts += 1
                if attempts >= self.retry_policy.max_attempts:
                    logger.error(
                        "dropping change batch; clearing cache",
                        extra={"count": len(batch), "attempts": attempts, "error": str(e)},
                    )
                    self.handler.reset()
                    return
                delay = self.retry_policy.compute_delay(attempts - 1)
                logger.warning(
                    "change batch failed; scheduling retry",
                    extra={"count": len(batch), "attempts": attempts, "retry_in_s": delay},
                )
                await self._sleep(delay)
