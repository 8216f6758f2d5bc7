from __future__ import annotations

import asyncio
import logging

from redis.asyncio import Redis
from redis.exceptions import ResponseError, RedisError

from knockrd.domain.errors import StoreUnavailable

logger = logging.getLogger(__name__)

NOTIFY_SETTING = "notify-keyspace-events"

# K: keyspace channel, g: generic (del/expire), $: string (set), x: expired
CHANGE_FEED_FLAGS = "Kg$x"

# "A" is Redis' alias for every event class except keyspace/keyevent/key-miss
_ALIAS_ALL = "g$lshzxetd"


def missing_flags(current: str) -> str:
    """Flags from CHANGE_FEED_FLAGS that `current` does not enable yet."""
    enabled = set(current)
    if "A" in enabled:
        enabled.update(_ALIAS_ALL)
    return "".join(f for f in CHANGE_FEED_FLAGS if f not in enabled)


async def ensure_table(
    redis: Redis, table_name: str, *, change_feed: bool, timeout: float = 30.0
) -> bool:
    """
    Prepare the store for the `table_name` namespace.

    Redis keys expire natively, so only the change feed needs setup: when
    requested, keyspace notifications are widened to include the classes the
    cache invalidation listener relies on. Returns True when the change feed
    is known to be enabled.
    """
    if not change_feed:
        return False
    try:
        config = await asyncio.wait_for(redis.config_get(NOTIFY_SETTING), timeout)
        current = config.get(NOTIFY_SETTING, "") or ""
        missing = missing_flags(current)
        if not missing:
            logger.info(
                "change feed already enabled",
                extra={"table": table_name, "notify": current},
            )
            return True
        merged = current + missing
        await asyncio.wait_for(redis.config_set(NOTIFY_SETTING, merged), timeout)
    except ResponseError as e:
        # managed deployments often disable CONFIG; cache entries still age out
        logger.warning(
            "cannot configure change feed; relying on cache ttl",
            extra={"table": table_name, "error": str(e)},
        )
        return False
    except asyncio.TimeoutError as e:
        raise StoreUnavailable(f"configure change feed: timed out after {timeout}s") from e
    except RedisError as e:
        raise StoreUnavailable(f"configure change feed: {e}") from e
    logger.info(
        "change feed enabled", extra={"table": table_name, "notify": merged}
    )
    return True
