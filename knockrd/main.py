import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from redis.asyncio import Redis

from knockrd.application.stream_handler import StreamHandler
from knockrd.domain.errors import KnockError
from knockrd.domain.ports.backend import BackendPort
from knockrd.infrastructure.cache.cached_backend import CachedBackend
from knockrd.infrastructure.redis_store.backend import RedisBackend
from knockrd.infrastructure.redis_store.keyspace_listener import KeyspaceListener
from knockrd.infrastructure.redis_store.pool import close_redis, get_redis
from knockrd.infrastructure.redis_store.table import ensure_table
from knockrd.logging import setup_logging
from knockrd.presentation.api import api
from knockrd.settings import Settings, get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def build_backend(settings: Settings, redis: Redis) -> BackendPort:
    """Direct Redis backend, wrapped in the local cache when cache_ttl > 0."""
    backend: BackendPort = RedisBackend(
        redis,
        table_name=settings.table_name,
        ttl_seconds=settings.ttl_seconds,
        timeout=settings.store_timeout_seconds,
    )
    if not settings.caching_enabled:
        return backend
    if settings.cache_ttl_seconds > settings.ttl_seconds:
        logger.warning(
            "cache_ttl is longer than ttl; setting cache_ttl equal to ttl",
            extra={"cache_ttl": settings.cache_ttl_seconds, "ttl": settings.ttl_seconds},
        )
    return CachedBackend(backend, settings.effective_cache_ttl)


def log_listener_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        # cached verdicts now only age out through cache_ttl
        logger.error(
            "keyspace listener stopped",
            extra={"error": f"{type(exc).__name__}: {exc}"},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    redis = get_redis()
    await ensure_table(
        redis,
        settings.table_name,
        change_feed=settings.caching_enabled,
        timeout=settings.store_timeout_seconds,
    )
    backend = build_backend(settings, redis)
    app.state.backend = backend  # expose to dependencies

    listener_task = None
    if isinstance(backend, CachedBackend):
        listener = KeyspaceListener(
            redis=redis,
            handler=StreamHandler(backend),
            table_name=settings.table_name,
            batch_size=settings.stream_batch_size,
            poll_interval=settings.stream_poll_interval,
        )
        listener_task = asyncio.create_task(listener.run_forever())
        listener_task.add_done_callback(log_listener_exit)

    try:
        yield
    finally:
        # shutdown
        if listener_task is not None:
            listener_task.cancel()
            with suppress(asyncio.CancelledError):
                await listener_task
        await close_redis()


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Cache-Control"] = "private"
    return response


async def knock_error_handler(request: Request, exc: KnockError) -> PlainTextResponse:
    logger.error(
        "request failed",
        extra={"path": request.url.path, "error": f"{type(exc).__name__}: {exc}"},
    )
    return PlainTextResponse("Server Error\n", status_code=500)


def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="knockrd", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.middleware("http")(security_headers)
    app.add_exception_handler(KnockError, knock_error_handler)
    app.include_router(api)
    return app


app = create_app()
