import pytest

from knockrd.infrastructure.cache.cached_backend import CachedBackend
from tests.fakes import FakeBackend, FakeCache, FakeClock, FakeRedis


@pytest.fixture()
def clock():
    return FakeClock(now=1_700_000_000.0)


@pytest.fixture()
def backend(clock):
    return FakeBackend(clock=clock, ttl_seconds=3600)


@pytest.fixture()
def cached(backend, clock):
    return CachedBackend(backend, cache_ttl=10, clock=clock)


@pytest.fixture()
def fake_cache():
    return FakeCache()


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture(autouse=True)
def patch_token(monkeypatch):
    """
    Make CSRF tokens predictable in all tests: nocache:tok-1, nocache:tok-2, ...
    You can override in a specific test by re-monkeypatching.
    """
    from knockrd.domain import services as domain_services

    counter = iter(range(1, 1_000_000))
    monkeypatch.setattr(
        domain_services,
        "generate_csrf_token",
        lambda: f"{domain_services.NO_CACHE_PREFIX}tok-{next(counter)}",
    )
    yield
