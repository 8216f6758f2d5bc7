import pytest
from fastapi.testclient import TestClient

from knockrd.main import create_app
from knockrd.presentation.dependencies import get_backend
from tests.fakes import FakeBackend, FakeClock


@pytest.fixture()
def app_and_backend():
    app = create_app()
    backend = FakeBackend(clock=FakeClock(now=1_700_000_000.0), ttl_seconds=3600)

    def _get_backend():
        return backend

    app.dependency_overrides[get_backend] = _get_backend

    try:
        yield app, backend
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app_and_backend):
    app, _ = app_and_backend
    return TestClient(app, raise_server_exceptions=False)


def from_addr(address: str) -> dict[str, str]:
    return {"X-Real-IP": address}
