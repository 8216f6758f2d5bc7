from fastapi import Request

from knockrd.domain.ports.backend import BackendPort
from knockrd.settings import get_settings


def get_backend(request: Request) -> BackendPort:
    # This is set in knockrd.main lifespan()
    return request.app.state.backend


def get_address(request: Request) -> str:
    """Caller address as resolved by the fronting proxy."""
    return request.headers.get(get_settings().address_header, "").strip()
