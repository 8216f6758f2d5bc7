# knockrd/domain/services.py
from __future__ import annotations

import secrets

# Keys carrying this prefix are never served from the in-memory cache.
NO_CACHE_PREFIX = "nocache:"

CSRF_TOKEN_BYTES = 32


def generate_csrf_token() -> str:
    """256 random bits, hex-encoded, tagged as non-cacheable."""
    return NO_CACHE_PREFIX + secrets.token_hex(CSRF_TOKEN_BYTES)


def is_cacheable(key: str) -> bool:
    return not key.startswith(NO_CACHE_PREFIX)


def expires_at(now: float, ttl_seconds: int) -> int:
    """
    Absolute expiry in unix seconds for an item written at `now`.
    The item reads as present while now < expires_at.
    """
    return int(now) + ttl_seconds
