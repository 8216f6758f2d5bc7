import string

from knockrd.domain.services import (
    NO_CACHE_PREFIX,
    expires_at,
    generate_csrf_token,
    is_cacheable,
)


def test_csrf_token_is_prefixed_256_bit_hex():
    for _ in range(50):
        token = generate_csrf_token()
        assert token.startswith(NO_CACHE_PREFIX)
        body = token[len(NO_CACHE_PREFIX) :]
        assert len(body) == 64
        assert set(body) <= set(string.hexdigits.lower())


def test_csrf_tokens_are_unique():
    tokens = {generate_csrf_token() for _ in range(200)}
    assert len(tokens) == 200


def test_tokens_are_not_cacheable_but_addresses_are():
    assert is_cacheable(generate_csrf_token()) is False
    assert is_cacheable("1.2.3.4") is True
    assert is_cacheable("2001:db8::1") is True


def test_expires_at_truncates_to_unix_seconds():
    assert expires_at(100.0, 3600) == 3700
    assert expires_at(100.9, 3600) == 3700
