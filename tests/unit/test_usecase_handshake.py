import pytest

from knockrd.application.handshake import check_address, confirm_token, issue_token
from knockrd.domain.errors import InvalidInput, InvalidToken, StoreUnavailable
from tests.fakes import FakeErroredBackend


@pytest.mark.asyncio
async def test_issue_stores_token(backend):
    issued = await issue_token(backend, "9.9.9.9")

    assert issued.address == "9.9.9.9"
    assert issued.token == "nocache:tok-1"
    assert backend.calls == [("set", "nocache:tok-1")]


@pytest.mark.asyncio
async def test_issue_without_address_mutates_nothing(backend):
    with pytest.raises(InvalidInput):
        await issue_token(backend, "")
    assert backend.calls == []


@pytest.mark.asyncio
async def test_allow_then_replay_is_rejected(backend):
    issued = await issue_token(backend, "9.9.9.9")

    confirmation = await confirm_token(backend, "9.9.9.9", issued.token, "allow")

    assert confirmation.intent == "allow"
    assert confirmation.ttl_seconds == 3600
    assert confirmation.message == "Allowed from 9.9.9.9 for 1:00:00."
    assert await backend.get("9.9.9.9") is True
    assert backend.calls[1:4] == [
        ("get", issued.token),
        ("delete", issued.token),
        ("set", "9.9.9.9"),
    ]

    # same token again: rejected, allow list untouched
    backend.calls.clear()
    with pytest.raises(InvalidToken):
        await confirm_token(backend, "9.9.9.9", issued.token, "disallow")
    assert backend.calls == [("get", issued.token)]
    assert await backend.get("9.9.9.9") is True


@pytest.mark.asyncio
async def test_disallow_removes_address(backend):
    await backend.set("9.9.9.9")
    issued = await issue_token(backend, "9.9.9.9")

    confirmation = await confirm_token(backend, "9.9.9.9", issued.token, "disallow")

    assert confirmation.message == "Disallowed from 9.9.9.9"
    assert await backend.get("9.9.9.9") is False
    assert await backend.get(issued.token) is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "address, token, intent",
    [
        ("9.9.9.9", "", "allow"),
        ("", "nocache:tok-1", "allow"),
        ("9.9.9.9", "nocache:tok-1", ""),
        ("9.9.9.9", "nocache:tok-1", "maybe"),
    ],
)
async def test_invalid_input_mutates_nothing(backend, address, token, intent):
    await issue_token(backend, "9.9.9.9")
    backend.calls.clear()

    with pytest.raises(InvalidInput):
        await confirm_token(backend, address, token, intent)

    assert backend.calls == []


@pytest.mark.asyncio
async def test_expired_token_is_rejected(backend, clock):
    issued = await issue_token(backend, "9.9.9.9")
    clock.advance(3600)

    with pytest.raises(InvalidToken):
        await confirm_token(backend, "9.9.9.9", issued.token, "allow")

    assert backend.ops("set") == [issued.token]


@pytest.mark.asyncio
async def test_allowed_address_cannot_be_used_as_token(backend):
    await backend.set("1.1.1.1")
    backend.calls.clear()

    with pytest.raises(InvalidToken):
        await confirm_token(backend, "9.9.9.9", "1.1.1.1", "allow")

    assert backend.calls == []
    assert await backend.get("1.1.1.1") is True


@pytest.mark.asyncio
async def test_store_error_on_verify_stops_before_consuming(clock):
    backend = FakeErroredBackend("get", clock=clock)
    issued = await issue_token(backend, "9.9.9.9")

    with pytest.raises(StoreUnavailable):
        await confirm_token(backend, "9.9.9.9", issued.token, "allow")

    assert backend.ops("delete") == []
    assert backend.ops("set") == [issued.token]


@pytest.mark.asyncio
async def test_token_is_consumed_even_if_allow_fails(clock):
    backend = FakeErroredBackend(clock=clock)
    issued = await issue_token(backend, "9.9.9.9")
    backend.fail_on.add("set")

    with pytest.raises(StoreUnavailable):
        await confirm_token(backend, "9.9.9.9", issued.token, "allow")

    backend.fail_on.clear()
    assert await backend.get(issued.token) is False
    assert await backend.get("9.9.9.9") is False


@pytest.mark.asyncio
async def test_check_unknown_address_is_forbidden(backend):
    assert await check_address(backend, "4.4.4.4") is False


@pytest.mark.asyncio
async def test_check_allowed_address(backend):
    await backend.set("4.4.4.4")
    assert await check_address(backend, "4.4.4.4") is True


@pytest.mark.asyncio
async def test_check_never_reads_token_items(backend):
    issued = await issue_token(backend, "9.9.9.9")
    backend.calls.clear()

    assert await check_address(backend, issued.token) is False
    assert await check_address(backend, "") is False
    assert backend.calls == []


@pytest.mark.asyncio
async def test_handshake_through_cache(cached, backend):
    assert await check_address(cached, "9.9.9.9") is False

    issued = await issue_token(cached, "9.9.9.9")
    await confirm_token(cached, "9.9.9.9", issued.token, "allow")

    assert await check_address(cached, "9.9.9.9") is True
    assert await check_address(cached, "9.9.9.9") is True
    assert backend.ops("get") == ["9.9.9.9", issued.token, "9.9.9.9"]
