import logging

import knockrd.domain.services as domain_services
from knockrd.domain.entities import INTENTS, Confirmation, IssuedToken
from knockrd.domain.errors import InvalidInput, InvalidToken
from knockrd.domain.ports.backend import BackendPort

logger = logging.getLogger(__name__)


def _valid_address(address: str) -> bool:
    # an address shaped like a token key would read the token's item
    return bool(address) and domain_services.is_cacheable(address)


async def issue_token(backend: BackendPort, address: str) -> IssuedToken:
    if not _valid_address(address):
        raise InvalidInput("missing address")
    token = domain_services.generate_csrf_token()
    await backend.set(token)
    return IssuedToken(address=address, token=token)


async def confirm_token(
    backend: BackendPort,
    address: str,
    token: str,
    intent: str,
) -> Confirmation:
    """
    Consume a CSRF token and apply the caller's intent to its address.

    The token is deleted before the allow list is touched, so it cannot be
    replayed even when the following write fails.
    """
    if not _valid_address(address) or not token:
        raise InvalidInput("missing address or token")
    if intent not in INTENTS:
        raise InvalidInput(f"unknown intent: {intent!r}")
    if domain_services.is_cacheable(token):
        # only issued tokens carry the prefix; an address is not a token
        raise InvalidToken()

    if not await backend.get(token):
        raise InvalidToken()
    logger.debug("csrf token verified")
    await backend.delete(token)

    if intent == "allow":
        logger.debug("setting allowed address", extra={"address": address})
        await backend.set(address)
        logger.info(
            "set allowed address",
            extra={"address": address, "ttl_s": backend.ttl_seconds},
        )
        return Confirmation(
            address=address, intent="allow", ttl_seconds=backend.ttl_seconds
        )

    logger.debug("removing allowed address", extra={"address": address})
    await backend.delete(address)
    logger.info("removed allowed address", extra={"address": address})
    return Confirmation(address=address, intent="disallow")


async def check_address(backend: BackendPort, address: str) -> bool:
    if not _valid_address(address):
        logger.info("no usable address presented", extra={"address": address})
        return False
    if await backend.get(address):
        logger.debug("allowed address", extra={"address": address})
        return True
    logger.info("not allowed address", extra={"address": address})
    return False
