from typing import Protocol


class BackendPort(Protocol):
    """
    TTL key-value contract behind the allow list and the CSRF tokens.

    Implementations raise StoreUnavailable on I/O failure or timeout and
    never raise for a missing key.
    """

    @property
    def ttl_seconds(self) -> int:
        """Lifetime given to every item written by set()."""

    async def set(self, key: str) -> None:
        """Write or refresh the item so it expires ttl_seconds from now."""

    async def get(self, key: str) -> bool:
        """True iff the item exists and has not expired yet."""

    async def delete(self, key: str) -> None:
        """Remove the item; deleting an absent key is not an error."""
