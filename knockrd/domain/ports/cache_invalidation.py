from typing import Protocol


class CacheInvalidationPort(Protocol):
    def invalidate(self, key: str) -> None:
        """Forget any local verdict for key (no-op when nothing is cached)."""

    def clear(self) -> None:
        """Forget every local verdict."""
