from __future__ import annotations

import logging
from typing import Iterable

from knockrd.domain.entities import CHANGE_TYPES, ChangeRecord
from knockrd.domain.errors import StreamProcessingError
from knockrd.domain.ports.cache_invalidation import CacheInvalidationPort

logger = logging.getLogger(__name__)


class StreamHandler:
    """
    Applies change-feed records to the local cache.

    Every record, whatever its type, only invalidates its key: the payload is
    never trusted, so replayed or reordered records converge to the same
    state. Retrying failed batches is left to whoever delivers them.
    """

    def __init__(self, cache: CacheInvalidationPort) -> None:
        self._cache = cache

    def handle(self, records: Iterable[ChangeRecord]) -> int:
        applied = 0
        for record in records:
            if record.type not in CHANGE_TYPES:
                raise StreamProcessingError(
                    f"unknown change type {record.type!r} for key {record.key!r}"
                )
            try:
                self._cache.invalidate(record.key)
            except Exception as e:
                raise StreamProcessingError(
                    f"cannot apply {record.type} for key {record.key!r}: {e}"
                ) from e
            applied += 1
        if applied:
            logger.debug("change records applied", extra={"count": applied})
        return applied

    def reset(self) -> None:
        """Drop the whole cache after records may have been lost."""
        self._cache.clear()
