"""In-memory response cache with lazy expiry."""

import logging
import time
from collections.abc import Callable
from typing import Any

from .types import CacheEntry

logger = logging.getLogger(__name__)


class ResponseCache:
    """Time-bounded cache of decoded GET responses.

    Entries are keyed by request path plus serialized query string. Expired
    entries are treated as missing on lookup and are only replaced, never
    swept.

    Args:
        clock: Returns the current time in seconds. Defaults to
            :func:`time.monotonic`.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.lookup(key) is not None

    def lookup(self, key: str) -> CacheEntry[Any] | None:
        """Return the valid entry for ``key``, or None."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry

    def store(self, key: str, data: Any, duration: float) -> CacheEntry[Any]:
        """Store ``data`` under ``key`` for ``duration`` seconds."""
        entry = CacheEntry(data=data, expiry=self._clock() + duration)
        self._entries[key] = entry
        logger.debug("Cached %s for %ss", key, duration)
        return entry

    def clear(self) -> None:
        self._entries.clear()
