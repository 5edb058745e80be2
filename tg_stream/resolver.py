from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from cachetools import TTLCache

from .errors import ResolutionError
from .telegram import LocationFailed

if TYPE_CHECKING:
    from collections.abc import Callable

    from .telegram import FileStore

LOG = logging.getLogger("tg_stream.resolver")

DEFAULT_TTL = 24 * 60 * 60


class PathCache:
    """Process-wide identifier -> file path cache with a fixed TTL.

    File paths for an identifier never change while they are valid, so
    entries are written once and never updated.
    """

    def __init__(
        self,
        maxsize: int = 4096,
        ttl: float = DEFAULT_TTL,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._entries: TTLCache[str, str] = TTLCache(
            maxsize=maxsize, ttl=ttl, timer=timer
        )

    def get(self, identifier: str) -> str | None:
        return self._entries.get(identifier)

    def put(self, identifier: str, location: str) -> str:
        """Store a location unless one is already cached; return the cached one."""
        return self._entries.setdefault(identifier, location)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class PathResolver:
    """Resolve chunk identifiers to downloadable paths, consulting the cache.

    Concurrent misses for the same identifier may each reach the backend;
    the duplicate writes are harmless.
    """

    def __init__(self, store: FileStore, cache: PathCache):
        self._store = store
        self._cache = cache

    async def resolve(self, identifier: str) -> str:
        cached = self._cache.get(identifier)
        if cached is not None:
            LOG.debug("path cache hit for %s", identifier)
            return cached

        LOG.debug("path cache miss for %s", identifier)
        result = await self._store.resolve_location(identifier)
        if isinstance(result, LocationFailed):
            raise ResolutionError(identifier, result.description)
        return self._cache.put(identifier, result.file_path)
