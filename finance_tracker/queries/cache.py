"""
Query Cache

Results of read queries are cached under key tuples such as
("transactions", user_id, "recent"). Mutations invalidate every key that
starts with a given prefix, e.g. ("transactions", user_id) after a new
transaction. Signing out clears the whole cache.

The cache holds whatever the loader returned; callers must treat cached
results as read-only.
"""

from typing import Any, Awaitable, Callable, Hashable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _normalize_key(key: tuple) -> tuple:
    return tuple(str(part) for part in key)


class QueryCache:
    """In-process cache of query results, keyed by tuples."""

    def __init__(self):
        self._entries: dict[tuple, Any] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple) -> bool:
        return _normalize_key(key) in self._entries

    async def fetch(self, key: tuple[Hashable, ...], loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for `key`, loading it on a miss.

        A loader that raises caches nothing.
        """
        normalized = _normalize_key(key)
        if normalized in self._entries:
            return self._entries[normalized]

        value = await loader()
        self._entries[normalized] = value
        return value

    def invalidate(self, *prefix: Hashable) -> int:
        """
        Drop every entry whose key starts with `prefix`.

        Returns:
            Number of entries removed
        """
        wanted = _normalize_key(prefix)
        stale = [key for key in self._entries if key[:len(wanted)] == wanted]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("query_cache_invalidated", prefix=list(wanted), removed=len(stale))
        return len(stale)

    def clear(self) -> None:
        """Drop everything, e.g. when the user signs out."""
        self._entries.clear()
        logger.debug("query_cache_cleared")
