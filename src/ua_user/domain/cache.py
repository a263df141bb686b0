"""User cache contract.

Read: cache-aside (check cache → DB on miss → populate cache).
Write: DB first, then refresh/invalidate the cache entry.

The cache is a disposable shadow of the users table, never the source of
truth. CacheError is for logging only; the service never surfaces it.
"""

from datetime import timedelta
from typing import Protocol

USER_KEY_PREFIX = "user:"


def user_cache_key(user_id: int) -> str:
    return f"{USER_KEY_PREFIX}{user_id}"


class CacheError(Exception):
    """Cache backend failure (connection, timeout, protocol)."""


class UserCacheProtocol(Protocol):
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None on a miss."""
        ...

    async def set(self, key: str, value: str, ttl: timedelta) -> None: ...

    async def delete(self, key: str) -> None: ...
