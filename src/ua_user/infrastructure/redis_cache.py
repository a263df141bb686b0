"""RedisUserCache — UserCacheProtocol over redis.asyncio.

Values are JSON strings (the client is created with decode_responses=True).
Every RedisError, and any value that is not valid UTF-8, is re-raised as
CacheError so callers never depend on the redis exception hierarchy.
"""

from datetime import timedelta

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.ua_user.domain.cache import CacheError


class RedisUserCache:
    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
            if isinstance(value, bytes):
                value = value.decode("utf-8")
        except (RedisError, UnicodeDecodeError) as exc:
            # decode_responses=True raises UnicodeDecodeError from inside get()
            raise CacheError(f"GET {key}: {exc}") from exc
        return value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except RedisError as exc:
            raise CacheError(f"SET {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise CacheError(f"DEL {key}: {exc}") from exc
