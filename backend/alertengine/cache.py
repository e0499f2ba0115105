"""Redis client for the alert engine."""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
from redis.exceptions import WatchError

from .config import settings


class RedisCache:
    """Async Redis client wrapper."""

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self._url = url or settings.redis_url
        self._client: redis.Redis | None = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if not self._client:
            raise RuntimeError("Redis client not connected")
        return self._client

    async def get(self, key: str) -> str | None:
        """Get a value from cache."""
        return await self.client.get(key)

    async def get_json(self, key: str) -> Any:
        """Get and parse JSON from cache."""
        value = await self.get(key)
        if value:
            return json.loads(value)
        return None

    async def mget_json(self, keys: list[str]) -> list[Any]:
        """Get and parse several JSON values, skipping missing keys."""
        if not keys:
            return []
        values = await self.client.mget(keys)
        return [json.loads(v) for v in values if v]

    async def set(self, key: str, value: str) -> None:
        """Set a value in cache."""
        await self.client.set(key, value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        """Set a key only if it does not exist yet."""
        return bool(await self.client.set(key, value, nx=True))

    async def delete_if_equals(self, key: str, value: str) -> bool:
        """Delete a key only while it still holds `value`."""
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.get(key) != value:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
                return True
            except WatchError:
                # Changed underneath us, so it is no longer ours to delete
                return False

    async def set_and_index(self, key: str, value: str, index_keys: list[str], member: str) -> None:
        """Store a value and add `member` to each index set in one transaction."""
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(key, value)
            for index_key in index_keys:
                pipe.sadd(index_key, member)
            await pipe.execute()

    async def srem(self, key: str, *values: str) -> None:
        """Remove values from a set."""
        await self.client.srem(key, *values)

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set."""
        return await self.client.smembers(key)

    async def publish(self, channel: str, message: str | dict) -> None:
        """Publish a message to a channel."""
        if isinstance(message, dict):
            message = json.dumps(message, default=str)
        await self.client.publish(channel, message)
