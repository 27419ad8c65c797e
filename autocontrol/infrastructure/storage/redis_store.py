# autocontrol/infrastructure/storage/redis_store.py

import json
from typing import Any

import redis.asyncio as redis

from autocontrol.config.settings import settings


class RedisFallbackStore:
    """Fallback store on Redis: one string key per collection, JSON encoded, no TTL."""

    def __init__(self, client: Any = None, url: str | None = None, prefix: str | None = None):
        if client is None:
            client = redis.from_url(
                url or settings.redis_url or "redis://localhost:6379/0",
                decode_responses=True,
            )
        self.client = client
        self._prefix = prefix if prefix is not None else settings.redis_key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get_json(self, key: str) -> Any:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        await self.client.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def aclose(self) -> None:
        await self.client.aclose()
