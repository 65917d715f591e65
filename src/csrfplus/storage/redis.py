# Redis-backed secret store.
# Created: 2026-10-18
#
# Thin adapter over a redis.asyncio client so secrets are shared across
# worker processes. Expiry is delegated to Redis (SET ... EX).

from __future__ import annotations

import logging
from typing import Any

from csrfplus._compat import import_optional

__all__ = ["RedisStore"]

logger = logging.getLogger(__name__)


class RedisStore:
    """``SecretStore`` over any client exposing async ``get``/``set``/``delete``.

    Works with ``redis.asyncio.Redis`` and with test doubles of the same shape.
    """

    def __init__(self, client: Any, *, key_prefix: str = "", owns_client: bool = False):
        self.client = client
        self.key_prefix = key_prefix
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "csrfplus:") -> RedisStore:
        """Create a store with its own connection pool. ``close()`` releases it."""
        aioredis = import_optional("redis.asyncio", "redis")
        return cls(aioredis.from_url(url), key_prefix=key_prefix, owns_client=True)

    async def get(self, key: str) -> str | None:
        value = await self.client.get(self._key(key))
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        if ttl_seconds:
            await self.client.set(self._key(key), value, ex=ttl_seconds)
        else:
            await self.client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def close(self) -> None:
        if not self._owns_client:
            return
        await self.client.aclose()
        logger.debug("Closed Redis CSRF store connection")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"
