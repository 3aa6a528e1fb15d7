"""
Cache transports for serialized profiles.

Both transports expose the same two calls, `get(key)` and `set(key, value, ttl)`.
Expiry is advisory: an expired entry just turns into a miss.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class CacheTransport(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryCacheTransport(CacheTransport):
    """In-process cache with per-key TTL, expired keys are dropped on read."""

    def __init__(self):
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)

    def cleanup_expired(self) -> int:
        """Remove expired entries; returns how many were dropped."""
        now = time.monotonic()
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
        for key in expired:
            del self._data[key]
        return len(expired)


class RedisCacheTransport(CacheTransport):
    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client: Optional[aioredis.Redis] = None

    def get_client(self) -> aioredis.Redis:
        """Get or create Redis client"""
        if self._client is None:
            self._client = aioredis.from_url(self.redis_url)
        return self._client

    async def get(self, key: str) -> Optional[bytes]:
        return await self.get_client().get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            await self.get_client().set(key, value, ex=ttl_seconds)
        else:
            await self.get_client().set(key, value)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
