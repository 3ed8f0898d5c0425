"""Redis client and the TTL-bound chat history store.

Chat history used to live in an unbounded in-process map; it now sits in a
Redis list per user that expires after ``chat_history_ttl_seconds`` of
inactivity and never grows past ``chat_history_max_messages`` entries.

Usage:
    from thumua_marketplace.infrastructure.redis_client import get_redis

    store = ChatHistoryStore(get_redis())
    await store.append(user_id, "user", "Có bán xe đạp không?")
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import redis.asyncio as aioredis

from thumua_marketplace.config import get_settings
from thumua_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    await _redis_client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Chat history ---


class ChatHistoryStore:
    """Per-user conversation history kept as a capped, expiring Redis list.

    Each entry is a JSON object ``{"role": ..., "content": ...}``. System
    prompts are never stored; the consultant prepends its own on every call.
    """

    KEY_PREFIX = "chat:history:"

    def __init__(
        self,
        redis: aioredis.Redis,
        ttl_seconds: int | None = None,
        max_messages: int | None = None,
    ) -> None:
        settings = get_settings()
        self._redis = redis
        self._ttl = ttl_seconds or settings.chat_history_ttl_seconds
        self._max_messages = max_messages or settings.chat_history_max_messages

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    async def get(self, user_id: str) -> list[dict[str, str]]:
        raw = await self._redis.lrange(self._key(user_id), 0, -1)
        return [json.loads(item) for item in raw]

    async def append(self, user_id: str, role: str, content: str) -> None:
        await self.extend(user_id, [{"role": role, "content": content}])

    async def extend(self, user_id: str, messages: Iterable[dict[str, str]]) -> None:
        """Append messages, trim to the newest ``max_messages`` and refresh the TTL."""
        encoded = [json.dumps(m, ensure_ascii=False) for m in messages]
        if not encoded:
            return
        key = self._key(user_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, *encoded)
            pipe.ltrim(key, -self._max_messages, -1)
            pipe.expire(key, self._ttl)
            await pipe.execute()

    async def clear(self, user_id: str) -> None:
        await self._redis.delete(self._key(user_id))
        logger.info("chat.history_cleared", user_id=user_id)
