from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RetrievalCache:
    """JSON cache for external lookups (web search results) backed by redis."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None) -> None:
        self._client = client or redis.Redis.from_url(redis_url, decode_responses=True)

    @staticmethod
    def _key(namespace: str, payload: str) -> str:
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"retrieval:{namespace}:{digest}"

    async def get_json(self, namespace: str, payload: str) -> Optional[Any]:
        key = self._key(namespace, payload)
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            logger.debug("Cache read failed for %s: %s", namespace, exc)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    async def set_json(self, namespace: str, payload: str, value: Any, ttl_seconds: int) -> None:
        key = self._key(namespace, payload)
        try:
            await self._client.setex(key, max(1, int(ttl_seconds)), json.dumps(value))
        except RedisError as exc:
            logger.debug("Cache write failed for %s: %s", namespace, exc)

    async def close(self) -> None:
        await self._client.aclose()
