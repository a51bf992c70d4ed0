"""
Booking snapshot store backed by Redis.

One JSON document per user under ``booking:{user_id}``, refreshed with a
TTL on every write so abandoned bookings eventually disappear.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisSnapshotStore:
    def __init__(self, client: aioredis.Redis, ttl_seconds: int = 7 * 24 * 3600):
        self.redis = client
        self.ttl = ttl_seconds

    @staticmethod
    def key(user_id: str) -> str:
        return f"booking:{user_id}"

    async def load(self, user_id: str) -> Optional[dict[str, Any]]:
        raw = await self.redis.get(self.key(user_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt booking snapshot for %s; ignoring", user_id)
            return None
        return data if isinstance(data, dict) else None

    async def save(self, user_id: str, snapshot: dict[str, Any]) -> None:
        await self.redis.set(self.key(user_id), json.dumps(snapshot), ex=self.ttl)

    async def clear(self, user_id: str) -> None:
        await self.redis.delete(self.key(user_id))
