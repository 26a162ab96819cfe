"""Connection presence mirrored into Redis for monitoring."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

import redis.asyncio as redis
from loguru import logger

from app.config import settings
from app.services.registry import ConnectionEntry


class PresenceTracker:
    """Record which identities are connected and when they were last heard from.

    Presence is informational; routing never reads it. Without a Redis URL every
    call is a no-op.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        namespace: str = "ws:presence",
        ttl_seconds: int = 3600,
    ) -> None:
        self.redis_url = redis_url
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if not self.redis_url:
            return None
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=1.5,
            )
        return self._redis

    async def mark_seen(self, entry: ConnectionEntry) -> None:
        """Store the entry's identity with a fresh last-seen timestamp."""

        redis_client = await self._get_redis()
        if redis_client is None:
            return
        record = {
            "user_id": entry.user_id,
            "user_type": entry.user_type.value if entry.user_type else None,
            "restaurant_id": entry.restaurant_id,
            "last_seen": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await redis_client.hset(self.namespace, str(entry.id), json.dumps(record))
            await redis_client.expire(self.namespace, self.ttl_seconds)
        except Exception as exc:
            logger.warning("Failed to persist presence in Redis", error=str(exc))

    async def forget(self, entry: ConnectionEntry) -> None:
        redis_client = await self._get_redis()
        if redis_client is None:
            return
        try:
            await redis_client.hdel(self.namespace, str(entry.id))
        except Exception as exc:
            logger.warning("Failed to clean presence in Redis", error=str(exc))

    async def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Return presence records keyed by connection id."""

        redis_client = await self._get_redis()
        if redis_client is None:
            return {}
        try:
            raw = await redis_client.hgetall(self.namespace)
        except Exception as exc:
            logger.warning("Failed to read presence from Redis", error=str(exc))
            return {}
        return {key: json.loads(value) for key, value in raw.items()}

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_default_presence_tracker() -> PresenceTracker:
    """Factory used by API dependencies to create a presence tracker."""

    return PresenceTracker(
        redis_url=str(settings.REDIS_URL) if settings.REDIS_URL else None,
        ttl_seconds=settings.PRESENCE_TTL_SECONDS,
    )
