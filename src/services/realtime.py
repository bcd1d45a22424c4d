"""Live notification feed over Redis pub/sub.

The delivery log publishes a small event after every mutation so open
notification centers and badge counters can refresh without polling.
Publishing is best-effort: the log never depends on it.
"""

import json
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import redis
import redis.asyncio as aioredis

from src.config import get_settings

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)
settings = get_settings()


class NotificationEventType(StrEnum):
    """Event types published on a user's notification channel."""

    NOTIFICATION_CREATED = "notification_created"
    NOTIFICATIONS_READ = "notifications_read"
    NOTIFICATIONS_DELETED = "notifications_deleted"


def user_channel(user_id: int) -> str:
    """Redis channel carrying one user's notification events."""
    return f"notifications:{user_id}"


_sync_redis: redis.Redis | None = None


def get_sync_redis() -> redis.Redis:
    """Get synchronous Redis client for publishing from services and tasks."""
    global _sync_redis
    if _sync_redis is None:
        _sync_redis = redis.from_url(settings.redis_url)
    return _sync_redis


def publish_user_event(
    user_id: int, event_type: NotificationEventType, data: dict | None = None
) -> None:
    """Publish a notification event to the user's channel.

    Args:
        user_id: Recipient whose UI surfaces should refresh
        event_type: What changed in the delivery log
        data: Optional event payload (record ids, channel, unread count, ...)
    """
    if not settings.realtime_enabled:
        return
    try:
        message = {
            "type": event_type,
            "user_id": user_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "data": data or {},
        }
        get_sync_redis().publish(user_channel(user_id), json.dumps(message, default=str))
        logger.debug(f"Published {event_type} for user {user_id}")
    except Exception as e:
        # The log write already succeeded; a dead feed only delays UI refresh
        logger.error(f"Failed to publish notification event: {e}")


class RealtimeService:
    """Async Redis subscriber used by the notification WebSocket."""

    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.redis_url)
        return self._redis

    async def subscribe(self, user_id: int) -> AsyncIterator[dict]:
        """Yield decoded events published for a user."""
        channel = user_channel(user_id)
        redis_conn = await self._get_redis()
        self._pubsub = redis_conn.pubsub()
        await self._pubsub.subscribe(channel)

        try:
            async for message in self._pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON on {channel}: {message['data']}")
        finally:
            if self._pubsub:
                await self._pubsub.unsubscribe(channel)

    async def cleanup(self) -> None:
        """Close the pub/sub and Redis connections."""
        if self._pubsub:
            await self._pubsub.close()
        if self._redis:
            await self._redis.close()
