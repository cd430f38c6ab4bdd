"""Redis-backed notification delivery.

Each notification is pushed onto the user's inbox list (capped) and published
on the shared channel, where email/push workers pick it up.

Key pattern: f"notifications:{user_id}"
"""

import json

import redis.asyncio as aioredis

from config.settings import settings
from src.mp_common.redis_client import get_redis
from src.mp_notification.domain.models import Notification


def inbox_key(user_id: str) -> str:
    return f"notifications:{user_id}"


class RedisNotificationDelivery:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        channel: str | None = None,
        inbox_max: int | None = None,
    ) -> None:
        self._redis = redis
        self._channel = channel or settings.NOTIFICATION_CHANNEL
        self._inbox_max = inbox_max or settings.NOTIFICATION_INBOX_MAX

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def deliver(self, notification: Notification) -> None:
        client = await self._client()
        message = json.dumps(notification.to_dict())
        key = inbox_key(notification.user_id)
        async with client.pipeline(transaction=True) as pipe:
            pipe.lpush(key, message)
            pipe.ltrim(key, 0, self._inbox_max - 1)
            pipe.publish(self._channel, message)
            await pipe.execute()
