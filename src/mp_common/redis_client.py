"""Shared Redis connection for notification delivery.

Orders, payments and stock live only in PostgreSQL; Redis carries the
per-user notification inboxes and the pub/sub channel, so an outage here
degrades notifications but never blocks a state transition.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def redis_ready() -> bool:
    try:
        client = await get_redis()
        await client.ping()
    except (RedisError, OSError):
        logger.warning("Redis readiness check failed; notifications will be dropped")
        return False
    return True


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
