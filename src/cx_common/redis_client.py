"""Redis connection for the notification channel.

Nothing authoritative lives in Redis; phase, offer and item state is
PostgreSQL. Socket timeouts are short so a slow or absent Redis delays a
notification, never a committed transition, and startup only warns when the
server cannot be reached.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Return the shared client, creating its pool on first use."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    return _client


async def check_redis() -> bool:
    """Ping once at startup; a failure is logged, notifications then drop."""
    try:
        client = await get_redis()
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis unreachable at startup, notifications disabled until it returns: %s", exc)
        return False
    return True


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
