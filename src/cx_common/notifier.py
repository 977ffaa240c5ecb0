"""Fire-and-forget notification channel.

Services publish after their transaction commits. Delivery failures are
logged and dropped: a lost notification never undoes a committed transition.

Message format (JSON on settings.NOTIFY_CHANNEL):
    {"event": "offer.accepted", "payload": {...}, "published_at": "..."}
"""

import json
import logging
from typing import Any, Protocol

from redis.exceptions import RedisError

from config.settings import settings
from src.cx_common.clock import utc_now
from src.cx_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class NotifierProtocol(Protocol):
    async def publish(self, event: str, payload: dict[str, Any]) -> None: ...


class RedisNotifier:
    def __init__(self, channel: str | None = None) -> None:
        self._channel = channel or settings.NOTIFY_CHANNEL

    async def publish(self, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps(
            {"event": event, "payload": payload, "published_at": utc_now().isoformat()},
            default=str,
        )
        try:
            redis = await get_redis()
            await redis.publish(self._channel, message)
        except (RedisError, OSError) as exc:
            logger.warning("Notification %s dropped: %s", event, exc)
