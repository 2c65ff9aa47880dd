"""
Event publication to downstream services.

Delivery is at-most-once: ``publish_best_effort`` hands the event to the
broker and returns; a broker failure is logged and dropped, never raised
into the request that produced the event.
"""

import json
from typing import List, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from account_service.kernel.events.event_types import BaseEvent
from account_service.logging_config import get_logger

logger = get_logger(__name__)


class EventPublisher(Protocol):
    """Broker hand-off used by the identity service."""

    async def publish(self, event: BaseEvent) -> None:
        ...

    async def close(self) -> None:
        ...


class RedisEventPublisher:
    """
    Publish events on Redis pub/sub channels named after the topic.

    Usage:
        publisher = RedisEventPublisher("redis://localhost:6379/0")
        await publisher.publish(UserRegistered(user_id=str(user.id)))
    """

    def __init__(
        self,
        url: str,
        channel_prefix: str = "",
        client: Optional[aioredis.Redis] = None,
    ):
        self.url = url
        self.channel_prefix = channel_prefix
        self._client = client

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
        return self._client

    def channel_for(self, event: BaseEvent) -> str:
        return f"{self.channel_prefix}{event.topic.value}"

    async def publish(self, event: BaseEvent) -> None:
        channel = self.channel_for(event)
        receivers = await self._get_client().publish(channel, json.dumps(event.to_message()))
        logger.debug(
            "Event published",
            extra={"channel": channel, "receivers": receivers},
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class InMemoryEventPublisher:
    """Record events in a list; used by tests and single-process runs."""

    def __init__(self) -> None:
        self.events: List[BaseEvent] = []

    async def publish(self, event: BaseEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[BaseEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    async def close(self) -> None:
        pass


async def publish_best_effort(publisher: EventPublisher, event: BaseEvent) -> None:
    """Publish and swallow broker failures."""
    try:
        await publisher.publish(event)
    except (RedisError, OSError) as e:
        logger.warning(
            "Event publication failed; event dropped",
            extra={"topic": event.topic.value, "error": str(e)},
        )
    except Exception:
        logger.exception(
            "Unexpected error publishing event; event dropped",
            extra={"topic": event.topic.value},
        )


def create_event_publisher(settings) -> EventPublisher:
    """Pick the publisher configured by ``event_backend``."""
    if settings.event_backend == "memory":
        return InMemoryEventPublisher()
    return RedisEventPublisher(settings.redis_url, channel_prefix=settings.event_channel_prefix)
