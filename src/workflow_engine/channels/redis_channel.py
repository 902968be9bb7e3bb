"""Status channel over Redis PUBLISH/SUBSCRIBE."""
from __future__ import annotations

from typing import Optional

from redis import asyncio as aioredis

from workflow_engine.channels.base import StatusEvent, Subscription
from workflow_engine.config import get_settings
from workflow_engine.observability import get_logger

logger = get_logger(__name__)


def redis_channel_key(channel: str, topic: str) -> str:
    return f"{channel}:{topic}"


class RedisSubscription(Subscription):
    """Wraps a redis PubSub subscribed to a single channel key."""

    def __init__(self, pubsub, key: str, poll_timeout: float = 1.0):
        self._pubsub = pubsub
        self._key = key
        self._poll_timeout = poll_timeout
        self._closed = False

    async def __anext__(self) -> StatusEvent:
        while not self._closed:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True,
                timeout=self._poll_timeout,
            )
            if message is None or message.get("type") != "message":
                continue
            try:
                return StatusEvent.model_validate_json(message["data"])
            except ValueError as e:
                logger.warning(f"Dropping malformed status event on {self._key}: {e}")
        raise StopAsyncIteration

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pubsub.unsubscribe(self._key)
        await self._pubsub.aclose()


class RedisStatusChannel:
    """
    Redis-backed status channel.

    Lets the interpreter run in a Celery worker while the API process
    streams the same events to the editor.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis status channel.

        Args:
            redis_url: Redis connection URL (defaults to settings)
            client: Pre-built async client (tests)
        """
        if client is None:
            client = aioredis.from_url(
                redis_url or get_settings().redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        self._client = client

    async def publish(self, channel: str, topic: str, event: StatusEvent) -> None:
        payload = event.model_dump_json(by_alias=True)
        await self._client.publish(redis_channel_key(channel, topic), payload)

    async def subscribe(self, channel: str, topic: str) -> RedisSubscription:
        key = redis_channel_key(channel, topic)
        pubsub = self._client.pubsub()
        await pubsub.subscribe(key)
        return RedisSubscription(pubsub, key)

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["RedisStatusChannel", "RedisSubscription", "redis_channel_key"]
