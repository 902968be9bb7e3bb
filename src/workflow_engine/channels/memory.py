"""In-process status channel (tests, CLI, single-process deployments)."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set, Tuple

from workflow_engine.channels.base import StatusEvent, Subscription

_CLOSED = object()


class InMemorySubscription(Subscription):
    """Subscription backed by an unbounded asyncio queue."""

    def __init__(self, channel: "InMemoryStatusChannel", key: Tuple[str, str]):
        self._channel = channel
        self._key = key
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def deliver(self, event: StatusEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    async def __anext__(self) -> StatusEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def get(self, timeout: Optional[float] = None) -> StatusEvent:
        """Next event, waiting at most ``timeout`` seconds."""
        return await asyncio.wait_for(self.__anext__(), timeout=timeout)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._detach(self._key, self)
        self._queue.put_nowait(_CLOSED)


class InMemoryStatusChannel:
    """
    Fan-out of status events to in-process subscribers.

    Every published event is also kept in a history list so callers can
    inspect what a run published without subscribing first.
    """

    def __init__(self):
        self._subscribers: Dict[Tuple[str, str], Set[InMemorySubscription]] = {}
        self._history: List[Tuple[str, str, StatusEvent]] = []

    async def publish(self, channel: str, topic: str, event: StatusEvent) -> None:
        self._history.append((channel, topic, event))
        for subscription in list(self._subscribers.get((channel, topic), ())):
            subscription.deliver(event)

    async def subscribe(self, channel: str, topic: str) -> InMemorySubscription:
        key = (channel, topic)
        subscription = InMemorySubscription(self, key)
        self._subscribers.setdefault(key, set()).add(subscription)
        return subscription

    def _detach(self, key: Tuple[str, str], subscription: InMemorySubscription) -> None:
        subscribers = self._subscribers.get(key)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[key]

    def history(self, channel: Optional[str] = None, topic: Optional[str] = None) -> List[StatusEvent]:
        """Events published so far, optionally filtered by channel and topic."""
        return [
            event
            for event_channel, event_topic, event in self._history
            if (channel is None or event_channel == channel)
            and (topic is None or event_topic == topic)
        ]

    async def close(self) -> None:
        """End every open subscription."""
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.close()

    def subscriber_count(self, channel: str, topic: str) -> int:
        return len(self._subscribers.get((channel, topic), ()))

    def clear(self) -> None:
        """Forget published history (subscriptions stay open)."""
        self._history.clear()


__all__ = ["InMemoryStatusChannel", "InMemorySubscription"]
