"""
Execution status channel.

The interpreter publishes node transitions through a StatusPublisher; remote
subscribers read them from a transport (in-memory or Redis) using a
short-lived subscription token.
"""

from workflow_engine.channels.base import (
    STATUS_TOPIC,
    StatusChannel,
    StatusEvent,
    Subscription,
    channel_name_for,
)
from workflow_engine.channels.memory import InMemoryStatusChannel
from workflow_engine.channels.publisher import StatusPublisher
from workflow_engine.channels.redis_channel import RedisStatusChannel
from workflow_engine.channels.tokens import SubscriptionToken, SubscriptionTokenIssuer

__all__ = [
    "STATUS_TOPIC",
    "InMemoryStatusChannel",
    "RedisStatusChannel",
    "StatusChannel",
    "StatusEvent",
    "StatusPublisher",
    "Subscription",
    "SubscriptionToken",
    "SubscriptionTokenIssuer",
    "channel_name_for",
]
