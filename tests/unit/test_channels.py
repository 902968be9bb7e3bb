"""Tests for the status channel, publisher and subscription tokens."""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from workflow_engine.channels import (
    InMemoryStatusChannel,
    RedisStatusChannel,
    StatusEvent,
    StatusPublisher,
    SubscriptionTokenIssuer,
    channel_name_for,
)
from workflow_engine.channels.redis_channel import RedisSubscription
from workflow_engine.errors import SubscriptionTokenError
from workflow_engine.models import NodeState


def _event(node_id="n1", state=NodeState.RUNNING):
    return StatusEvent(node_id=node_id, state=state)


class TestStatusEvent:
    """Test StatusEvent serialization."""

    def test_serializes_with_camel_case(self):
        event = StatusEvent(node_id="n1", state=NodeState.ERROR, detail="boom", execution_id="e1")
        data = event.model_dump(mode="json", by_alias=True)
        assert data["nodeId"] == "n1"
        assert data["state"] == "ERROR"
        assert data["executionId"] == "e1"

    def test_parses_alias_json(self):
        event = StatusEvent.model_validate_json('{"nodeId": "n2", "state": "SUCCESS"}')
        assert event.node_id == "n2"
        assert event.state == NodeState.SUCCESS


class TestInMemoryStatusChannel:
    """Test InMemoryStatusChannel."""

    @pytest.mark.asyncio
    async def test_subscriber_receives_events_after_subscribe(self):
        channel = InMemoryStatusChannel()
        await channel.publish("c", "status", _event("before"))

        subscription = await channel.subscribe("c", "status")
        await channel.publish("c", "status", _event("after"))

        received = await subscription.get(timeout=1)
        assert received.node_id == "after"
        await subscription.close()

    @pytest.mark.asyncio
    async def test_topics_and_channels_are_isolated(self):
        channel = InMemoryStatusChannel()
        subscription = await channel.subscribe("c1", "status")

        await channel.publish("c2", "status", _event("other-channel"))
        await channel.publish("c1", "debug", _event("other-topic"))
        await channel.publish("c1", "status", _event("mine"))

        assert (await subscription.get(timeout=1)).node_id == "mine"
        assert len(channel.history()) == 3
        assert [e.node_id for e in channel.history("c1", "status")] == ["mine"]

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        channel = InMemoryStatusChannel()
        subscription = await channel.subscribe("c", "status")
        await channel.publish("c", "status", _event("one"))

        async def consume():
            return [event.node_id async for event in subscription]

        consumer = asyncio.ensure_future(consume())
        await asyncio.sleep(0)
        await subscription.close()

        assert await asyncio.wait_for(consumer, timeout=1) == ["one"]
        assert channel.subscriber_count("c", "status") == 0

    @pytest.mark.asyncio
    async def test_channel_close_ends_all_subscriptions(self):
        channel = InMemoryStatusChannel()
        first = await channel.subscribe("c1", "status")
        second = await channel.subscribe("c2", "status")

        await channel.close()

        assert channel.subscriber_count("c1", "status") == 0
        assert channel.subscriber_count("c2", "status") == 0
        with pytest.raises(StopAsyncIteration):
            await first.__anext__()
        with pytest.raises(StopAsyncIteration):
            await second.__anext__()

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self):
        channel = InMemoryStatusChannel()
        async with await channel.subscribe("c", "status"):
            assert channel.subscriber_count("c", "status") == 1
        assert channel.subscriber_count("c", "status") == 0

    @pytest.mark.asyncio
    async def test_clear_history(self):
        channel = InMemoryStatusChannel()
        await channel.publish("c", "status", _event())
        channel.clear()
        assert channel.history() == []


class TestStatusPublisher:
    """Test RUNNING -> terminal ordering."""

    @pytest.mark.asyncio
    async def test_publishes_to_run_channel(self):
        channel = InMemoryStatusChannel()
        publisher = StatusPublisher(channel, "exec-1", "wf-1")

        await publisher.running("n1")
        await publisher.error("n1", "boom")

        events = channel.history(channel_name_for("exec-1"), "status")
        assert [(e.node_id, e.state) for e in events] == [
            ("n1", NodeState.RUNNING),
            ("n1", NodeState.ERROR),
        ]
        assert events[1].detail == "boom"
        assert events[1].workflow_id == "wf-1"
        assert publisher.state_of("n1") == NodeState.ERROR
        assert publisher.state_of("n2") == NodeState.IDLE

    @pytest.mark.asyncio
    async def test_terminal_requires_running(self):
        publisher = StatusPublisher(InMemoryStatusChannel(), "exec-1")
        with pytest.raises(RuntimeError):
            await publisher.success("n1")

    @pytest.mark.asyncio
    async def test_running_only_once(self):
        publisher = StatusPublisher(InMemoryStatusChannel(), "exec-1")
        await publisher.running("n1")
        await publisher.success("n1")
        with pytest.raises(RuntimeError):
            await publisher.running("n1")
        with pytest.raises(RuntimeError):
            await publisher.success("n1")


class TestSubscriptionTokens:
    """Test SubscriptionTokenIssuer."""

    def test_issue_and_verify(self):
        issuer = SubscriptionTokenIssuer("secret", ttl_s=60)
        token = issuer.issue("execution:e1")

        claims = issuer.verify(token.token, "execution:e1", "status")

        assert claims["sub"] == "execution:e1"
        assert claims["topics"] == ["status"]
        assert token.topics == ["status"]

    def test_wrong_channel_rejected(self):
        issuer = SubscriptionTokenIssuer("secret")
        token = issuer.issue("execution:e1")
        with pytest.raises(SubscriptionTokenError):
            issuer.verify(token.token, "execution:e2", "status")

    def test_wrong_topic_rejected(self):
        issuer = SubscriptionTokenIssuer("secret")
        token = issuer.issue("execution:e1", ["status"])
        with pytest.raises(SubscriptionTokenError):
            issuer.verify(token.token, "execution:e1", "logs")

    def test_expired_token_rejected(self):
        issuer = SubscriptionTokenIssuer("secret", ttl_s=60)
        past = datetime.now(timezone.utc) - timedelta(minutes=10)
        token = issuer.issue("execution:e1", now=past)

        with pytest.raises(SubscriptionTokenError) as exc_info:
            issuer.verify(token.token, "execution:e1")
        assert exc_info.value.message == "Subscription token expired"

    def test_foreign_secret_rejected(self):
        token = SubscriptionTokenIssuer("one").issue("execution:e1")
        with pytest.raises(SubscriptionTokenError):
            SubscriptionTokenIssuer("two").verify(token.token, "execution:e1")

    def test_needs_refresh(self):
        issuer = SubscriptionTokenIssuer("secret", ttl_s=300, refresh_margin_s=30)
        now = datetime.now(timezone.utc)
        token = issuer.issue("execution:e1", now=now)

        assert not issuer.needs_refresh(token.token, now=now)
        assert issuer.needs_refresh(token.token, now=now + timedelta(seconds=280))
        assert issuer.needs_refresh("garbage")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SubscriptionTokenIssuer("")

    def test_from_settings(self, settings):
        issuer = SubscriptionTokenIssuer.from_settings(settings)
        token = issuer.issue("execution:e1")
        assert issuer.verify(token.token, "execution:e1")["type"] == "status_subscription"


class TestRedisStatusChannel:
    """Test RedisStatusChannel against a mocked async client."""

    @pytest.mark.asyncio
    async def test_publish_serializes_event(self):
        client = MagicMock()
        client.publish = AsyncMock()
        channel = RedisStatusChannel(client=client)

        await channel.publish("execution:e1", "status", _event("n1"))

        key, payload = client.publish.await_args.args
        assert key == "execution:e1:status"
        assert json.loads(payload)["nodeId"] == "n1"

    @pytest.mark.asyncio
    async def test_subscribe_and_iterate(self):
        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.get_message = AsyncMock(
            side_effect=[
                None,
                {"type": "message", "data": "not json"},
                {"type": "message", "data": _event("n1").model_dump_json(by_alias=True)},
            ]
        )
        client = MagicMock()
        client.pubsub.return_value = pubsub
        channel = RedisStatusChannel(client=client)

        subscription = await channel.subscribe("execution:e1", "status")
        event = await subscription.__anext__()
        await subscription.close()

        assert isinstance(subscription, RedisSubscription)
        assert event.node_id == "n1"
        pubsub.subscribe.assert_awaited_once_with("execution:e1:status")
        pubsub.unsubscribe.assert_awaited_once_with("execution:e1:status")
        pubsub.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_subscription_stops(self):
        pubsub = MagicMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        subscription = RedisSubscription(pubsub, "k")
        await subscription.close()

        with pytest.raises(StopAsyncIteration):
            await subscription.__anext__()
