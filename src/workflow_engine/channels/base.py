"""Status channel contracts."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from workflow_engine.models import NodeState

STATUS_TOPIC = "status"


def channel_name_for(execution_id: str) -> str:
    """Name of the per-run status channel."""
    return f"execution:{execution_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusEvent(BaseModel):
    """One node state transition, as delivered to subscribers."""

    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId", description="Node that changed state")
    state: NodeState = Field(..., description="New node state")
    detail: Optional[str] = Field(default=None, description="Error message or note")
    execution_id: Optional[str] = Field(default=None, alias="executionId")
    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    timestamp: datetime = Field(default_factory=_utcnow)


class Subscription(ABC):
    """
    Async iterator over the events of one channel/topic.

    Only events published after the subscription was created are delivered.
    """

    def __aiter__(self) -> "Subscription":
        return self

    @abstractmethod
    async def __anext__(self) -> StatusEvent:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving events."""

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class StatusChannel(Protocol):
    """Transport for status events; the interpreter only publishes."""

    async def publish(self, channel: str, topic: str, event: StatusEvent) -> None:
        ...

    async def subscribe(self, channel: str, topic: str) -> Subscription:
        ...

    async def close(self) -> None:
        """Release transport connections."""
        ...


__all__ = [
    "STATUS_TOPIC",
    "StatusChannel",
    "StatusEvent",
    "Subscription",
    "channel_name_for",
]
