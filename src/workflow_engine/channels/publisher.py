"""Per-run status publisher."""
from __future__ import annotations

from typing import Dict, Optional

from workflow_engine.channels.base import STATUS_TOPIC, StatusChannel, StatusEvent, channel_name_for
from workflow_engine.models import NodeState
from workflow_engine.observability import get_logger, with_trace_context

logger = get_logger(__name__)


class StatusPublisher:
    """
    Publishes the node transitions of one run.

    Each node gets exactly one RUNNING event followed by exactly one
    terminal (SUCCESS or ERROR) event; anything else is a programming
    error and raises RuntimeError.
    """

    def __init__(
        self,
        channel: StatusChannel,
        execution_id: str,
        workflow_id: Optional[str] = None,
        topic: str = STATUS_TOPIC,
    ):
        self._channel = channel
        self._execution_id = execution_id
        self._workflow_id = workflow_id
        self._topic = topic
        self._states: Dict[str, NodeState] = {}

    @property
    def channel_name(self) -> str:
        return channel_name_for(self._execution_id)

    @property
    def topic(self) -> str:
        return self._topic

    def state_of(self, node_id: str) -> NodeState:
        return self._states.get(node_id, NodeState.IDLE)

    async def running(self, node_id: str) -> None:
        if self.state_of(node_id) != NodeState.IDLE:
            raise RuntimeError(f"Node {node_id} already published as {self.state_of(node_id).value}")
        await self._publish(node_id, NodeState.RUNNING)

    async def success(self, node_id: str, detail: Optional[str] = None) -> None:
        self._require_running(node_id)
        await self._publish(node_id, NodeState.SUCCESS, detail)

    async def error(self, node_id: str, detail: Optional[str] = None) -> None:
        self._require_running(node_id)
        await self._publish(node_id, NodeState.ERROR, detail)

    def _require_running(self, node_id: str) -> None:
        if self.state_of(node_id) != NodeState.RUNNING:
            raise RuntimeError(
                f"Node {node_id} must be RUNNING before a terminal state, "
                f"is {self.state_of(node_id).value}"
            )

    async def _publish(self, node_id: str, state: NodeState, detail: Optional[str] = None) -> None:
        event = StatusEvent(
            node_id=node_id,
            state=state,
            detail=detail,
            execution_id=self._execution_id,
            workflow_id=self._workflow_id,
        )
        self._states[node_id] = state
        await self._channel.publish(self.channel_name, self._topic, event)
        logger.debug(
            f"Node {node_id} -> {state.value}",
            extra=with_trace_context(
                logger,
                execution_id=self._execution_id,
                workflow_id=self._workflow_id,
                node_id=node_id,
            ),
        )


__all__ = ["StatusPublisher"]
