"""Workflow store: get/save of whole graph snapshots."""
from typing import Any, Iterable, Protocol

import redis

from workflow_engine.config import get_settings
from workflow_engine.errors import WorkflowNotFoundError
from workflow_engine.models import (
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    placeholder_node,
)
from workflow_engine.observability import get_logger

logger = get_logger(__name__)


class WorkflowStore(Protocol):
    """Persistence for workflow graphs."""

    def get(self, workflow_id: str) -> WorkflowDefinition:
        ...

    def save(
        self,
        workflow_id: str,
        nodes: Iterable[WorkflowNode | dict[str, Any]],
        edges: Iterable[WorkflowEdge | dict[str, Any]],
        **attributes: Any,
    ) -> WorkflowDefinition:
        ...


def build_snapshot(
    workflow_id: str,
    nodes: Iterable[WorkflowNode | dict[str, Any]],
    edges: Iterable[WorkflowEdge | dict[str, Any]],
    existing: WorkflowDefinition | None = None,
    **attributes: Any,
) -> WorkflowDefinition:
    """
    Build the definition to persist for a save.

    Name, bundle flag and bundle inputs/outputs carry over from ``existing``
    unless given in ``attributes``. An empty node list collapses to the
    single INITIAL placeholder.
    """
    node_list = [
        n if isinstance(n, WorkflowNode) else WorkflowNode.model_validate(n) for n in nodes
    ]
    edge_list = [
        e if isinstance(e, WorkflowEdge) else WorkflowEdge.model_validate(e) for e in edges
    ]
    if not node_list:
        node_list = [placeholder_node()]
        edge_list = []

    base: dict[str, Any] = {}
    if existing is not None:
        base = existing.model_dump(exclude={"nodes", "edges"})
    base.update(attributes)
    base.update({"id": workflow_id, "nodes": node_list, "edges": edge_list})
    return WorkflowDefinition.model_validate(base)


class InMemoryWorkflowStore:
    """Dict-backed workflow store (tests, CLI)."""

    def __init__(self, workflows: Iterable[WorkflowDefinition] = ()):
        self._workflows: dict[str, WorkflowDefinition] = {}
        for workflow in workflows:
            self.put(workflow)

    def put(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Store a complete definition as-is."""
        if not workflow.id:
            raise ValueError("Workflow must have an id to be stored")
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    def get(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
        return workflow.model_copy(deep=True)

    def save(self, workflow_id, nodes, edges, **attributes) -> WorkflowDefinition:
        snapshot = build_snapshot(
            workflow_id, nodes, edges, self._workflows.get(workflow_id), **attributes
        )
        self._workflows[workflow_id] = snapshot
        return snapshot.model_copy(deep=True)


class RedisWorkflowStore:
    """Redis-backed workflow store (one JSON snapshot per workflow)."""

    def __init__(self, redis_client: redis.Redis | None = None):
        """
        Initialize workflow store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
        """
        if redis_client is None:
            settings = get_settings()
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        else:
            self.redis_client = redis_client

        self._workflow_prefix = "workflow:"

    def _workflow_key(self, workflow_id: str) -> str:
        """Get Redis key for a workflow."""
        return f"{self._workflow_prefix}{workflow_id}"

    def _load(self, workflow_id: str) -> WorkflowDefinition | None:
        data = self.redis_client.get(self._workflow_key(workflow_id))
        if data is None:
            return None
        return WorkflowDefinition.model_validate_json(data)

    def put(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Store a complete definition as-is."""
        if not workflow.id:
            raise ValueError("Workflow must have an id to be stored")
        self.redis_client.set(self._workflow_key(workflow.id), workflow.model_dump_json())
        return workflow

    def get(self, workflow_id: str) -> WorkflowDefinition:
        """
        Get workflow by ID.

        Raises:
            WorkflowNotFoundError: If no snapshot is stored
        """
        workflow = self._load(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
        return workflow

    def save(self, workflow_id, nodes, edges, **attributes) -> WorkflowDefinition:
        """
        Persist a new graph snapshot for ``workflow_id``.

        Returns:
            The stored definition
        """
        snapshot = build_snapshot(
            workflow_id, nodes, edges, self._load(workflow_id), **attributes
        )
        self.put(snapshot)

        logger.info(
            "Workflow saved",
            extra={
                "workflow_id": workflow_id,
                "nodes": len(snapshot.nodes),
                "edges": len(snapshot.edges),
            },
        )
        return snapshot
