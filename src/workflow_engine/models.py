"""
Workflow Models - JSON structures for workflow graphs.

These models accept the editor's graph snapshot (camelCase keys, React Flow
style edges) as well as the persisted connection format
(``fromNodeId``/``toNodeId``/``fromOutput``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """Closed set of node type tags known to the engine."""

    # Placeholder for a freshly emptied graph
    INITIAL = "INITIAL"

    # Triggers
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    WEBHOOK_TRIGGER = "WEBHOOK_TRIGGER"
    SCHEDULE_TRIGGER = "SCHEDULE_TRIGGER"
    GOOGLE_FORM_TRIGGER = "GOOGLE_FORM_TRIGGER"
    GOOGLE_CALENDAR_TRIGGER = "GOOGLE_CALENDAR_TRIGGER"
    GMAIL_TRIGGER = "GMAIL_TRIGGER"
    TELEGRAM_TRIGGER = "TELEGRAM_TRIGGER"
    STRIPE_TRIGGER = "STRIPE_TRIGGER"

    # Conditions / utility
    IF_ELSE = "IF_ELSE"
    SWITCH = "SWITCH"
    SET_VARIABLE = "SET_VARIABLE"
    STOP_WORKFLOW = "STOP_WORKFLOW"

    # Actions
    HTTP_REQUEST = "HTTP_REQUEST"
    BUNDLE_WORKFLOW = "BUNDLE_WORKFLOW"
    CREATE_CONTACT = "CREATE_CONTACT"
    UPDATE_CONTACT = "UPDATE_CONTACT"
    CREATE_DEAL = "CREATE_DEAL"
    UPDATE_DEAL = "UPDATE_DEAL"
    GMAIL_EXECUTION = "GMAIL_EXECUTION"
    GOOGLE_CALENDAR_EXECUTION = "GOOGLE_CALENDAR_EXECUTION"
    TELEGRAM_EXECUTION = "TELEGRAM_EXECUTION"
    SLACK = "SLACK"
    DISCORD = "DISCORD"
    GEMINI = "GEMINI"

    @classmethod
    def is_trigger(cls, node_type: str) -> bool:
        """Is this tag an entry-point (trigger) type?"""
        return node_type in _TRIGGER_TYPES

    @classmethod
    def is_branching(cls, node_type: str) -> bool:
        """Does this tag select its outgoing edge by handle?"""
        return node_type in _BRANCHING_TYPES


class RunStatus(str, Enum):
    """Overall run status."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class NodeState(str, Enum):
    """Per-node state as published on the status channel."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


_TRIGGER_TYPES = frozenset(
    t.value for t in NodeType if t.value.endswith("_TRIGGER")
)
_BRANCHING_TYPES = frozenset({NodeType.IF_ELSE.value, NodeType.SWITCH.value})

# Handles the editor puts on ordinary (non-branching) connections
PLAIN_HANDLES = frozenset({"", "main"})
DEFAULT_HANDLE = "default"


def is_plain_handle(handle: Optional[str]) -> bool:
    """True when an edge handle carries no branch discriminator."""
    if handle is None:
        return True
    return handle in PLAIN_HANDLES or handle.startswith("source-")


class NodePosition(BaseModel):
    """Node position in the canvas (layout only)."""
    x: float = 0
    y: float = 0


class WorkflowNode(BaseModel):
    """
    A node in a workflow graph.

    ``data`` is the type-specific configuration saved by the editor; it may
    contain ``{{...}}`` templates that executors resolve at run time.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Node id (unique within workflow)")
    type: str = Field(..., description="Node type tag (see NodeType)")
    data: Dict[str, Any] = Field(default_factory=dict)
    position: NodePosition = Field(default_factory=NodePosition)
    name: Optional[str] = Field(None, description="Display name")

    @property
    def variable_name(self) -> Optional[str]:
        """Variable this node writes into the context, if declared."""
        value = self.data.get("variableName")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @property
    def label(self) -> str:
        """Human readable identifier for logs and namespaces."""
        return self.name or self.variable_name or self.id


class WorkflowEdge(BaseModel):
    """
    Directed connection between two nodes.

    ``source_handle`` discriminates the branch of IF (``true``/``false``)
    and SWITCH (``case-N``/``default``) nodes.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    source: str = Field(..., validation_alias=AliasChoices("source", "fromNodeId"))
    target: str = Field(..., validation_alias=AliasChoices("target", "toNodeId"))
    source_handle: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "source_handle", "sourceHandle", "sourceHandleId", "fromOutput"
        ),
        serialization_alias="sourceHandle",
    )
    target_handle: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("target_handle", "targetHandle", "toInput"),
        serialization_alias="targetHandle",
    )

    @property
    def is_plain(self) -> bool:
        return is_plain_handle(self.source_handle)


class BundleInput(BaseModel):
    """Typed input parameter declared by a bundle workflow."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    type: str = "string"
    description: Optional[str] = None
    default_value: Any = Field(
        None, validation_alias=AliasChoices("default_value", "defaultValue")
    )


class BundleOutput(BaseModel):
    """Value a bundle workflow hands back to its caller."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    variable_path: str = Field(
        ..., validation_alias=AliasChoices("variable_path", "variablePath")
    )


class WorkflowDefinition(BaseModel):
    """
    Complete workflow graph snapshot.

    Owned by an organization/subaccount; persisted as a whole per save.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, description="Workflow ID")
    name: str = Field("Unnamed Workflow", description="Workflow name")
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(
        default_factory=list,
        validation_alias=AliasChoices("edges", "connections"),
    )
    is_bundle: bool = Field(
        False, validation_alias=AliasChoices("is_bundle", "isBundle")
    )
    bundle_inputs: List[BundleInput] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bundle_inputs", "bundleInputs"),
    )
    bundle_outputs: List[BundleOutput] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bundle_outputs", "bundleOutputs"),
    )

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def outgoing_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    @property
    def is_placeholder(self) -> bool:
        """Empty graph, or nothing but the synthetic INITIAL node."""
        if not self.nodes:
            return True
        only_initial = all(node.type == NodeType.INITIAL.value for node in self.nodes)
        return only_initial and not self.edges

    def trigger_candidates(self) -> List[WorkflowNode]:
        """
        Nodes that could start a run.

        Explicitly flagged trigger types win; otherwise every node without
        incoming edges is a candidate (isolated INITIAL placeholders excluded).
        """
        flagged = [node for node in self.nodes if NodeType.is_trigger(node.type)]
        if flagged:
            return flagged

        targets = {edge.target for edge in self.edges}
        sources = {edge.source for edge in self.edges}
        candidates = []
        for node in self.nodes:
            if node.id in targets:
                continue
            if node.type == NodeType.INITIAL.value and node.id not in sources:
                continue
            candidates.append(node)
        return candidates


def placeholder_node() -> WorkflowNode:
    """The single node a freshly emptied graph collapses to."""
    return WorkflowNode(
        id=NodeType.INITIAL.value.lower(),
        type=NodeType.INITIAL.value,
        name=NodeType.INITIAL.value,
    )


def parse_workflow(data: Dict[str, Any]) -> WorkflowDefinition:
    """Parse workflow JSON into WorkflowDefinition."""
    return WorkflowDefinition.model_validate(data)


class VariableItem(BaseModel):
    """
    One variable visible to a node at design time.

    Advisory only: feeds the template-authoring UI, never read by the
    interpreter.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Full dot path, e.g. 'contact.email'")
    label: str = Field(..., description="Last path segment for display")
    type: str = Field(..., description="primitive | object | array")
    description: Optional[str] = None
    sample_value: Any = Field(None, serialization_alias="sampleValue")
    children: Optional[List["VariableItem"]] = None


__all__ = [
    "NodeType",
    "NodeState",
    "RunStatus",
    "NodePosition",
    "WorkflowNode",
    "WorkflowEdge",
    "BundleInput",
    "BundleOutput",
    "WorkflowDefinition",
    "VariableItem",
    "DEFAULT_HANDLE",
    "is_plain_handle",
    "parse_workflow",
    "placeholder_node",
]
