"""Executor contracts and data models."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from workflow_engine.config import Settings
    from workflow_engine.models import WorkflowDefinition


class ExecutorKind(str, Enum):
    """Broad role of a node type in a graph."""

    TRIGGER = "trigger"  # Entry point, receives the run payload
    CONDITION = "condition"  # Routes or shapes the context, no outside effects
    ACTION = "action"  # Talks to the outside world


class ExecutorDefinition(BaseModel):
    """Metadata describing a registered executor."""

    node_type: str = Field(..., description="Node type tag the executor handles")
    display_name: str = Field(..., description="Human-readable name")
    description: str | None = Field(default=None, description="What the node does")
    kind: ExecutorKind = Field(default=ExecutorKind.ACTION)
    branching: bool = Field(
        default=False,
        description="Whether the node selects its outgoing edge by handle",
    )

    def __str__(self) -> str:
        """String representation."""
        return self.node_type


@dataclass
class ExecutorParams:
    """
    Everything an executor receives for one node step.

    ``data`` is the node's saved configuration (templates unresolved);
    ``context`` is the full run context as left by the previous node.
    """
    data: Dict[str, Any]
    context: Dict[str, Any]
    node_id: Optional[str] = None
    execution_id: Optional[str] = None
    workflow: Optional["WorkflowDefinition"] = None
    depth: int = 0
    # The interpreter running this step; bundle nodes recurse through it
    runtime: Any = None
    settings: Optional["Settings"] = None
    cancel_token: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def variable_name(self) -> Optional[str]:
        value = self.data.get("variableName")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @property
    def variables(self) -> Dict[str, Any]:
        variables = self.context.get("variables")
        return variables if isinstance(variables, dict) else {}


class NodeExecutor(Protocol):
    """An async handler for one node type: ``(params) -> new context``."""

    async def __call__(self, params: ExecutorParams) -> Dict[str, Any]:
        ...


def with_variable(context: Dict[str, Any], name: Optional[str], value: Any) -> Dict[str, Any]:
    """
    Return a copy of ``context`` with ``variables[name] = value``.

    The input context is left untouched. With no ``name`` the copy is
    returned unchanged.
    """
    new_context = dict(context)
    variables = context.get("variables")
    new_context["variables"] = dict(variables) if isinstance(variables, dict) else {}
    if name:
        new_context["variables"][name] = value
    return new_context


__all__ = [
    "ExecutorDefinition",
    "ExecutorKind",
    "ExecutorParams",
    "NodeExecutor",
    "with_variable",
]
