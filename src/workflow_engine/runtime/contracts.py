"""Runtime contracts and data models."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from workflow_engine.models import NodeState, RunStatus


@dataclass
class ExecutionResult:
    """
    Result of one workflow run.
    """
    execution_id: str
    workflow_id: str
    status: RunStatus
    context: Dict[str, Any] = field(default_factory=dict)
    node_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    executed_nodes: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_node_id: Optional[str] = None
    depth: int = 0

    @property
    def is_success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def variables(self) -> Dict[str, Any]:
        variables = self.context.get("variables")
        return variables if isinstance(variables, dict) else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "variables": self.variables,
            "executed_nodes": list(self.executed_nodes),
            "node_results": self.node_results,
            "error": self.error,
            "error_node_id": self.error_node_id,
        }


class CancellationToken:
    """
    Cooperative cancellation flag for a run.

    Checked by the interpreter before each node step; an executor that is
    already running is never interrupted.
    """

    def __init__(self):
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._cancelled = True
        self._reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason


__all__ = [
    "CancellationToken",
    "ExecutionResult",
    "NodeState",
    "RunStatus",
]
