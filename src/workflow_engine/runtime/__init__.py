"""
Workflow runtime.

- WorkflowInterpreter: single-pass async graph execution
- ExecutionResult / CancellationToken: run outcome and cooperative cancel
- build_runtime: interpreter wired from settings
"""

from workflow_engine.runtime.contracts import (
    CancellationToken,
    ExecutionResult,
    NodeState,
    RunStatus,
)
from workflow_engine.runtime.factory import build_runtime
from workflow_engine.runtime.interpreter import (
    WorkflowInterpreter,
    branch_for,
    build_initial_context,
    merge_context,
)

__all__ = [
    "CancellationToken",
    "ExecutionResult",
    "NodeState",
    "RunStatus",
    "WorkflowInterpreter",
    "branch_for",
    "build_initial_context",
    "build_runtime",
    "merge_context",
]
