"""
Node executors.

Every node type maps to one async executor ``(ExecutorParams) -> context``.
Integration-specific executors (CRM, mail, chat...) are plugged in through
the ``workflow_engine.executors`` entry point group.
"""

from workflow_engine.executors.builtin import create_default_registry, register_builtin_executors
from workflow_engine.executors.contracts import (
    ExecutorDefinition,
    ExecutorKind,
    ExecutorParams,
    NodeExecutor,
    with_variable,
)
from workflow_engine.executors.registry import EXECUTOR_ENTRY_POINT, ExecutorRegistry

__all__ = [
    "EXECUTOR_ENTRY_POINT",
    "ExecutorDefinition",
    "ExecutorKind",
    "ExecutorParams",
    "ExecutorRegistry",
    "NodeExecutor",
    "create_default_registry",
    "register_builtin_executors",
    "with_variable",
]
