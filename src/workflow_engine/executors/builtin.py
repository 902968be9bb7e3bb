"""Built-in executors and the default registry."""
from __future__ import annotations

from workflow_engine.executors.bundle import bundle_workflow_executor
from workflow_engine.executors.conditions import if_else_executor, switch_executor
from workflow_engine.executors.contracts import ExecutorKind
from workflow_engine.executors.http_request import http_request_executor
from workflow_engine.executors.registry import ExecutorRegistry
from workflow_engine.executors.triggers import trigger_executor
from workflow_engine.executors.utility import (
    initial_executor,
    set_variable_executor,
    stop_workflow_executor,
)
from workflow_engine.models import NodeType


def register_builtin_executors(registry: ExecutorRegistry) -> ExecutorRegistry:
    """Register the engine's own executors on ``registry``."""
    for node_type in NodeType:
        if NodeType.is_trigger(node_type.value):
            registry.register(node_type, trigger_executor, description="Starts a run with its payload")

    registry.register(
        NodeType.INITIAL,
        initial_executor,
        display_name="Initial",
        description="Placeholder of an empty workflow",
    )
    registry.register(
        NodeType.SET_VARIABLE,
        set_variable_executor,
        display_name="Set Variable",
        description="Store a resolved value under a variable name",
    )
    registry.register(
        NodeType.IF_ELSE,
        if_else_executor,
        display_name="If / Else",
        description="Follow the true or false edge",
        kind=ExecutorKind.CONDITION,
        branching=True,
    )
    registry.register(
        NodeType.SWITCH,
        switch_executor,
        display_name="Switch",
        description="Follow the edge of the first matching case",
        kind=ExecutorKind.CONDITION,
        branching=True,
    )
    registry.register(
        NodeType.STOP_WORKFLOW,
        stop_workflow_executor,
        display_name="Stop Workflow",
        description="End the run successfully",
    )
    registry.register(
        NodeType.HTTP_REQUEST,
        http_request_executor,
        display_name="HTTP Request",
        description="Call an HTTP endpoint",
    )
    registry.register(
        NodeType.BUNDLE_WORKFLOW,
        bundle_workflow_executor,
        display_name="Run Bundle Workflow",
        description="Execute another workflow as a sub-workflow",
    )
    return registry


def create_default_registry(discover: bool = False, freeze: bool = False) -> ExecutorRegistry:
    """
    Build a registry with the built-in executors.

    Args:
        discover: Also load executor packs from entry points
        freeze: Freeze the registry before returning it
    """
    registry = register_builtin_executors(ExecutorRegistry())
    if discover:
        registry.discover_entry_points()
    if freeze:
        registry.freeze()
    return registry


__all__ = ["create_default_registry", "register_builtin_executors"]
