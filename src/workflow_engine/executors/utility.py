"""Side-effect free utility executors."""
from __future__ import annotations

from typing import Any, Dict

from workflow_engine.errors import ExecutorError
from workflow_engine.executors.contracts import ExecutorParams, with_variable
from workflow_engine.templating import render, resolve

SHOULD_STOP_KEY = "shouldStop"


async def set_variable_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Resolve ``value`` and store it under ``variableName``."""
    name = params.variable_name
    if not name:
        raise ExecutorError("Set Variable node requires a variableName", node_id=params.node_id)

    value = resolve(params.data.get("value", ""), params.context)
    return with_variable(params.context, name, value)


async def stop_workflow_executor(params: ExecutorParams) -> Dict[str, Any]:
    """End the run successfully after this node."""
    reason = render(params.data.get("reason") or "", params.context)
    new_context = with_variable(
        params.context,
        params.variable_name,
        {"stopped": True, "reason": reason},
    )
    new_context[SHOULD_STOP_KEY] = True
    return new_context


async def initial_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Placeholder node; passes the context through."""
    return dict(params.context)


__all__ = [
    "SHOULD_STOP_KEY",
    "initial_executor",
    "set_variable_executor",
    "stop_workflow_executor",
]
