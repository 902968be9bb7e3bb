"""Trigger executors: expose the run payload under the trigger's variable."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from workflow_engine.executors.contracts import ExecutorParams, with_variable

TRIGGER_KEY = "trigger"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def trigger_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Store the trigger payload (plus ``triggeredAt``) under ``variableName``."""
    payload = params.context.get(TRIGGER_KEY)
    if payload is None:
        payload = {}

    if isinstance(payload, dict):
        value: Any = {"triggeredAt": _timestamp(), **payload}
    else:
        value = payload

    return with_variable(params.context, params.variable_name, value)


__all__ = ["TRIGGER_KEY", "trigger_executor"]
