"""
Branching executors.

Both select the next edge by handle: IF_ELSE yields ``"true"``/``"false"``,
SWITCH yields ``"case-<index>"`` or ``"default"``. Operands are compared as
rendered text, numeric operators parse the text first.
"""
from __future__ import annotations

import math
from typing import Any, Callable, Dict

from workflow_engine.errors import ExecutorError
from workflow_engine.executors.contracts import ExecutorParams, with_variable
from workflow_engine.models import DEFAULT_HANDLE
from workflow_engine.templating import render

BRANCH_KEY = "branchToFollow"


def _to_number(text: str) -> float:
    stripped = text.strip()
    if not stripped:
        return 0.0
    try:
        return float(stripped)
    except ValueError:
        return math.nan


def _is_empty(text: str) -> bool:
    return not text or text.strip() == ""


OPERATORS: Dict[str, Callable[[str, str], bool]] = {
    "equals": lambda left, right: left == right,
    "notEquals": lambda left, right: left != right,
    "greaterThan": lambda left, right: _to_number(left) > _to_number(right),
    "lessThan": lambda left, right: _to_number(left) < _to_number(right),
    "greaterThanOrEqual": lambda left, right: _to_number(left) >= _to_number(right),
    "lessThanOrEqual": lambda left, right: _to_number(left) <= _to_number(right),
    "contains": lambda left, right: right in left,
    "notContains": lambda left, right: right not in left,
    "startsWith": lambda left, right: left.startswith(right),
    "endsWith": lambda left, right: left.endswith(right),
    "isEmpty": lambda left, right: _is_empty(left),
    "isNotEmpty": lambda left, right: not _is_empty(left),
}


def evaluate_condition(left: str, operator: str, right: str) -> bool:
    """
    Compare two rendered operands.

    Raises:
        ValueError: If the operator is unknown
    """
    compare = OPERATORS.get(operator)
    if compare is None:
        raise ValueError(f"Unknown operator: {operator}")
    return compare(left, right)


async def if_else_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Evaluate ``leftOperand <operator> rightOperand`` and pick the true/false edge."""
    operator = params.data.get("operator") or "equals"
    left_value = render(params.data.get("leftOperand", ""), params.context)
    right_value = render(params.data.get("rightOperand") or "", params.context)

    try:
        result = evaluate_condition(left_value, operator, right_value)
    except ValueError as e:
        raise ExecutorError(str(e), node_id=params.node_id) from e

    branch = "true" if result else "false"
    name = params.variable_name
    new_context = with_variable(
        params.context,
        name,
        {
            "result": result,
            "leftValue": left_value,
            "rightValue": right_value,
            "operator": operator,
            BRANCH_KEY: branch,
        },
    )
    if not name:
        new_context[BRANCH_KEY] = branch
    return new_context


async def switch_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Route to the first case whose value equals ``inputValue``."""
    value = render(params.data.get("inputValue", ""), params.context)

    matched_case = None
    for index, case in enumerate(params.data.get("cases") or []):
        case_value = case.get("value") if isinstance(case, dict) else case
        if render(case_value, params.context) == value:
            matched_case = index
            break

    branch = f"case-{matched_case}" if matched_case is not None else DEFAULT_HANDLE
    new_context = with_variable(
        params.context,
        params.variable_name,
        {"value": value, "matchedCase": matched_case, BRANCH_KEY: branch},
    )
    new_context[BRANCH_KEY] = branch
    return new_context


__all__ = [
    "BRANCH_KEY",
    "OPERATORS",
    "evaluate_condition",
    "if_else_executor",
    "switch_executor",
]
