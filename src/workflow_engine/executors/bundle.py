"""
Bundle Workflow executor.

Runs another workflow (flagged ``isBundle``) as a single node. The sub-run
goes through the same interpreter one level deeper; its result is folded
back into the parent context under this node's ``variableName``.
"""
from __future__ import annotations

from typing import Any, Dict

from workflow_engine.errors import (
    BundleExecutionError,
    ExecutorError,
    RunCancelledError,
    WorkflowNotFoundError,
)
from workflow_engine.executors.contracts import ExecutorParams, with_variable
from workflow_engine.models import RunStatus, WorkflowDefinition
from workflow_engine.observability import get_logger, with_trace_context
from workflow_engine.templating import MISSING, get_nested_value, render, resolve

logger = get_logger(__name__)

PARENT_CONTEXT_KEY = "parentContext"


def build_bundle_inputs(params: ExecutorParams, bundle: WorkflowDefinition) -> Dict[str, Any]:
    """Resolve ``inputMappings`` against the parent context, then fill declared defaults."""
    inputs: Dict[str, Any] = {}
    for mapping in params.data.get("inputMappings") or []:
        name = mapping.get("bundleInputName") if isinstance(mapping, dict) else None
        if not name:
            continue
        inputs[name] = resolve(mapping.get("value", ""), params.context)

    for definition in bundle.bundle_inputs:
        if definition.name not in inputs and definition.default_value is not None:
            inputs[definition.name] = definition.default_value
    return inputs


def build_seed_context(params: ExecutorParams, inputs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Initial context of the sub-run.

    Inputs are reachable both at the root and under ``variables``; the
    caller's variables are namespaced by the caller's workflow name under
    ``parentContext``.
    """
    parent_name = params.workflow.name if params.workflow is not None else "parent"
    parent_context = {parent_name: dict(params.variables)}
    return {
        **inputs,
        PARENT_CONTEXT_KEY: parent_context,
        "variables": {**inputs, PARENT_CONTEXT_KEY: parent_context},
    }


def fold_outputs(bundle: WorkflowDefinition, variables: Dict[str, Any]) -> Dict[str, Any]:
    """Declared outputs by path, or every variable of the sub-run when none are declared."""
    if bundle.bundle_outputs:
        outputs = {}
        for output in bundle.bundle_outputs:
            value = get_nested_value(variables, output.variable_path)
            outputs[output.name] = None if value is MISSING else value
        return outputs
    return {key: value for key, value in variables.items() if key != PARENT_CONTEXT_KEY}


async def bundle_workflow_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Run ``bundleWorkflowId`` as a sub-workflow and store its outputs."""
    runtime = params.runtime
    if runtime is None:
        raise ExecutorError("Bundle Workflow node needs an interpreter to run", node_id=params.node_id)

    bundle_id = render(params.data.get("bundleWorkflowId", ""), params.context).strip()
    if not bundle_id:
        raise ExecutorError("Bundle Workflow node requires a bundleWorkflowId", node_id=params.node_id)

    try:
        bundle = await runtime.load_workflow(bundle_id)
    except WorkflowNotFoundError as e:
        raise BundleExecutionError(
            f"Bundle workflow {bundle_id} not found", node_id=params.node_id
        ) from e

    if not bundle.is_bundle:
        raise BundleExecutionError(
            f"Workflow {bundle_id} is not a bundle workflow", node_id=params.node_id
        )

    inputs = build_bundle_inputs(params, bundle)
    seed = build_seed_context(params, inputs)

    logger.info(
        f"Running bundle workflow '{bundle.name}' at depth {params.depth + 1}",
        extra=with_trace_context(
            logger, execution_id=params.execution_id, node_id=params.node_id
        ),
    )

    result = await runtime.run_subworkflow(
        bundle,
        seed,
        depth=params.depth + 1,
        parent_execution_id=params.execution_id,
        cancel_token=params.cancel_token,
    )
    if result.status == RunStatus.CANCELLED:
        raise RunCancelledError(
            f"Bundle workflow '{bundle.name}' was cancelled: {result.error}",
            node_id=params.node_id,
        )
    if not result.is_success:
        raise BundleExecutionError(
            f"Bundle workflow '{bundle.name}' failed: {result.error}",
            sub_execution_id=result.execution_id,
            node_id=params.node_id,
        )

    return with_variable(
        params.context,
        params.variable_name,
        fold_outputs(bundle, result.variables),
    )


__all__ = [
    "PARENT_CONTEXT_KEY",
    "build_bundle_inputs",
    "build_seed_context",
    "bundle_workflow_executor",
    "fold_outputs",
]
