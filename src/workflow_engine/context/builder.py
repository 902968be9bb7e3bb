"""
Variable Context Builder.

Given a node and the graph it lives in, list the variables a template in that
node can reference. The walk is synchronous and O(nodes + edges); callers run
it on demand (while a node's configuration is being edited), not on every
graph change.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from workflow_engine.context.examples import example_value_for_type, get_example_output
from workflow_engine.context.variable_tree import build_variable_tree
from workflow_engine.models import (
    BundleInput,
    NodeType,
    VariableItem,
    WorkflowEdge,
    WorkflowNode,
)
from workflow_engine.observability import get_logger

logger = get_logger(__name__)

TRIGGER_VARIABLE = "trigger"

ExampleProvider = Callable[[Optional[str], Dict[str, Any]], Optional[Any]]


class ContextOptions(BaseModel):
    """Extra inputs for nodes that live inside a bundle workflow."""
    model_config = ConfigDict(populate_by_name=True)

    is_bundle: bool = Field(False, validation_alias=AliasChoices("is_bundle", "isBundle"))
    bundle_inputs: List[BundleInput] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bundle_inputs", "bundleInputs"),
    )
    bundle_workflow_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("bundle_workflow_name", "bundleWorkflowName"),
    )
    # {parent workflow name: {node name: {variable: value}}}
    parent_workflow_context: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("parent_workflow_context", "parentWorkflowContext"),
    )


def _as_nodes(nodes: Iterable[Union[WorkflowNode, Dict[str, Any]]]) -> List[WorkflowNode]:
    return [n if isinstance(n, WorkflowNode) else WorkflowNode.model_validate(n) for n in nodes]


def _as_edges(edges: Iterable[Union[WorkflowEdge, Dict[str, Any]]]) -> List[WorkflowEdge]:
    return [e if isinstance(e, WorkflowEdge) else WorkflowEdge.model_validate(e) for e in edges]


def get_upstream_node_ids(target_node_id: str, edges: Sequence[WorkflowEdge]) -> List[str]:
    """
    Reverse breadth-first walk from ``target_node_id``.

    Each node is visited once, so cycles terminate. The target itself is
    only included when it sits on a cycle back to itself.
    """
    incoming: Dict[str, List[str]] = {}
    for edge in edges:
        incoming.setdefault(edge.target, []).append(edge.source)

    upstream: List[str] = []
    seen = set()
    visited = set()
    queue = deque([target_node_id])

    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)

        for source_id in incoming.get(node_id, []):
            if source_id not in seen:
                seen.add(source_id)
                upstream.append(source_id)
            queue.append(source_id)

    return upstream


def build_node_context(
    target_node_id: str,
    nodes: Iterable[Union[WorkflowNode, Dict[str, Any]]],
    edges: Iterable[Union[WorkflowEdge, Dict[str, Any]]],
    options: Optional[Union[ContextOptions, Dict[str, Any]]] = None,
    example_provider: ExampleProvider = get_example_output,
) -> List[VariableItem]:
    """
    Build the variables available to ``target_node_id``.

    Args:
        target_node_id: Node whose templates are being authored
        nodes: All nodes of the workflow
        edges: All edges of the workflow
        options: Bundle inputs / parent workflow context
        example_provider: Maps (node type, data) to an example output

    Returns:
        One VariableItem tree per visible variable, [] when nothing is visible
    """
    node_list = _as_nodes(nodes)
    edge_list = _as_edges(edges)
    if options is not None and not isinstance(options, ContextOptions):
        options = ContextOptions.model_validate(options)

    node_map = {node.id: node for node in node_list}
    context: Dict[str, Any] = {}
    descriptions: Dict[str, str] = {}

    for node_id in get_upstream_node_ids(target_node_id, edge_list):
        node = node_map.get(node_id)
        if node is None:
            logger.debug(f"Edge references unknown node: {node_id}")
            continue

        example = example_provider(node.type, node.data)
        if example is None:
            continue

        if NodeType.is_trigger(node.type) and TRIGGER_VARIABLE not in context:
            context[TRIGGER_VARIABLE] = example
            descriptions[TRIGGER_VARIABLE] = "Payload of the trigger that started the run"

        variable_name = node.variable_name
        if not variable_name:
            continue
        if variable_name in context and variable_name != TRIGGER_VARIABLE:
            # nearest upstream writer shadows farther ones
            continue
        context[variable_name] = example
        descriptions[variable_name] = f"Output of {node.label} ({node.type})"

    if options is not None and options.is_bundle:
        for bundle_input in options.bundle_inputs:
            if bundle_input.default_value is not None:
                context[bundle_input.name] = bundle_input.default_value
            else:
                context[bundle_input.name] = example_value_for_type(bundle_input.type)
            descriptions[bundle_input.name] = (
                bundle_input.description or f"Bundle input ({bundle_input.type})"
            )

        if options.parent_workflow_context:
            for workflow_name, workflow_variables in options.parent_workflow_context.items():
                context[workflow_name] = workflow_variables
                descriptions[workflow_name] = f"Variables of parent workflow {workflow_name}"
        elif options.bundle_workflow_name:
            context[options.bundle_workflow_name] = {
                "nodeName1": {"field1": "example value", "field2": 123},
                "nodeName2": {"result": "example result"},
            }
            descriptions[options.bundle_workflow_name] = "Variables of the calling workflow"

    if not context:
        return []

    items = build_variable_tree(context)
    for item in items:
        item.description = descriptions.get(item.name)
    return items


__all__ = [
    "ContextOptions",
    "build_node_context",
    "get_upstream_node_ids",
]
