"""Keep downstream templates in sync when a node's variable is renamed."""

from __future__ import annotations

import re
from collections import deque
from typing import Any, Dict, Iterable, List, Set, Union

from workflow_engine.models import WorkflowEdge, WorkflowNode


def get_downstream_node_ids(source_node_id: str, edges: Iterable[WorkflowEdge]) -> Set[str]:
    """All node ids reachable from ``source_node_id`` (excluding itself unless cyclic)."""
    outgoing: Dict[str, List[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)

    downstream: Set[str] = set()
    visited: Set[str] = set()
    queue = deque([source_node_id])

    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        for target_id in outgoing.get(node_id, []):
            downstream.add(target_id)
            queue.append(target_id)

    return downstream


def replace_variable_in_template(template: str, old_name: str, new_name: str) -> str:
    """
    Rewrite ``{{old.path}}`` / ``{{ old }}`` / ``{{json old.path}}`` to use ``new_name``.

    Only whole variable names are matched: renaming ``contact`` leaves
    ``{{contactList}}`` untouched.
    """
    pattern = re.compile(
        r"\{\{(\s*(?:json\s+)?)" + re.escape(old_name) + r"(?=\.|\s|\}\})"
    )
    return pattern.sub(lambda m: "{{" + m.group(1) + new_name, template)


def replace_variable_in_data(data: Any, old_name: str, new_name: str) -> Any:
    """Recursively rewrite references inside nested node data."""
    if isinstance(data, str):
        return replace_variable_in_template(data, old_name, new_name)
    if isinstance(data, list):
        return [replace_variable_in_data(item, old_name, new_name) for item in data]
    if isinstance(data, dict):
        return {key: replace_variable_in_data(value, old_name, new_name) for key, value in data.items()}
    return data


def update_variable_references(
    source_node_id: str,
    old_variable_name: str,
    new_variable_name: str,
    nodes: Iterable[Union[WorkflowNode, Dict[str, Any]]],
    edges: Iterable[Union[WorkflowEdge, Dict[str, Any]]],
) -> List[WorkflowNode]:
    """
    Propagate a variable rename to every downstream node.

    Args:
        source_node_id: Node whose variableName changed
        old_variable_name: Previous variable name
        new_variable_name: New variable name
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        New node list; nodes outside the downstream set are returned as-is
    """
    node_list = [n if isinstance(n, WorkflowNode) else WorkflowNode.model_validate(n) for n in nodes]
    if old_variable_name == new_variable_name:
        return node_list

    edge_list = [e if isinstance(e, WorkflowEdge) else WorkflowEdge.model_validate(e) for e in edges]
    downstream = get_downstream_node_ids(source_node_id, edge_list)

    updated = []
    for node in node_list:
        if node.id not in downstream:
            updated.append(node)
            continue
        data = replace_variable_in_data(node.data, old_variable_name, new_variable_name)
        updated.append(node.model_copy(update={"data": data}))
    return updated
