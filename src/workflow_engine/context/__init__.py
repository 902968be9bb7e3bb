"""
Design-time variable context.

- build_node_context: variables visible to a node (upstream walk)
- update_variable_references: propagate a variable rename downstream
"""

from workflow_engine.context.builder import (
    ContextOptions,
    build_node_context,
    get_upstream_node_ids,
)
from workflow_engine.context.examples import example_value_for_type, get_example_output
from workflow_engine.context.references import (
    get_downstream_node_ids,
    update_variable_references,
)
from workflow_engine.context.variable_tree import build_variable_tree, flatten_variable_tree

__all__ = [
    "ContextOptions",
    "build_node_context",
    "build_variable_tree",
    "example_value_for_type",
    "flatten_variable_tree",
    "get_downstream_node_ids",
    "get_example_output",
    "get_upstream_node_ids",
    "update_variable_references",
]
