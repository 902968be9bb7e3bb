"""
Save-time graph validation.

Reports what would make a run fail before it starts (errors) and what is
allowed but suspicious (warnings). The interpreter does not depend on it;
it enforces the same rules itself while running.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import List, Optional, Set

from pydantic import BaseModel, Field

from workflow_engine.executors import ExecutorRegistry
from workflow_engine.models import DEFAULT_HANDLE, NodeType, WorkflowDefinition


class ValidationIssue(BaseModel):
    code: str
    message: str
    node_id: Optional[str] = None


class ValidationReport(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, node_id: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(code=code, message=message, node_id=node_id))

    def warning(self, code: str, message: str, node_id: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(code=code, message=message, node_id=node_id))


def _reachable_from(workflow: WorkflowDefinition, start_id: str) -> Set[str]:
    reached = {start_id}
    queue = deque([start_id])
    while queue:
        node_id = queue.popleft()
        for edge in workflow.outgoing_edges(node_id):
            if edge.target not in reached:
                reached.add(edge.target)
                queue.append(edge.target)
    return reached


def _check_branches(workflow: WorkflowDefinition, report: ValidationReport) -> None:
    for node in workflow.nodes:
        outgoing = workflow.outgoing_edges(node.id)
        handles = {edge.source_handle for edge in outgoing}

        if node.type == NodeType.IF_ELSE.value:
            missing = [h for h in ("true", "false") if h not in handles]
            if missing:
                report.error(
                    "if_missing_branch",
                    f"If/Else node {node.id} has no edge for: {', '.join(missing)}",
                    node.id,
                )
        elif node.type == NodeType.SWITCH.value:
            cases = node.data.get("cases") or []
            expected = [f"case-{i}" for i in range(len(cases))] + [DEFAULT_HANDLE]
            missing = [h for h in expected if h not in handles]
            if missing:
                report.error(
                    "switch_missing_branch",
                    f"Switch node {node.id} has no edge for: {', '.join(missing)}",
                    node.id,
                )
        else:
            plain = [edge for edge in outgoing if edge.is_plain]
            if len(plain) > 1:
                report.error(
                    "fan_out",
                    f"Node {node.id} has {len(plain)} outgoing edges; only one path can run",
                    node.id,
                )


def validate_workflow(
    workflow: WorkflowDefinition,
    registry: Optional[ExecutorRegistry] = None,
) -> ValidationReport:
    """
    Validate a workflow graph.

    Args:
        workflow: Graph to check
        registry: When given, node types without an executor are errors

    Returns:
        ValidationReport with errors and warnings
    """
    report = ValidationReport()

    if workflow.is_placeholder:
        report.error("empty_workflow", "Workflow is empty; add a trigger node")
        return report

    node_ids = {node.id for node in workflow.nodes}
    for node_id, count in Counter(node.id for node in workflow.nodes).items():
        if count > 1:
            report.error("duplicate_node_id", f"Node id {node_id} is used {count} times", node_id)

    for edge in workflow.edges:
        for end in (edge.source, edge.target):
            if end not in node_ids:
                report.error(
                    "dangling_edge",
                    f"Edge {edge.id or f'{edge.source}->{edge.target}'} references unknown node {end}",
                    edge.source if edge.source in node_ids else None,
                )

    triggers = workflow.trigger_candidates()
    if not triggers:
        report.error("no_trigger", "Workflow has no trigger node")
    elif len(triggers) > 1:
        ids = ", ".join(node.id for node in triggers)
        report.error("multiple_triggers", f"Workflow has {len(triggers)} trigger nodes: {ids}")

    if registry is not None:
        for node in workflow.nodes:
            if not registry.has(node.type):
                report.error("unknown_node_type", f"Unknown node type: {node.type}", node.id)

    _check_branches(workflow, report)

    writers = Counter(node.variable_name for node in workflow.nodes if node.variable_name)
    for name, count in writers.items():
        if count > 1:
            report.warning(
                "duplicate_variable",
                f"Variable '{name}' is written by {count} nodes; the later write shadows the earlier",
            )

    if len(triggers) == 1:
        reached = _reachable_from(workflow, triggers[0].id)
        for node in workflow.nodes:
            if node.id not in reached and node.type != NodeType.INITIAL.value:
                report.warning("unreachable_node", f"Node {node.id} is not reachable from the trigger", node.id)

    return report


__all__ = ["ValidationIssue", "ValidationReport", "validate_workflow"]
