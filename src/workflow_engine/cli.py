"""
CLI tool for working with workflow files.

Provides terminal access to:
- Running a workflow in-process
- Validating a workflow graph
- Listing the variables visible to a node
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from workflow_engine.channels import InMemoryStatusChannel
from workflow_engine.context import build_node_context, flatten_variable_tree
from workflow_engine.errors import WorkflowEngineError
from workflow_engine.executors import create_default_registry
from workflow_engine.models import WorkflowDefinition, parse_workflow
from workflow_engine.observability import setup_logging
from workflow_engine.runtime import WorkflowInterpreter
from workflow_engine.storage import InMemoryExecutionStore, InMemoryWorkflowStore
from workflow_engine.validation import validate_workflow


def load_workflow_file(path: str) -> WorkflowDefinition:
    """Load a workflow JSON file; the file name is the id when none is set."""
    file_path = Path(path)
    data = json.loads(file_path.read_text())
    workflow = parse_workflow(data)
    if not workflow.id:
        workflow = workflow.model_copy(update={"id": file_path.stem})
    return workflow


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, default=str))


def cmd_run(args: argparse.Namespace) -> int:
    """Run a workflow in-process and print its status events and result."""
    try:
        workflow = load_workflow_file(args.workflow)
        bundles = [load_workflow_file(path) for path in args.bundle or []]
        payload = json.loads(args.payload) if args.payload else None
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    channel = InMemoryStatusChannel()
    interpreter = WorkflowInterpreter(
        registry=create_default_registry(freeze=True),
        channel=channel,
        execution_store=InMemoryExecutionStore(),
        workflow_store=InMemoryWorkflowStore([workflow, *bundles]),
    )

    try:
        result = asyncio.run(interpreter.run(workflow, payload))
    except WorkflowEngineError as e:
        print(f"Error: {e.message}")
        return 2

    for event in channel.history():
        line = f"[{event.state.value}] {event.node_id}"
        if event.detail:
            line += f": {event.detail}"
        print(line)

    _print_json(result.to_dict())
    return 0 if result.is_success else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a workflow graph."""
    try:
        workflow = load_workflow_file(args.workflow)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    report = validate_workflow(workflow, create_default_registry())
    for issue in report.errors:
        print(f"ERROR   {issue.code}: {issue.message}")
    for issue in report.warnings:
        print(f"WARNING {issue.code}: {issue.message}")

    if report.is_valid:
        print(f"OK ({len(report.warnings)} warnings)")
        return 0
    return 1


def cmd_variables(args: argparse.Namespace) -> int:
    """List the variables a node can reference."""
    try:
        workflow = load_workflow_file(args.workflow)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    if workflow.get_node(args.node_id) is None:
        print(f"Error: Node not found: {args.node_id}")
        return 1

    items = build_node_context(args.node_id, workflow.nodes, workflow.edges)
    if args.json:
        _print_json([item.model_dump(by_alias=True) for item in items])
    else:
        for path in flatten_variable_tree(items):
            print(f"{{{{{path}}}}}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="workflow-engine",
        description="Workflow Engine CLI - run, validate and inspect workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Emit JSON logs")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # run command
    run_parser = subparsers.add_parser("run", help="Run a workflow in-process")
    run_parser.add_argument("workflow", help="Workflow JSON file")
    run_parser.add_argument("--payload", help="Trigger payload as JSON")
    run_parser.add_argument(
        "--bundle", action="append", help="Bundle workflow JSON file (repeatable)"
    )

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a workflow graph")
    validate_parser.add_argument("workflow", help="Workflow JSON file")

    # variables command
    variables_parser = subparsers.add_parser("variables", help="List variables visible to a node")
    variables_parser.add_argument("workflow", help="Workflow JSON file")
    variables_parser.add_argument("node_id", help="Node ID")
    variables_parser.add_argument("--json", action="store_true", help="Print the full variable tree")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.verbose:
        setup_logging()

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "variables":
        return cmd_variables(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
