"""
Graph Interpreter - single-pass async workflow execution.

Walks a workflow graph from its unique trigger node, one node at a time:

    RUNNING event -> executor -> merge context -> SUCCESS event -> next edge

Branching nodes pick their outgoing edge by handle (``branchToFollow``),
other nodes follow their single plain edge. A run ends COMPLETED when no
edge is left to follow, FAILED on the first node error (no retry, no
rollback of earlier side effects) and CANCELLED when its cancellation token
fires between two steps.

Bundle nodes recurse through ``run_subworkflow``; the interpreter itself has
no knowledge of sub-workflows beyond the depth limit.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from workflow_engine.channels import StatusChannel, StatusPublisher
from workflow_engine.config import Settings, get_settings
from workflow_engine.errors import (
    BranchResolutionError,
    BundleDepthExceededError,
    CycleDetectedError,
    ExecutorError,
    RunCancelledError,
    TriggerResolutionError,
    WorkflowConfigurationError,
    WorkflowNotFoundError,
)
from workflow_engine.executors import ExecutorParams, ExecutorRegistry
from workflow_engine.executors.conditions import BRANCH_KEY
from workflow_engine.executors.triggers import TRIGGER_KEY
from workflow_engine.executors.utility import SHOULD_STOP_KEY
from workflow_engine.models import (
    DEFAULT_HANDLE,
    NodeState,
    NodeType,
    RunStatus,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)
from workflow_engine.observability import get_logger, with_trace_context
from workflow_engine.runtime.contracts import CancellationToken, ExecutionResult
from workflow_engine.storage import (
    ExecutionMode,
    ExecutionRecord,
    ExecutionStore,
    WorkflowStore,
)
from workflow_engine.templating import to_json

logger = get_logger(__name__)

VARIABLES_KEY = "variables"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _jsonable(value: Any) -> Any:
    """Round-trip through JSON so records only hold plain data."""
    return json.loads(to_json(value))


def build_initial_context(payload: Any = None) -> Dict[str, Any]:
    """
    Context a run starts with.

    The trigger payload is reachable as ``trigger`` both at the root and
    under ``variables``; a manual run starts with an empty payload.
    """
    if payload is None:
        payload = {}
    return {TRIGGER_KEY: payload, VARIABLES_KEY: {TRIGGER_KEY: payload}}


def merge_context(previous: Dict[str, Any], returned: Any) -> Dict[str, Any]:
    """
    Merge an executor's returned context into the running one.

    The returned context replaces the previous one, except ``variables``,
    which is merged over the previous map so no entry is ever dropped.

    Raises:
        ExecutorError: If the executor returned something other than a dict
    """
    if not isinstance(returned, dict):
        raise ExecutorError(
            f"Executor returned {type(returned).__name__} instead of a context dict"
        )

    merged = dict(returned)
    previous_variables = previous.get(VARIABLES_KEY)
    returned_variables = returned.get(VARIABLES_KEY)
    merged[VARIABLES_KEY] = {
        **(previous_variables if isinstance(previous_variables, dict) else {}),
        **(returned_variables if isinstance(returned_variables, dict) else {}),
    }
    return merged


def branch_for(node: WorkflowNode, context: Dict[str, Any]) -> Optional[str]:
    """
    Branch discriminator left by ``node``.

    Read from the root ``branchToFollow`` first; branching nodes may instead
    record it inside their own variable.
    """
    branch = context.get(BRANCH_KEY)
    if branch is None and NodeType.is_branching(node.type) and node.variable_name:
        record = context.get(VARIABLES_KEY, {}).get(node.variable_name)
        if isinstance(record, dict):
            branch = record.get(BRANCH_KEY)
    if branch is None:
        return None
    if isinstance(branch, bool):
        return "true" if branch else "false"
    return str(branch)


class WorkflowInterpreter:
    """
    Async workflow interpreter.

    Dependencies are injected so runs are testable in isolation and
    several runs can share one registry and channel concurrently; each run
    owns its own context.

    Usage:
        interpreter = WorkflowInterpreter(
            registry=create_default_registry(freeze=True),
            channel=InMemoryStatusChannel(),
            execution_store=InMemoryExecutionStore(),
            workflow_store=InMemoryWorkflowStore([workflow]),
        )
        result = await interpreter.start_run("wf-1", {"name": "Ava"})
    """

    def __init__(
        self,
        registry: ExecutorRegistry,
        channel: StatusChannel,
        execution_store: ExecutionStore,
        workflow_store: Optional[WorkflowStore] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize interpreter.

        Args:
            registry: Node type -> executor table
            channel: Status channel transport
            execution_store: Where execution records are persisted
            workflow_store: Where workflows (and bundles) are loaded from
            settings: Engine settings (defaults to the global settings)
        """
        self._registry = registry
        self._channel = channel
        self._execution_store = execution_store
        self._workflow_store = workflow_store
        self._settings = settings or get_settings()

    @property
    def registry(self) -> ExecutorRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        return self._settings

    async def close(self) -> None:
        """Close the status channel; stores use shared sync clients and stay open."""
        await self._channel.close()

    async def load_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """
        Load a workflow from the workflow store.

        Raises:
            WorkflowNotFoundError: If the store does not know the id
        """
        if self._workflow_store is None:
            raise WorkflowNotFoundError(f"No workflow store configured to load {workflow_id}")
        return self._workflow_store.get(workflow_id)

    async def start_run(
        self,
        workflow_id: str,
        initial_payload: Any = None,
        *,
        execution_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        mode: ExecutionMode = ExecutionMode.TRIGGER,
    ) -> ExecutionResult:
        """
        Start a run of a stored workflow.

        Args:
            workflow_id: Workflow to run
            initial_payload: Trigger payload (None for a manual run)
            execution_id: Pre-allocated execution id
            cancel_token: Cooperative cancellation token
            mode: What started the run

        Returns:
            ExecutionResult (COMPLETED, FAILED or CANCELLED)

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            WorkflowConfigurationError: If no unique trigger can be found;
                nothing has been executed or published in that case
        """
        workflow = await self.load_workflow(workflow_id)
        return await self.run(
            workflow,
            initial_payload,
            execution_id=execution_id,
            cancel_token=cancel_token,
            mode=mode,
        )

    async def run(
        self,
        workflow: WorkflowDefinition,
        initial_payload: Any = None,
        *,
        execution_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        mode: ExecutionMode = ExecutionMode.MANUAL,
    ) -> ExecutionResult:
        """Run a workflow definition that is already in memory."""
        return await self._execute(
            workflow,
            build_initial_context(initial_payload),
            execution_id=execution_id or str(uuid.uuid4()),
            depth=0,
            parent_execution_id=None,
            cancel_token=cancel_token,
            mode=mode,
        )

    async def run_subworkflow(
        self,
        workflow: WorkflowDefinition,
        seed_context: Dict[str, Any],
        *,
        depth: int,
        parent_execution_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExecutionResult:
        """
        Run a bundle workflow on behalf of a bundle node.

        Raises:
            BundleDepthExceededError: If ``depth`` exceeds max_bundle_depth
        """
        max_depth = self._settings.max_bundle_depth
        if depth > max_depth:
            raise BundleDepthExceededError(
                f"Bundle nesting depth {depth} exceeds the maximum of {max_depth}"
            )

        context = dict(seed_context)
        context[VARIABLES_KEY] = dict(seed_context.get(VARIABLES_KEY) or {})
        return await self._execute(
            workflow,
            context,
            execution_id=str(uuid.uuid4()),
            depth=depth,
            parent_execution_id=parent_execution_id,
            cancel_token=cancel_token,
            mode=ExecutionMode.BUNDLE,
        )

    def resolve_trigger(self, workflow: WorkflowDefinition) -> WorkflowNode:
        """
        Find the unique node a run starts from.

        Raises:
            TriggerResolutionError: For a placeholder graph or when zero or
                several trigger candidates exist
        """
        if workflow.is_placeholder:
            raise TriggerResolutionError("Workflow is empty; add a trigger node before running it")

        candidates = workflow.trigger_candidates()
        if not candidates:
            raise TriggerResolutionError("Workflow has no trigger node")
        if len(candidates) > 1:
            ids = ", ".join(node.id for node in candidates)
            raise TriggerResolutionError(
                f"Workflow has {len(candidates)} trigger nodes ({ids}); exactly one is required"
            )
        return candidates[0]

    def select_next_edge(
        self,
        workflow: WorkflowDefinition,
        node: WorkflowNode,
        context: Dict[str, Any],
    ) -> Optional[WorkflowEdge]:
        """
        Pick the edge to follow after ``node``.

        With a branch discriminator: the edge with that handle, else the
        ``default`` edge. Without one: the single plain edge. None means the
        path ends here.

        Raises:
            BranchResolutionError: If the branch matches no edge and there is
                no default, or a node fans out over several plain edges
        """
        outgoing = workflow.outgoing_edges(node.id)
        branch = branch_for(node, context)

        if branch is not None:
            for edge in outgoing:
                if edge.source_handle == branch:
                    return edge
            for edge in outgoing:
                if edge.source_handle == DEFAULT_HANDLE:
                    return edge
            if outgoing:
                raise BranchResolutionError(
                    f"Node {node.id} selected branch '{branch}' but has no matching or default edge",
                    node_id=node.id,
                )
            return None

        if NodeType.is_branching(node.type) and outgoing:
            raise BranchResolutionError(
                f"Branching node {node.id} did not select a branch", node_id=node.id
            )

        plain = [edge for edge in outgoing if edge.is_plain]
        if len(plain) > 1:
            raise BranchResolutionError(
                f"Node {node.id} has {len(plain)} outgoing edges; parallel branches are not supported",
                node_id=node.id,
            )
        return plain[0] if plain else None

    async def _execute(
        self,
        workflow: WorkflowDefinition,
        context: Dict[str, Any],
        *,
        execution_id: str,
        depth: int,
        parent_execution_id: Optional[str],
        cancel_token: Optional[CancellationToken],
        mode: ExecutionMode,
    ) -> ExecutionResult:
        workflow_id = workflow.id or "inline"
        trace = with_trace_context(logger, execution_id=execution_id, workflow_id=workflow_id)
        record = ExecutionRecord(
            id=execution_id,
            workflow_id=workflow_id,
            status=RunStatus.RUNNING,
            mode=mode,
            parent_execution_id=parent_execution_id,
        )

        try:
            trigger = self.resolve_trigger(workflow)
        except WorkflowConfigurationError as e:
            now = _utcnow()
            self._execution_store.create(
                record.model_copy(
                    update={"status": RunStatus.FAILED, "completed_at": now, "error": e.message}
                )
            )
            logger.error(f"Run rejected: {e.message}", extra=trace)
            raise

        self._execution_store.create(record)
        logger.info(
            f"Run started from trigger {trigger.id} (depth {depth})",
            extra=trace,
        )

        publisher = StatusPublisher(self._channel, execution_id, workflow_id)
        result = ExecutionResult(
            execution_id=execution_id,
            workflow_id=workflow_id,
            status=RunStatus.RUNNING,
            context=context,
            depth=depth,
        )

        try:
            context = await self._walk(
                workflow, trigger, context, publisher, result,
                depth=depth, cancel_token=cancel_token,
            )
        except asyncio.CancelledError:
            result.status = RunStatus.CANCELLED
            result.error = "Run was cancelled"
            self._finish(result, result.context, trace)
            raise
        except Exception as e:
            # Channel or bookkeeping failure outside an executor
            node_id = result.executed_nodes[-1] if result.executed_nodes else trigger.id
            self._fail(result, e, node_id)
            result.node_results.setdefault(
                node_id, {"state": NodeState.ERROR.value, "error": result.error}
            )
            logger.error(f"Run aborted at node {node_id}: {result.error}", extra=trace)
            self._finish(result, result.context, trace)
            return result

        if result.status == RunStatus.RUNNING:
            result.status = RunStatus.COMPLETED
        self._finish(result, context, trace)
        return result

    async def _walk(
        self,
        workflow: WorkflowDefinition,
        trigger: WorkflowNode,
        context: Dict[str, Any],
        publisher: StatusPublisher,
        result: ExecutionResult,
        *,
        depth: int,
        cancel_token: Optional[CancellationToken],
    ) -> Dict[str, Any]:
        visited: Set[str] = set()
        current: Optional[WorkflowNode] = trigger

        while current is not None:
            node_trace = with_trace_context(
                logger,
                execution_id=result.execution_id,
                workflow_id=result.workflow_id,
                node_id=current.id,
                node_type=current.type,
            )

            if cancel_token is not None and cancel_token.is_cancelled:
                result.status = RunStatus.CANCELLED
                result.error = cancel_token.reason or "Run was cancelled"
                logger.info(f"Run cancelled before node {current.id}", extra=node_trace)
                break

            if current.id in visited:
                error = CycleDetectedError(
                    f"Node {current.id} would run twice; cycles are not supported",
                    node_id=current.id,
                )
                self._fail(result, error, current.id)
                logger.error(error.message, extra=node_trace)
                break
            visited.add(current.id)

            result.executed_nodes.append(current.id)
            await publisher.running(current.id)
            logger.info(f"Node {current.id} running", extra=node_trace)

            try:
                executor = self._registry.require(current.type, node_id=current.id)
                returned = await executor(
                    ExecutorParams(
                        data=current.data,
                        context=context,
                        node_id=current.id,
                        execution_id=result.execution_id,
                        workflow=workflow,
                        depth=depth,
                        runtime=self,
                        settings=self._settings,
                        cancel_token=cancel_token,
                    )
                )
                context = merge_context(context, returned)
                result.context = context
                next_edge = self.select_next_edge(workflow, current, context)
                context.pop(BRANCH_KEY, None)
                next_node = self._target_of(workflow, next_edge)
            except RunCancelledError as e:
                await publisher.error(current.id, e.message)
                result.node_results[current.id] = {
                    "state": NodeState.ERROR.value,
                    "error": e.message,
                }
                result.status = RunStatus.CANCELLED
                result.error = e.message
                logger.info(f"Run cancelled inside node {current.id}", extra=node_trace)
                break
            except Exception as e:
                detail = str(e) or e.__class__.__name__
                await publisher.error(current.id, detail)
                result.node_results[current.id] = {
                    "state": NodeState.ERROR.value,
                    "error": detail,
                }
                self._fail(result, e, current.id)
                logger.error(f"Node {current.id} failed: {detail}", extra=node_trace)
                break

            await publisher.success(current.id)
            result.node_results[current.id] = self._node_result(current, context)
            logger.info(f"Node {current.id} succeeded", extra=node_trace)

            if context.get(SHOULD_STOP_KEY):
                logger.info(f"Run stopped by node {current.id}", extra=node_trace)
                break
            current = next_node

        result.context = context
        return context

    def _target_of(
        self,
        workflow: WorkflowDefinition,
        edge: Optional[WorkflowEdge],
    ) -> Optional[WorkflowNode]:
        if edge is None:
            return None
        target = workflow.get_node(edge.target)
        if target is None:
            raise BranchResolutionError(
                f"Edge {edge.id or ''} points to unknown node {edge.target}",
                node_id=edge.source,
            )
        return target

    def _node_result(self, node: WorkflowNode, context: Dict[str, Any]) -> Dict[str, Any]:
        node_result: Dict[str, Any] = {"state": NodeState.SUCCESS.value}
        if node.variable_name:
            node_result["variableName"] = node.variable_name
            node_result["output"] = context[VARIABLES_KEY].get(node.variable_name)
        return node_result

    def _fail(self, result: ExecutionResult, error: Exception, node_id: str) -> None:
        result.status = RunStatus.FAILED
        result.error = getattr(error, "message", None) or str(error) or error.__class__.__name__
        result.error_node_id = node_id

    def _finish(self, result: ExecutionResult, context: Dict[str, Any], trace: Dict[str, Any]) -> None:
        self._execution_store.update(
            result.execution_id,
            status=result.status,
            completed_at=_utcnow(),
            error=result.error,
            error_node_id=result.error_node_id,
            node_results=_jsonable(result.node_results),
            output=_jsonable(context.get(VARIABLES_KEY, {})),
        )
        logger.info(
            f"Run finished with status {result.status.value}",
            extra={**trace, "executed_nodes": len(result.executed_nodes)},
        )


__all__ = [
    "WorkflowInterpreter",
    "branch_for",
    "build_initial_context",
    "merge_context",
]
