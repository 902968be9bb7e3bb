"""Workflow routes: save, start runs, variable context."""
import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field

from workflow_engine.api.deps import (
    RunEnqueuer,
    get_enqueuer,
    get_registry,
    get_token_issuer,
    get_workflow_store,
)
from workflow_engine.channels import STATUS_TOPIC, SubscriptionTokenIssuer, channel_name_for
from workflow_engine.context import ContextOptions, build_node_context
from workflow_engine.errors import WorkflowNotFoundError
from workflow_engine.executors import ExecutorRegistry
from workflow_engine.models import VariableItem, WorkflowDefinition
from workflow_engine.observability import get_logger
from workflow_engine.storage import ExecutionMode, WorkflowStore
from workflow_engine.validation import ValidationReport, validate_workflow

logger = get_logger(__name__)
router = APIRouter()


class SaveWorkflowRequest(BaseModel):
    """Graph snapshot sent by the editor."""

    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("edges", "connections"),
    )
    name: str | None = Field(default=None)
    is_bundle: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("is_bundle", "isBundle"),
    )


class SaveWorkflowResponse(BaseModel):
    workflow: WorkflowDefinition
    validation: ValidationReport


class StartRunRequest(BaseModel):
    """Request model for starting a run."""

    payload: Any = Field(default=None, description="Trigger payload")
    mode: ExecutionMode = Field(default=ExecutionMode.TRIGGER)


class StartRunResponse(BaseModel):
    """Response model for a started run."""

    execution_id: str = Field(..., description="Execution ID")
    workflow_id: str = Field(..., description="Workflow ID")
    status: str = Field(..., description="Run status")
    channel: str = Field(..., description="Status channel of the run")
    topic: str = Field(default=STATUS_TOPIC)
    subscription_token: str = Field(..., description="Token for the status channel")
    token_expires_at: datetime


def _load(store: WorkflowStore, workflow_id: str) -> WorkflowDefinition:
    try:
        return store.get(workflow_id)
    except WorkflowNotFoundError:
        raise HTTPException(status_code=404, detail="Workflow not found")


@router.put("/v1/workflows/{workflow_id}", response_model=SaveWorkflowResponse)
def save_workflow(
    workflow_id: str,
    request: SaveWorkflowRequest,
    store: WorkflowStore = Depends(get_workflow_store),
    registry: ExecutorRegistry = Depends(get_registry),
) -> SaveWorkflowResponse:
    """
    Persist a graph snapshot.

    The graph is stored even when invalid (the editor saves work in
    progress); the validation report tells the editor what to fix.
    """
    attributes: dict[str, Any] = {}
    if request.name is not None:
        attributes["name"] = request.name
    if request.is_bundle is not None:
        attributes["is_bundle"] = request.is_bundle

    workflow = store.save(workflow_id, request.nodes, request.edges, **attributes)
    report = validate_workflow(workflow, registry)

    logger.info(
        "Workflow saved via API",
        extra={
            "workflow_id": workflow_id,
            "errors": len(report.errors),
            "warnings": len(report.warnings),
        },
    )
    return SaveWorkflowResponse(workflow=workflow, validation=report)


@router.post(
    "/v1/workflows/{workflow_id}/runs",
    response_model=StartRunResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_run(
    workflow_id: str,
    request: StartRunRequest,
    store: WorkflowStore = Depends(get_workflow_store),
    issuer: SubscriptionTokenIssuer = Depends(get_token_issuer),
    enqueue: RunEnqueuer = Depends(get_enqueuer),
) -> StartRunResponse:
    """
    Enqueue a run of a workflow.

    Returns the execution id together with a subscription token for the
    run's status channel, so the caller can subscribe before the first
    node starts.
    """
    _load(store, workflow_id)

    execution_id = str(uuid.uuid4())
    channel = channel_name_for(execution_id)
    token = issuer.issue(channel, [STATUS_TOPIC])

    enqueue(workflow_id, request.payload, execution_id, request.mode.value)

    logger.info(
        "Run enqueued via API",
        extra={"workflow_id": workflow_id, "execution_id": execution_id},
    )

    return StartRunResponse(
        execution_id=execution_id,
        workflow_id=workflow_id,
        status="PENDING",
        channel=channel,
        subscription_token=token.token,
        token_expires_at=token.expires_at,
    )


@router.get(
    "/v1/workflows/{workflow_id}/nodes/{node_id}/variables",
    response_model=list[VariableItem],
)
def get_node_variables(
    workflow_id: str,
    node_id: str,
    store: WorkflowStore = Depends(get_workflow_store),
) -> list[VariableItem]:
    """
    Variables a template in ``node_id`` can reference.

    Computed on demand for the node configuration panel.
    """
    workflow = _load(store, workflow_id)
    if workflow.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")

    options = None
    if workflow.is_bundle:
        options = ContextOptions(
            is_bundle=True,
            bundle_inputs=workflow.bundle_inputs,
            bundle_workflow_name=workflow.name,
        )
    return build_node_context(node_id, workflow.nodes, workflow.edges, options)
