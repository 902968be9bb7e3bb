"""Celery tasks for workflow execution."""
import asyncio
from typing import Any

from workflow_engine.errors import WorkflowConfigurationError, WorkflowNotFoundError
from workflow_engine.integrations.celery_app import celery_app
from workflow_engine.observability import get_logger, setup_logging
from workflow_engine.runtime import build_runtime
from workflow_engine.storage import ExecutionMode

# Setup logging
setup_logging()
logger = get_logger(__name__)


async def _run(
    workflow_id: str,
    payload: Any,
    execution_id: str | None,
    mode: ExecutionMode,
) -> dict[str, Any]:
    interpreter = build_runtime()
    try:
        result = await interpreter.start_run(
            workflow_id,
            payload,
            execution_id=execution_id,
            mode=mode,
        )
    finally:
        await interpreter.close()
    return result.to_dict()


@celery_app.task(name="execute_workflow", bind=True)
def execute_workflow(
    self,
    workflow_id: str,
    payload: Any = None,
    execution_id: str | None = None,
    mode: str = ExecutionMode.TRIGGER.value,
) -> dict[str, Any]:
    """
    Run a stored workflow.

    Runs are never retried: executors own their retry policy and a node
    failure must not repeat side effects of nodes that already ran.

    Args:
        workflow_id: Workflow to run
        payload: Trigger payload
        execution_id: Pre-allocated execution ID (returned to the caller at enqueue time)
        mode: What started the run

    Returns:
        Result dict
    """
    logger.info(
        "Starting workflow execution",
        extra={"workflow_id": workflow_id, "execution_id": execution_id},
    )

    try:
        result = asyncio.run(_run(workflow_id, payload, execution_id, ExecutionMode(mode)))
    except (WorkflowNotFoundError, WorkflowConfigurationError) as e:
        logger.error(
            "Workflow rejected",
            extra={
                "workflow_id": workflow_id,
                "execution_id": execution_id,
                "error": e.message,
            },
        )
        return {
            "execution_id": execution_id,
            "workflow_id": workflow_id,
            "status": "FAILED",
            "error": e.message,
        }

    logger.info(
        "Workflow execution finished",
        extra={
            "workflow_id": workflow_id,
            "execution_id": result["execution_id"],
            "status": result["status"],
        },
    )
    return result
