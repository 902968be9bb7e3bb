"""FastAPI application."""
from typing import Any

from fastapi import FastAPI

from workflow_engine import __version__
from workflow_engine.api.deps import RunEnqueuer, celery_enqueue
from workflow_engine.api.routes import executions, health, workflows
from workflow_engine.channels import RedisStatusChannel, StatusChannel, SubscriptionTokenIssuer
from workflow_engine.config import Settings, get_settings
from workflow_engine.executors import ExecutorRegistry
from workflow_engine.observability import setup_logging
from workflow_engine.runtime.factory import get_registry
from workflow_engine.storage import (
    ExecutionStore,
    RedisExecutionStore,
    RedisWorkflowStore,
    WorkflowStore,
)


def create_app(
    settings: Settings | None = None,
    *,
    execution_store: ExecutionStore | None = None,
    workflow_store: WorkflowStore | None = None,
    channel: StatusChannel | None = None,
    registry: ExecutorRegistry | None = None,
    token_issuer: SubscriptionTokenIssuer | None = None,
    enqueue_run: RunEnqueuer | None = None,
) -> FastAPI:
    """
    Build the API application.

    Collaborators default to the Redis/Celery backed ones; tests pass
    in-memory replacements.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Workflow Engine",
        description="Node-based workflow execution with realtime status",
        version=__version__,
    )

    app.state.settings = settings
    app.state.execution_store = execution_store or RedisExecutionStore()
    app.state.workflow_store = workflow_store or RedisWorkflowStore()
    app.state.channel = channel or RedisStatusChannel(settings.redis_url)
    app.state.registry = registry or get_registry()
    app.state.token_issuer = token_issuer or SubscriptionTokenIssuer.from_settings(settings)
    app.state.enqueue_run = enqueue_run or celery_enqueue

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(workflows.router, tags=["workflows"])
    app.include_router(executions.router, tags=["executions"])

    @app.get("/")
    def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "service": "workflow-engine",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Setup logging
setup_logging()

app = create_app()
