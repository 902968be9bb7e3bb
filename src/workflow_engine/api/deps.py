"""FastAPI dependencies backed by ``app.state``."""
from typing import Any, Callable

from starlette.requests import HTTPConnection

from workflow_engine.channels import StatusChannel, SubscriptionTokenIssuer
from workflow_engine.config import Settings
from workflow_engine.executors import ExecutorRegistry
from workflow_engine.storage import ExecutionStore, WorkflowStore

RunEnqueuer = Callable[[str, Any, str, str], None]


def celery_enqueue(workflow_id: str, payload: Any, execution_id: str, mode: str) -> None:
    """Hand a run to the Celery worker pool."""
    # Imported here so the API process only loads Celery when it enqueues
    from workflow_engine.integrations.tasks import execute_workflow

    execute_workflow.delay(workflow_id, payload, execution_id, mode)


def get_execution_store(conn: HTTPConnection) -> ExecutionStore:
    return conn.app.state.execution_store


def get_workflow_store(conn: HTTPConnection) -> WorkflowStore:
    return conn.app.state.workflow_store


def get_channel(conn: HTTPConnection) -> StatusChannel:
    return conn.app.state.channel


def get_token_issuer(conn: HTTPConnection) -> SubscriptionTokenIssuer:
    return conn.app.state.token_issuer


def get_registry(conn: HTTPConnection) -> ExecutorRegistry:
    return conn.app.state.registry


def get_enqueuer(conn: HTTPConnection) -> RunEnqueuer:
    return conn.app.state.enqueue_run


def get_app_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.settings
