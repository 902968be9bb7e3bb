"""Storage package."""
from workflow_engine.storage.execution_store import (
    ExecutionMode,
    ExecutionRecord,
    ExecutionStatus,
    ExecutionStore,
    InMemoryExecutionStore,
    RedisExecutionStore,
    get_execution_store,
)
from workflow_engine.storage.workflow_store import (
    InMemoryWorkflowStore,
    RedisWorkflowStore,
    WorkflowStore,
    build_snapshot,
)

__all__ = [
    "ExecutionMode",
    "ExecutionRecord",
    "ExecutionStatus",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "InMemoryWorkflowStore",
    "RedisExecutionStore",
    "RedisWorkflowStore",
    "WorkflowStore",
    "build_snapshot",
    "get_execution_store",
]
