"""Execution record store: one record per workflow run."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import redis
from pydantic import BaseModel, Field

from workflow_engine.config import get_settings
from workflow_engine.errors import ExecutionNotFoundError
from workflow_engine.models import RunStatus
from workflow_engine.observability import get_logger

logger = get_logger(__name__)

ExecutionStatus = RunStatus


class ExecutionMode(str, Enum):
    """What started a run."""

    MANUAL = "manual"  # Editor "run" button or CLI
    TRIGGER = "trigger"  # Webhook, schedule or integration event
    BUNDLE = "bundle"  # Sub-run of a bundle node


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionRecord(BaseModel):
    """Persisted outcome of one workflow run."""

    id: str = Field(..., description="Execution ID")
    workflow_id: str = Field(..., description="Workflow that was run")
    status: ExecutionStatus = Field(default=RunStatus.PENDING)
    mode: ExecutionMode = Field(default=ExecutionMode.MANUAL)
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = Field(default=None)
    error: str | None = Field(default=None, description="Null implies success")
    error_node_id: str | None = Field(default=None, description="Node that failed")
    node_results: dict[str, Any] = Field(
        default_factory=dict,
        description="Per-node outcome keyed by node id",
    )
    output: Any = Field(default=None, description="Final variables of the run")
    parent_execution_id: str | None = Field(
        default=None,
        description="Execution of the bundle node that started this run",
    )


class ExecutionStore(Protocol):
    """Persistence for execution records."""

    def create(self, record: ExecutionRecord) -> ExecutionRecord:
        ...

    def update(self, execution_id: str, **changes: Any) -> ExecutionRecord:
        ...

    def get(self, execution_id: str) -> ExecutionRecord | None:
        ...

    def list_for_workflow(self, workflow_id: str, limit: int = 50) -> list[ExecutionRecord]:
        ...


class InMemoryExecutionStore:
    """Dict-backed execution store (tests, CLI)."""

    def __init__(self):
        self._records: dict[str, ExecutionRecord] = {}

    def create(self, record: ExecutionRecord) -> ExecutionRecord:
        self._records[record.id] = record.model_copy(deep=True)
        return record

    def update(self, execution_id: str, **changes: Any) -> ExecutionRecord:
        record = self._records.get(execution_id)
        if record is None:
            raise ExecutionNotFoundError(f"Execution not found: {execution_id}")
        updated = record.model_copy(update=changes, deep=True)
        self._records[execution_id] = updated
        return updated.model_copy(deep=True)

    def get(self, execution_id: str) -> ExecutionRecord | None:
        record = self._records.get(execution_id)
        return record.model_copy(deep=True) if record is not None else None

    def list_for_workflow(self, workflow_id: str, limit: int = 50) -> list[ExecutionRecord]:
        records = [r for r in self._records.values() if r.workflow_id == workflow_id]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in records[:limit]]


class RedisExecutionStore:
    """Redis-backed store for execution records."""

    def __init__(self, redis_client: redis.Redis | None = None):
        """
        Initialize execution store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
        """
        if redis_client is None:
            settings = get_settings()
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        else:
            self.redis_client = redis_client

        self._execution_prefix = "execution:"
        self._workflow_index_prefix = "workflow_executions:"

    def _execution_key(self, execution_id: str) -> str:
        """Get Redis key for an execution record."""
        return f"{self._execution_prefix}{execution_id}"

    def _workflow_index_key(self, workflow_id: str) -> str:
        """Get Redis key for a workflow's execution index."""
        return f"{self._workflow_index_prefix}{workflow_id}"

    def create(self, record: ExecutionRecord) -> ExecutionRecord:
        """
        Persist a new execution record.

        Args:
            record: Record to store

        Returns:
            The stored record
        """
        self.redis_client.set(
            self._execution_key(record.id),
            record.model_dump_json(),
        )
        self.redis_client.zadd(
            self._workflow_index_key(record.workflow_id),
            {record.id: record.started_at.timestamp()},
        )

        logger.info(
            "Execution created",
            extra={
                "execution_id": record.id,
                "workflow_id": record.workflow_id,
                "status": record.status.value,
            },
        )
        return record

    def update(self, execution_id: str, **changes: Any) -> ExecutionRecord:
        """
        Apply field changes to an execution record.

        Args:
            execution_id: Execution ID
            **changes: Field values to overwrite

        Returns:
            Updated record

        Raises:
            ExecutionNotFoundError: If the record does not exist
        """
        record = self.get(execution_id)
        if record is None:
            logger.error("Execution not found", extra={"execution_id": execution_id})
            raise ExecutionNotFoundError(f"Execution not found: {execution_id}")

        record = record.model_copy(update=changes)
        self.redis_client.set(
            self._execution_key(execution_id),
            record.model_dump_json(),
        )

        logger.info(
            "Execution updated",
            extra={
                "execution_id": execution_id,
                "status": record.status.value,
                "has_error": record.error is not None,
            },
        )
        return record

    def get(self, execution_id: str) -> ExecutionRecord | None:
        """
        Get execution by ID.

        Args:
            execution_id: Execution ID

        Returns:
            ExecutionRecord if found, None otherwise
        """
        data = self.redis_client.get(self._execution_key(execution_id))
        if data is None:
            return None

        return ExecutionRecord.model_validate_json(data)

    def list_for_workflow(self, workflow_id: str, limit: int = 50) -> list[ExecutionRecord]:
        """
        Most recent executions of a workflow, newest first.

        Args:
            workflow_id: Workflow ID
            limit: Maximum number of records
        """
        execution_ids = self.redis_client.zrevrange(
            self._workflow_index_key(workflow_id), 0, limit - 1
        )
        records = []
        for execution_id in execution_ids:
            record = self.get(execution_id)
            if record is not None:
                records.append(record)
        return records


def get_execution_store() -> RedisExecutionStore:
    """Get or create execution store instance."""
    return RedisExecutionStore()
