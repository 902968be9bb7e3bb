"""Wire an interpreter from settings."""
from __future__ import annotations

from typing import Dict, Optional

import redis

from workflow_engine.channels import InMemoryStatusChannel, RedisStatusChannel
from workflow_engine.config import Settings, get_settings
from workflow_engine.executors import ExecutorRegistry, create_default_registry
from workflow_engine.runtime.interpreter import WorkflowInterpreter
from workflow_engine.storage import (
    InMemoryExecutionStore,
    InMemoryWorkflowStore,
    RedisExecutionStore,
    RedisWorkflowStore,
)

_registry: Optional[ExecutorRegistry] = None
_redis_clients: Dict[str, redis.Redis] = {}


def get_registry() -> ExecutorRegistry:
    """Get or create the process-wide executor registry (frozen)."""
    global _registry
    if _registry is None:
        _registry = create_default_registry(discover=True, freeze=True)
    return _registry


def get_redis_client(redis_url: str) -> redis.Redis:
    """Get or create the process-wide sync client (and its pool) for a URL."""
    client = _redis_clients.get(redis_url)
    if client is None:
        client = redis.from_url(redis_url, decode_responses=True)
        _redis_clients[redis_url] = client
    return client


def build_runtime(
    settings: Optional[Settings] = None,
    in_memory: bool = False,
    registry: Optional[ExecutorRegistry] = None,
) -> WorkflowInterpreter:
    """
    Build an interpreter with its collaborators.

    Args:
        settings: Engine settings (defaults to the global settings)
        in_memory: Use in-process stores and channel instead of Redis
        registry: Executor registry (defaults to the process-wide one)

    The Redis status channel owns an async client bound to the running event
    loop; call ``await interpreter.close()`` when the runtime is done.
    """
    settings = settings or get_settings()
    registry = registry or get_registry()

    if in_memory:
        return WorkflowInterpreter(
            registry=registry,
            channel=InMemoryStatusChannel(),
            execution_store=InMemoryExecutionStore(),
            workflow_store=InMemoryWorkflowStore(),
            settings=settings,
        )

    client = get_redis_client(settings.redis_url)
    return WorkflowInterpreter(
        registry=registry,
        channel=RedisStatusChannel(settings.redis_url),
        execution_store=RedisExecutionStore(client),
        workflow_store=RedisWorkflowStore(client),
        settings=settings,
    )


__all__ = ["build_runtime", "get_redis_client", "get_registry"]
