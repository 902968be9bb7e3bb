"""Health check routes."""
from fastapi import APIRouter, Depends

from workflow_engine.api.deps import get_registry
from workflow_engine.executors import ExecutorRegistry

router = APIRouter()


@router.get("/health")
def health_check(registry: ExecutorRegistry = Depends(get_registry)) -> dict:
    """
    Health check endpoint.

    Returns:
        Status dict
    """
    return {
        "status": "healthy",
        "service": "workflow-engine",
        "node_types": len(registry),
    }
