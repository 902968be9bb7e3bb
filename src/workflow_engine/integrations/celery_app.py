"""Celery application for background workflow runs."""
from celery import Celery

from workflow_engine.config import get_settings

settings = get_settings()

RUN_QUEUE = "workflow_runs"

celery_app = Celery(
    "workflow_engine",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["workflow_engine.integrations.tasks"],
)

celery_app.conf.update(
    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=settings.celery_task_soft_time_limit,
    # No autoretry: executors own their retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue=RUN_QUEUE,
    task_routes={"execute_workflow": {"queue": RUN_QUEUE}},
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # The execution record store is the source of truth for run results
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
)
