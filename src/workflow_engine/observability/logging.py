"""Structured JSON logging with run context."""
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from workflow_engine.config import get_settings

TRACE_FIELDS = ("execution_id", "workflow_id", "node_id", "node_type")


class TraceContextFilter(logging.Filter):
    """Add run context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default run context fields if not present."""
        for field in TRACE_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record:
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        for field in TRACE_FIELDS:
            value = getattr(record, field, None)
            if value:
                log_record[field] = value


def setup_logging() -> None:
    """Configure structured JSON logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)

    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)
    handler.addFilter(TraceContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)


def get_logger(name: str) -> logging.LoggerAdapter:
    """
    Get a logger with run context support.

    Args:
        name: Logger name (typically __name__)

    Returns:
        LoggerAdapter that can accept run context in extra dict
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, extra={})


def with_trace_context(
    logger: logging.LoggerAdapter,
    execution_id: str | None = None,
    workflow_id: str | None = None,
    node_id: str | None = None,
    node_type: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with run context for logging.

    Args:
        logger: Logger adapter
        execution_id: Execution (run) ID
        workflow_id: Workflow ID
        node_id: Node ID
        node_type: Node type tag
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if execution_id:
        extra["execution_id"] = execution_id
    if workflow_id:
        extra["workflow_id"] = workflow_id
    if node_id:
        extra["node_id"] = node_id
    if node_type:
        extra["node_type"] = node_type
    return extra
