"""Workflow execution engine: graph interpreter, templating and status channel."""

__version__ = "0.1.0"
