"""Exception hierarchy for the workflow engine."""


class WorkflowEngineError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class WorkflowConfigurationError(WorkflowEngineError):
    """The graph itself is invalid; never retried, needs a fix in the editor."""

    pass


class TriggerResolutionError(WorkflowConfigurationError):
    """Raised when a workflow has zero or several trigger candidates."""

    pass


class UnknownNodeTypeError(WorkflowConfigurationError):
    """Raised when no executor is registered for a node type."""

    pass


class BranchResolutionError(WorkflowConfigurationError):
    """Raised when the next edge of a node cannot be determined."""

    pass


class CycleDetectedError(WorkflowConfigurationError):
    """Raised when a run would visit the same node twice."""

    pass


class BundleDepthExceededError(WorkflowConfigurationError):
    """Raised when bundle nesting goes past the configured maximum."""

    pass


class ExecutorError(WorkflowEngineError):
    """Raised by an executor that could not complete its operation."""

    pass


class HttpRequestError(ExecutorError):
    """Raised when an outbound HTTP request fails."""

    def __init__(self, message: str, status: int | None = None, node_id: str | None = None):
        super().__init__(message, node_id=node_id)
        self.status = status


class BundleExecutionError(ExecutorError):
    """Raised when a bundle sub-workflow run fails."""

    def __init__(
        self,
        message: str,
        sub_execution_id: str | None = None,
        node_id: str | None = None,
    ):
        super().__init__(message, node_id=node_id)
        self.sub_execution_id = sub_execution_id


class RunCancelledError(WorkflowEngineError):
    """Raised by an executor whose nested run was cancelled; the run ends CANCELLED."""

    pass


class WorkflowNotFoundError(WorkflowEngineError):
    """Raised when a workflow id is unknown to the workflow store."""

    pass


class ExecutionNotFoundError(WorkflowEngineError):
    """Raised when an execution id is unknown to the execution store."""

    pass


class SubscriptionTokenError(WorkflowEngineError):
    """Raised when a status subscription token is invalid, expired or out of scope."""

    pass


class RegistryFrozenError(WorkflowEngineError):
    """Raised when registering an executor after the registry was frozen."""

    pass
