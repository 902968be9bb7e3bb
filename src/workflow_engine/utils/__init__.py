from workflow_engine.utils.retry import is_transient_exc, retry_async

__all__ = ["is_transient_exc", "retry_async"]
