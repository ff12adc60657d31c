"""Exceptions for the stage executor module."""


class ExecutionError(Exception):
    """Base exception for stage execution errors."""

    pass


class ActionFailure(ExecutionError):
    """Raised when an action finishes unsuccessfully.

    Fails the stage it belongs to, never the process.
    """

    def __init__(self, action: str, reason: str, exit_code: int | None = None):
        self.action = action
        self.reason = reason
        self.exit_code = exit_code
        code = f" (exit code {exit_code})" if exit_code is not None else ""
        super().__init__(f"Action '{action}' failed{code}: {reason}")


class StageTimeoutError(ActionFailure):
    """Raised when a stage exceeds its time budget."""

    def __init__(self, stage: str, timeout_seconds: float):
        self.stage = stage
        self.timeout_seconds = timeout_seconds
        super().__init__(
            action=stage,
            reason=f"stage exceeded its {timeout_seconds:g}s timeout",
        )
