"""Stage executor module.

Runs the actions of one stage in order, with a per-stage timeout and
typed, immutable results.

Public API:
    - StageExecutor: Runs a single stage
    - Action, ShellAction, CallableAction, DeployAction: Stage actions
    - build_action: Build an Action from a declared ActionSpec
    - ActionResult, StageResult, StageStatus, ErrorKind, RunContext
    - ExecutionError, ActionFailure, StageTimeoutError
"""

from .actions import Action, CallableAction, DeployAction, ShellAction, build_action
from .exceptions import ActionFailure, ExecutionError, StageTimeoutError
from .models import ActionResult, ErrorKind, RunContext, StageResult, StageStatus
from .stage_executor import StageExecutor

__all__ = [
    "StageExecutor",
    "Action",
    "ShellAction",
    "CallableAction",
    "DeployAction",
    "build_action",
    "ActionResult",
    "StageResult",
    "StageStatus",
    "ErrorKind",
    "RunContext",
    "ExecutionError",
    "ActionFailure",
    "StageTimeoutError",
]
