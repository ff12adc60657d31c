"""Data models for stage execution results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from shipit.trigger import TriggerInfo


class StageStatus(str, Enum):
    """Lifecycle status of a stage within one run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_final(self) -> bool:
        return self in (StageStatus.SUCCEEDED, StageStatus.FAILED, StageStatus.SKIPPED)


class ErrorKind(str, Enum):
    """Why a stage did not succeed."""

    ACTION_FAILURE = "action_failure"
    TIMEOUT = "timeout"
    UPSTREAM_FAILED = "upstream_failed"
    HALTED = "halted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ActionResult:
    """Typed outcome of one action.

    Attributes:
        name: Display name of the action.
        success: The action's boolean success contract.
        output: Combined stdout/stderr or a description of what happened.
        exit_code: Process exit code, when the action spawned a process.
        timed_out: True if the action was stopped by its time budget.
        error: Failure reason, if any.
        details: Action-specific data (e.g., deployment outcome).
    """

    name: str
    success: bool
    output: str = ""
    exit_code: Optional[int] = None
    timed_out: bool = False
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StageResult:
    """Final result of a stage. Never mutated once created."""

    name: str
    status: StageStatus
    output: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    actions: tuple[ActionResult, ...] = ()

    @property
    def success(self) -> bool:
        return self.status == StageStatus.SUCCEEDED

    @property
    def skipped(self) -> bool:
        return self.status == StageStatus.SKIPPED

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return round((self.finished_at - self.started_at).total_seconds(), 2)

    @classmethod
    def skip(cls, name: str, kind: ErrorKind, reason: str) -> "StageResult":
        """Record a stage that never ran."""
        now = datetime.now(timezone.utc)
        return cls(
            name=name,
            status=StageStatus.SKIPPED,
            started_at=now,
            finished_at=now,
            error=reason,
            error_kind=kind,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "actions": [
                {"name": a.name, "success": a.success, "exit_code": a.exit_code}
                for a in self.actions
            ],
        }


@dataclass(frozen=True)
class RunContext:
    """Values shared by every action in a run.

    Attributes:
        trigger: Commit, branch and actor of the run.
        image: Local image reference built for this commit.
        env: Extra environment variables for shell actions.
    """

    trigger: TriggerInfo
    image: str
    env: dict[str, str] = field(default_factory=dict)

    def as_env(self) -> dict[str, str]:
        """Environment variables exported to shell actions."""
        variables = {
            "SHIPIT_COMMIT": self.trigger.commit,
            "SHIPIT_BRANCH": self.trigger.branch,
            "SHIPIT_ACTOR": self.trigger.actor,
            "SHIPIT_IMAGE": self.image,
        }
        variables.update(self.env)
        return variables
