"""Data models for run notifications."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class RunStatus(str, Enum):
    """Terminal status of a pipeline run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Notification:
    """Terminal status of a run plus the metadata reported with it.

    Attributes:
        status: Overall run status.
        artifact_id: Artifact (commit SHA) the run built.
        actor: Who triggered the run.
        branch: Branch the run was triggered from.
        pipeline: Pipeline name.
        failed_stages: Stages that failed, in declaration order.
        summary: One-line human description.
    """

    status: RunStatus
    artifact_id: str
    actor: str = ""
    branch: str = ""
    pipeline: str = ""
    failed_stages: tuple[str, ...] = ()
    summary: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Outbound webhook payload."""
        return {
            "status": self.status.value,
            "artifact_id": self.artifact_id,
            "actor": self.actor,
            "branch": self.branch,
            "pipeline": self.pipeline,
            "failed_stages": list(self.failed_stages),
            "summary": self.summary,
        }


@dataclass
class DeliveryResult:
    """Result of delivering a notification.

    Attributes:
        channel: Name of the channel that was used.
        delivered: Whether the channel accepted the notification.
        delivered_at: When delivery was attempted.
        error: Why delivery failed, if it did.
    """

    channel: str
    delivered: bool = False
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "delivered": self.delivered,
            "delivered_at": self.delivered_at.isoformat(),
            "error": self.error,
        }
