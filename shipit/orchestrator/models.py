"""Data models for pipeline run results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from shipit.deploy.models import DeploymentRecord
from shipit.executor.models import StageResult, StageStatus
from shipit.notifier.models import DeliveryResult
from shipit.trigger import TriggerInfo


@dataclass
class PipelineResult:
    """Aggregate result of a full pipeline run."""

    pipeline: str
    trigger: TriggerInfo
    started_at: datetime
    finished_at: Optional[datetime] = None
    stages: list[StageResult] = field(default_factory=list)
    deployments: list[DeploymentRecord] = field(default_factory=list)
    cancelled: bool = False
    fatal_error: Optional[str] = None
    notification: Optional[DeliveryResult] = None

    @property
    def success(self) -> bool:
        if self.fatal_error or self.cancelled or not self.stages:
            return False
        return all(stage.success for stage in self.stages)

    @property
    def failed_stages(self) -> list[str]:
        return [s.name for s in self.stages if s.status == StageStatus.FAILED]

    @property
    def skipped_stages(self) -> list[str]:
        return [s.name for s in self.stages if s.status == StageStatus.SKIPPED]

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return round((self.finished_at - self.started_at).total_seconds(), 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pipeline": self.pipeline,
            "trigger": self.trigger.to_dict(),
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "stages": [s.to_dict() for s in self.stages],
            "deployments": [d.to_dict() for d in self.deployments],
            "cancelled": self.cancelled,
            "fatal_error": self.fatal_error,
            "notification": self.notification.to_dict() if self.notification else None,
        }
