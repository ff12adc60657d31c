"""Data models for the deployment controller."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class DeployState(str, Enum):
    """States of a single deploy attempt."""

    IDLE = "idle"
    PUBLISHING = "publishing"
    REMOTE_UPDATING = "remote_updating"
    HEALTH_CHECKING = "health_checking"
    ROLLING_BACK = "rolling_back"
    COMMITTED = "committed"
    FAILED = "failed"
    INCONSISTENT = "inconsistent"


class DeploymentOutcome(str, Enum):
    """How a deploy attempt ended, as stored in the deployment log."""

    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    INCONSISTENT = "inconsistent"
    MANUAL_RECOVERY = "manual_recovery"
    REFUSED = "refused"


@dataclass(frozen=True)
class Artifact:
    """An immutable, addressable build output.

    Attributes:
        id: Content address of the build, normally the commit SHA.
        image: Local image reference produced by the build stage.
        registry_ref: Registry reference, set once the image is published.
    """

    id: str
    image: str
    registry_ref: Optional[str] = None

    @property
    def deployable_ref(self) -> str:
        """Reference a remote host should pull."""
        return self.registry_ref or self.image


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a bounded health-check polling loop.

    Attributes:
        healthy: Whether any attempt succeeded.
        attempts: Number of requests sent.
        last_status_code: HTTP status of the last response, if one arrived.
        last_error: Reason the last failed request was rejected.
        payload_status: Value of the ``status`` field of the last payload.
    """

    healthy: bool
    attempts: int
    last_status_code: Optional[int] = None
    last_error: Optional[str] = None
    payload_status: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "attempts": self.attempts,
            "last_status_code": self.last_status_code,
            "last_error": self.last_error,
            "payload_status": self.payload_status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HealthCheckResult":
        return cls(
            healthy=data["healthy"],
            attempts=data.get("attempts", 0),
            last_status_code=data.get("last_status_code"),
            last_error=data.get("last_error"),
            payload_status=data.get("payload_status"),
        )


@dataclass(frozen=True)
class DeploymentRecord:
    """Audit entry for one deploy attempt.

    The deployment log is append-only; the artifact live in an environment
    is always read from the newest record (``live_artifact_id``).

    Attributes:
        environment: Target environment name.
        artifact_id: Artifact the attempt tried to deploy.
        image: Reference that was (or would have been) started remotely.
        outcome: Terminal outcome of the attempt.
        live_artifact_id: Artifact serving traffic after the attempt,
            None if nothing healthy is known to be running.
        live_image: Image reference of ``live_artifact_id``.
        previous_artifact_id: Rollback pointer at the start of the attempt.
        previous_image: Image reference of the rollback pointer.
        health: Health check of the new artifact, if one ran.
        rollback_health: Health check of the restored artifact, if one ran.
        states: Ordered states the attempt passed through.
        error: Failure reason, if any.
        actor: Who triggered the attempt.
        created_at: When the record was written.
    """

    environment: str
    artifact_id: str
    image: str
    outcome: DeploymentOutcome
    live_artifact_id: Optional[str]
    live_image: Optional[str] = None
    previous_artifact_id: Optional[str] = None
    previous_image: Optional[str] = None
    health: Optional[HealthCheckResult] = None
    rollback_health: Optional[HealthCheckResult] = None
    states: tuple[DeployState, ...] = ()
    error: Optional[str] = None
    actor: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def committed(self) -> bool:
        return self.outcome == DeploymentOutcome.COMMITTED

    def to_dict(self) -> dict[str, Any]:
        """Serialize record to dictionary for storage."""
        return {
            "environment": self.environment,
            "artifact_id": self.artifact_id,
            "image": self.image,
            "outcome": self.outcome.value,
            "live_artifact_id": self.live_artifact_id,
            "live_image": self.live_image,
            "previous_artifact_id": self.previous_artifact_id,
            "previous_image": self.previous_image,
            "health": self.health.to_dict() if self.health else None,
            "rollback_health": (
                self.rollback_health.to_dict() if self.rollback_health else None
            ),
            "states": [s.value for s in self.states],
            "error": self.error,
            "actor": self.actor,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeploymentRecord":
        """Deserialize record from dictionary."""
        health = data.get("health")
        rollback_health = data.get("rollback_health")
        return cls(
            environment=data["environment"],
            artifact_id=data["artifact_id"],
            image=data.get("image", ""),
            outcome=DeploymentOutcome(data["outcome"]),
            live_artifact_id=data.get("live_artifact_id"),
            live_image=data.get("live_image"),
            previous_artifact_id=data.get("previous_artifact_id"),
            previous_image=data.get("previous_image"),
            health=HealthCheckResult.from_dict(health) if health else None,
            rollback_health=(
                HealthCheckResult.from_dict(rollback_health) if rollback_health else None
            ),
            states=tuple(DeployState(s) for s in data.get("states", [])),
            error=data.get("error"),
            actor=data.get("actor", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
