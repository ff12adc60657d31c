"""Deployment controller module.

Publishes build artifacts, rolls them out to remote hosts, gates them on a
health check and restores the previous artifact when verification fails.

Public API:
    - DeploymentController: Per-attempt deploy state machine
    - Registry, DockerRegistry: Artifact publishing
    - RemoteHost, SSHRemoteHost: Remote container control
    - HealthChecker: Bounded liveness polling
    - DeploymentLog, InMemoryDeploymentLog, JsonFileDeploymentLog: Records
    - Artifact, DeploymentRecord, DeploymentOutcome, DeployState,
      HealthCheckResult: Data models
    - DeploymentError and subclasses: PublishError, RemoteUpdateError,
      HealthCheckError, InconsistentStateError, DeploymentLogError
"""

from .controller import DeploymentController
from .exceptions import (
    DeploymentError,
    DeploymentLogError,
    HealthCheckError,
    InconsistentStateError,
    PublishError,
    RemoteUpdateError,
)
from .health import HealthChecker
from .models import (
    Artifact,
    DeploymentOutcome,
    DeploymentRecord,
    DeployState,
    HealthCheckResult,
)
from .registry import DockerRegistry, Registry
from .remote import RemoteHost, SSHRemoteHost
from .state import DeploymentLog, InMemoryDeploymentLog, JsonFileDeploymentLog

__all__ = [
    "DeploymentController",
    "Registry",
    "DockerRegistry",
    "RemoteHost",
    "SSHRemoteHost",
    "HealthChecker",
    "DeploymentLog",
    "InMemoryDeploymentLog",
    "JsonFileDeploymentLog",
    "Artifact",
    "DeploymentRecord",
    "DeploymentOutcome",
    "DeployState",
    "HealthCheckResult",
    "DeploymentError",
    "PublishError",
    "RemoteUpdateError",
    "HealthCheckError",
    "InconsistentStateError",
    "DeploymentLogError",
]
