"""Exceptions for the deployment controller module."""


class DeploymentError(Exception):
    """Base exception for deployment errors."""

    pass


class PublishError(DeploymentError):
    """Raised when the registry is unreachable or rejects an artifact.

    Raised before any remote mutation, so the live service is untouched.
    """

    def __init__(self, artifact_id: str, reason: str):
        self.artifact_id = artifact_id
        self.reason = reason
        super().__init__(f"Failed to publish artifact {artifact_id}: {reason}")


class RemoteUpdateError(DeploymentError):
    """Raised when the remote host is unreachable or a command fails."""

    def __init__(self, host: str, operation: str, reason: str):
        self.host = host
        self.operation = operation
        self.reason = reason
        super().__init__(f"Remote {operation} on {host} failed: {reason}")


class HealthCheckError(DeploymentError):
    """Raised when an artifact never reports healthy within its retries."""

    def __init__(self, url: str, attempts: int, reason: str | None = None):
        self.url = url
        self.attempts = attempts
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Health check {url} failed after {attempts} attempt(s){detail}"
        )


class InconsistentStateError(DeploymentError):
    """Raised when the rollback target is also unhealthy.

    Requires manual operator intervention and is never retried.
    """

    def __init__(self, environment: str, reason: str):
        self.environment = environment
        self.reason = reason
        super().__init__(
            f"Environment '{environment}' is in an inconsistent state and "
            f"needs manual intervention: {reason}"
        )


class DeploymentLogError(DeploymentError):
    """Raised when deployment records cannot be read or written."""

    pass
