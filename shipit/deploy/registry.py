"""Container registry adapters."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from shipit.shell import CommandResult, run_command

from .exceptions import PublishError
from .models import Artifact

logger = logging.getLogger(__name__)


class Registry(ABC):
    """Abstract base class for artifact registries.

    To implement a new registry:
    1. Subclass Registry
    2. Implement push() and reference_for()
    3. Raise PublishError for any failure, before touching remote hosts
    """

    @abstractmethod
    def reference_for(self, artifact_id: str) -> str:
        """Return the registry reference an artifact is published under."""
        pass

    @abstractmethod
    def push(self, artifact: Artifact) -> str:
        """Upload an artifact to the registry.

        Args:
            artifact: Locally built artifact.

        Returns:
            Registry reference the remote host can pull.

        Raises:
            PublishError: If the registry is unreachable or rejects the push.
        """
        pass


class DockerRegistry(Registry):
    """Pushes images with the docker CLI.

    Authentication (e.g., ``aws ecr get-login-password | docker login``)
    happens outside the orchestrator.

    Example usage:
        registry = DockerRegistry("123456789012.dkr.ecr.us-east-1.amazonaws.com/web-app")
        ref = registry.push(Artifact(id="3f9c2e1", image="web-app:3f9c2e1"))
    """

    def __init__(
        self,
        repository: str,
        timeout_seconds: float = 600.0,
        runner: Optional[Callable[..., CommandResult]] = None,
    ):
        """Initialize the registry.

        Args:
            repository: Registry repository without tag.
            timeout_seconds: Upper bound for each docker command.
            runner: Command runner, defaults to shipit.shell.run_command.
        """
        if not repository:
            raise ValueError("repository must not be empty")
        self._repository = repository.rstrip("/")
        self._timeout = timeout_seconds
        self._runner = runner or run_command

    @property
    def repository(self) -> str:
        return self._repository

    def reference_for(self, artifact_id: str) -> str:
        return f"{self._repository}:{artifact_id}"

    def push(self, artifact: Artifact) -> str:
        ref = self.reference_for(artifact.id)
        logger.info("Publishing %s as %s", artifact.image, ref)

        for command in (
            ["docker", "tag", artifact.image, ref],
            ["docker", "push", ref],
        ):
            result = self._runner(command, timeout=self._timeout)
            if not result.success:
                reason = "timed out" if result.timed_out else result.output.strip()
                raise PublishError(
                    artifact.id, f"'{' '.join(command)}' failed: {reason or result.exit_code}"
                )
        return ref
