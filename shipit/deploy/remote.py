"""Remote host adapters for stopping and starting containers."""

import logging
import shlex
from abc import ABC, abstractmethod
from typing import Callable, Optional

from shipit.shell import CommandResult, run_command

from .exceptions import RemoteUpdateError

logger = logging.getLogger(__name__)


class RemoteHost(ABC):
    """Abstract base class for deployment targets.

    Credentials are supplied externally; implementations only run
    commands over an already-secured channel.
    """

    @property
    @abstractmethod
    def host(self) -> str:
        """Return the address of the host."""
        pass

    @abstractmethod
    def stop(self, container: str) -> None:
        """Stop and remove the running instance, if any.

        Raises:
            RemoteUpdateError: If the host is unreachable or the command fails.
        """
        pass

    @abstractmethod
    def start(
        self,
        image: str,
        container: str,
        port_binding: str,
        env_vars: dict[str, str],
    ) -> None:
        """Pull an image and start it as ``container``.

        Raises:
            RemoteUpdateError: If the host is unreachable or the command fails.
        """
        pass


class SSHRemoteHost(RemoteHost):
    """Runs docker commands on a host over ssh.

    Example usage:
        remote = SSHRemoteHost("ec2-user@203.0.113.10", key_path="~/.ssh/deploy.pem")
        remote.stop("app")
        remote.start("registry/web-app:3f9c2e1", "app", "80:8000", {"APP_ENV": "prod"})
    """

    def __init__(
        self,
        host: str,
        key_path: Optional[str] = None,
        timeout_seconds: float = 300.0,
        runner: Optional[Callable[..., CommandResult]] = None,
    ):
        self._host = host
        self._key_path = key_path
        self._timeout = timeout_seconds
        self._runner = runner or run_command

    @property
    def host(self) -> str:
        return self._host

    def _ssh_command(self, remote_command: str) -> list[str]:
        command = [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
        ]
        if self._key_path:
            command += ["-i", self._key_path]
        command += [self._host, remote_command]
        return command

    def _execute(self, operation: str, remote_command: str) -> str:
        result = self._runner(self._ssh_command(remote_command), timeout=self._timeout)
        if result.timed_out:
            raise RemoteUpdateError(self._host, operation, "timed out")
        if result.exit_code == 255:
            raise RemoteUpdateError(
                self._host, operation, f"host unreachable: {result.output.strip()}"
            )
        if result.exit_code != 0:
            raise RemoteUpdateError(
                self._host,
                operation,
                f"exit code {result.exit_code}: {result.output.strip()}",
            )
        return result.output

    def stop(self, container: str) -> None:
        name = shlex.quote(container)
        logger.info("Stopping container %s on %s", container, self._host)
        # A missing container is not an error: first deploys have nothing to stop
        self._execute(
            "stop",
            f"docker stop {name} >/dev/null 2>&1; docker rm {name} >/dev/null 2>&1; true",
        )

    def start(
        self,
        image: str,
        container: str,
        port_binding: str,
        env_vars: dict[str, str],
    ) -> None:
        ref = shlex.quote(image)
        parts = [
            "docker",
            "run",
            "-d",
            "--name",
            shlex.quote(container),
            "--restart",
            "unless-stopped",
            "-p",
            shlex.quote(port_binding),
        ]
        for key, value in sorted(env_vars.items()):
            parts += ["-e", shlex.quote(f"{key}={value}")]
        parts.append(ref)

        logger.info("Starting %s as %s on %s", image, container, self._host)
        self._execute("start", f"docker pull {ref} && {' '.join(parts)}")
