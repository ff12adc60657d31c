"""Subprocess helper shared by shell actions, the registry and remote hosts."""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a finished (or killed) process."""

    exit_code: int
    output: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _decode(data: Union[str, bytes, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_command(
    command: Command,
    timeout: Optional[float] = None,
    env: Optional[dict[str, str]] = None,
    cwd: Optional[str] = None,
    input_text: Optional[str] = None,
) -> CommandResult:
    """Run a command and capture combined stdout/stderr.

    A string command runs through the shell; a sequence runs directly.
    Variables in ``env`` are layered over the current process environment.
    A process that outlives ``timeout`` is killed and reported with
    ``timed_out=True``. Output is decoded as UTF-8; undecodable bytes are
    replaced.
    """
    shell = isinstance(command, str)
    merged_env = {**os.environ, **env} if env else None
    display = command if shell else " ".join(command)
    logger.debug("Running command: %s", display)

    try:
        completed = subprocess.run(
            command,
            shell=shell,
            env=merged_env,
            cwd=cwd,
            input=input_text.encode("utf-8") if input_text is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        logger.warning("Command timed out after %ss: %s", timeout, display)
        return CommandResult(exit_code=-1, output=_decode(e.output), timed_out=True)
    except FileNotFoundError as e:
        return CommandResult(exit_code=127, output=str(e))

    return CommandResult(exit_code=completed.returncode, output=_decode(completed.stdout))
