"""Stage actions: opaque units of work with a boolean success contract."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from shipit.deploy import Artifact, DeploymentController, DeploymentError
from shipit.deploy.models import DeploymentOutcome
from shipit.pipeline.models import ActionKind, ActionSpec, EnvironmentSpec
from shipit.shell import run_command

from .models import ActionResult, RunContext

logger = logging.getLogger(__name__)


class Action(ABC):
    """Abstract base class for stage actions.

    The executor knows nothing about what an action does. It only reads
    the returned ActionResult; an exception escaping ``run`` is treated
    as a failed result.
    """

    name: str = ""

    @abstractmethod
    def run(self, context: RunContext, timeout: Optional[float] = None) -> ActionResult:
        """Perform the action.

        Args:
            context: Values shared by the whole run.
            timeout: Remaining stage budget in seconds, if bounded.

        Returns:
            ActionResult with the success flag and captured output.
        """
        pass


class ShellAction(Action):
    """Runs a shell command with the run's environment exported."""

    def __init__(self, command: str, env: Optional[dict[str, str]] = None, name: str = ""):
        self.command = command
        self.env = dict(env or {})
        self.name = name or command

    def run(self, context: RunContext, timeout: Optional[float] = None) -> ActionResult:
        result = run_command(
            self.command,
            timeout=timeout,
            env={**context.as_env(), **self.env},
        )
        error = None
        if result.timed_out:
            error = "command timed out"
        elif result.exit_code != 0:
            error = f"command exited with status {result.exit_code}"
        return ActionResult(
            name=self.name,
            success=result.success,
            output=result.output,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            error=error,
        )


class CallableAction(Action):
    """Wraps a Python callable returning True on success."""

    def __init__(self, name: str, fn: Callable[[RunContext], bool]):
        self.name = name
        self._fn = fn

    def run(self, context: RunContext, timeout: Optional[float] = None) -> ActionResult:
        ok = bool(self._fn(context))
        return ActionResult(
            name=self.name,
            success=ok,
            error=None if ok else "callable reported failure",
        )


class DeployAction(Action):
    """Hands the run's artifact to the deployment controller."""

    def __init__(
        self,
        environment: EnvironmentSpec,
        controller: DeploymentController,
        name: str = "",
    ):
        self.environment = environment
        self._controller = controller
        self.name = name or f"deploy to {environment.name}"

    def run(self, context: RunContext, timeout: Optional[float] = None) -> ActionResult:
        artifact = Artifact(id=context.trigger.commit, image=context.image)
        try:
            record = self._controller.deploy(
                self.environment, artifact, actor=context.trigger.actor
            )
        except DeploymentError as e:
            logger.error("Deployment to %s failed: %s", self.environment.name, e)
            latest = self._controller.deployment_log.latest(self.environment.name)
            details = {"fatal": True, "error_type": type(e).__name__}
            if latest is not None and latest.artifact_id == artifact.id:
                details["deployment"] = latest
            return ActionResult(
                name=self.name,
                success=False,
                output=str(e),
                error=str(e),
                details=details,
            )

        if record.outcome == DeploymentOutcome.COMMITTED:
            output = f"{artifact.id} is live in {self.environment.name}"
            error = None
        elif record.outcome == DeploymentOutcome.ROLLED_BACK:
            output = (
                f"{artifact.id} failed verification; "
                f"{record.live_artifact_id} restored in {self.environment.name}"
            )
            error = record.error
        else:
            output = f"{artifact.id} was not deployed to {self.environment.name}"
            error = record.error

        return ActionResult(
            name=self.name,
            success=record.committed,
            output=output,
            error=error,
            details={"deployment": record, "fatal": False},
        )


def build_action(
    spec: ActionSpec,
    environments: dict[str, EnvironmentSpec],
    controller: Optional[DeploymentController] = None,
) -> Action:
    """Turn a declared ActionSpec into a runnable Action.

    Raises:
        ValueError: If a deploy action has no controller to hand off to.
    """
    if spec.kind == ActionKind.DEPLOY:
        if controller is None:
            raise ValueError(
                f"action '{spec.display_name}' needs a deployment controller"
            )
        return DeployAction(environments[spec.environment], controller, name=spec.name)
    return ShellAction(spec.command, env=spec.env, name=spec.name)
