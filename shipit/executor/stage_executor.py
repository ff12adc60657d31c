"""StageExecutor - runs one stage's actions in order."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Sequence

from .actions import Action
from .exceptions import ActionFailure, StageTimeoutError
from .models import ActionResult, ErrorKind, RunContext, StageResult, StageStatus

logger = logging.getLogger(__name__)


class StageExecutor:
    """Executes the actions of a single stage.

    Actions run in declared order; the first failure aborts the stage.
    Each action receives what is left of the stage timeout, and a stage
    that ends past its deadline is Failed with error kind TIMEOUT even
    when its last action could not be interrupted.
    """

    def __init__(self, default_timeout_seconds: Optional[float] = None):
        """Initialize the StageExecutor.

        Args:
            default_timeout_seconds: Timeout for stages that declare none.
                None means unbounded.
        """
        self._default_timeout = default_timeout_seconds

    def execute(
        self,
        name: str,
        actions: Sequence[Action],
        context: RunContext,
        timeout_seconds: Optional[float] = None,
    ) -> StageResult:
        """Run a stage and return its finalized result."""
        timeout = timeout_seconds if timeout_seconds is not None else self._default_timeout
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        deadline = start + timeout if timeout is not None else None

        results: list[ActionResult] = []
        outputs: list[str] = []
        failure: Optional[ActionFailure] = None

        log_context = {"stage": name}
        logger.info(
            "Stage '%s' started (%d actions)", name, len(actions), extra=log_context
        )

        for action in actions:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    failure = StageTimeoutError(name, timeout)
                    break

            result = self._run_action(action, context, remaining)
            results.append(result)
            if result.output:
                outputs.append(result.output)

            if deadline is not None and (
                result.timed_out or time.monotonic() > deadline
            ):
                failure = StageTimeoutError(name, timeout)
                break
            if not result.success:
                failure = ActionFailure(
                    result.name, result.error or "action failed", result.exit_code
                )
                break

        finished_at = datetime.now(timezone.utc)
        output = "\n".join(outputs)

        if failure is None:
            logger.info(
                "Stage '%s' succeeded in %.2fs",
                name,
                time.monotonic() - start,
                extra=log_context,
            )
            return StageResult(
                name=name,
                status=StageStatus.SUCCEEDED,
                output=output,
                started_at=started_at,
                finished_at=finished_at,
                actions=tuple(results),
            )

        kind = (
            ErrorKind.TIMEOUT
            if isinstance(failure, StageTimeoutError)
            else ErrorKind.ACTION_FAILURE
        )
        logger.error("Stage '%s' failed: %s", name, failure, extra=log_context)
        return StageResult(
            name=name,
            status=StageStatus.FAILED,
            output=output,
            started_at=started_at,
            finished_at=finished_at,
            error=str(failure),
            error_kind=kind,
            actions=tuple(results),
        )

    @staticmethod
    def _run_action(
        action: Action, context: RunContext, timeout: Optional[float]
    ) -> ActionResult:
        """Run an action, converting an escaped exception into a failure."""
        logger.debug("Running action '%s'", action.name)
        try:
            return action.run(context, timeout=timeout)
        except Exception as e:
            logger.exception("Action '%s' raised", action.name)
            return ActionResult(name=action.name, success=False, output="", error=str(e))
