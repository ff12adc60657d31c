"""DependencyScheduler - runs stages in dependency order with bounded parallelism."""

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Optional

from shipit.executor.models import ErrorKind, StageResult, StageStatus
from shipit.pipeline.graph import ready_stages, topological_order
from shipit.pipeline.models import PipelineSpec, StageSpec

from .models import CancellationToken, ScheduleResult

logger = logging.getLogger(__name__)

StageRunner = Callable[[StageSpec], StageResult]


class DependencyScheduler:
    """Sequences stages along their ``needs`` graph.

    Stages whose needs have all succeeded run concurrently, up to
    ``concurrency`` at a time. The first failure halts the run: every
    transitive dependent is Skipped as UPSTREAM_FAILED, any other stage
    that has not started is Skipped as HALTED, and stages already running
    are allowed to finish.
    """

    def __init__(self, concurrency: int = 2):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def execution_order(self, spec: PipelineSpec) -> list[str]:
        """Return a dependency-respecting order of stage names.

        Raises:
            ConfigurationError: If the dependency graph has a cycle or
                names an undeclared stage.
        """
        return topological_order(spec)

    def run(
        self,
        spec: PipelineSpec,
        runner: StageRunner,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScheduleResult:
        """Run every stage of ``spec`` through ``runner``.

        The dependency graph is validated before anything starts.

        Args:
            spec: Pipeline to run.
            runner: Executes one stage and returns its final result.
            cancel_token: Checked before each stage is started.

        Returns:
            ScheduleResult with one result per declared stage.

        Raises:
            ConfigurationError: If the dependency graph is invalid.
        """
        self.execution_order(spec)

        token = cancel_token or CancellationToken()
        outcome = ScheduleResult()
        started: set[str] = set()
        succeeded: set[str] = set()
        running: dict[Future, str] = {}

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="stage"
        ) as pool:
            while True:
                if token.is_cancelled:
                    outcome.cancelled = True
                elif not outcome.halted:
                    free_slots = self._concurrency - len(running)
                    for name in ready_stages(spec, succeeded, started)[:free_slots]:
                        started.add(name)
                        outcome.started_order.append(name)
                        logger.debug("Scheduling stage '%s'", name)
                        future = pool.submit(self._run_stage, runner, spec.get_stage(name))
                        running[future] = name

                if not running:
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    result = future.result()
                    outcome.results[name] = result
                    if result.success:
                        succeeded.add(name)
                        continue

                    outcome.halted = True
                    for dependent in sorted(spec.dependents_of(name)):
                        if dependent in started:
                            continue
                        started.add(dependent)
                        outcome.results[dependent] = StageResult.skip(
                            dependent,
                            ErrorKind.UPSTREAM_FAILED,
                            f"upstream stage '{name}' failed",
                        )
                        logger.info(
                            "Skipping stage '%s': upstream '%s' failed", dependent, name
                        )

        for stage in spec.stages:
            if stage.name in outcome.results:
                continue
            if outcome.cancelled:
                outcome.results[stage.name] = StageResult.skip(
                    stage.name, ErrorKind.CANCELLED, token.reason or "run cancelled"
                )
            else:
                outcome.results[stage.name] = StageResult.skip(
                    stage.name, ErrorKind.HALTED, "run halted after a stage failure"
                )

        # Keep declaration order for reporting
        outcome.results = {s.name: outcome.results[s.name] for s in spec.stages}
        logger.info(
            "Run finished: %d succeeded, %d failed, %d skipped",
            len(outcome.by_status(StageStatus.SUCCEEDED)),
            len(outcome.by_status(StageStatus.FAILED)),
            len(outcome.by_status(StageStatus.SKIPPED)),
        )
        return outcome

    @staticmethod
    def _run_stage(runner: StageRunner, stage: StageSpec) -> StageResult:
        try:
            return runner(stage)
        except Exception as e:
            logger.exception("Stage '%s' raised", stage.name)
            now = datetime.now(timezone.utc)
            return StageResult(
                name=stage.name,
                status=StageStatus.FAILED,
                started_at=now,
                finished_at=now,
                error=str(e),
                error_kind=ErrorKind.ACTION_FAILURE,
            )
