"""PipelineOrchestrator - connects modules into a single pipeline run."""

import logging
from datetime import datetime, timezone
from typing import Optional

from shipit.config import DEFAULT_CONCURRENCY, Settings
from shipit.deploy import (
    DeploymentController,
    DockerRegistry,
    HealthChecker,
    JsonFileDeploymentLog,
    SSHRemoteHost,
)
from shipit.deploy.models import DeploymentRecord
from shipit.executor import Action, RunContext, StageExecutor, StageResult, build_action
from shipit.notifier import Notification, Notifier, RunStatus, build_notifier
from shipit.pipeline import ActionKind, ConfigurationError, PipelineSpec, StageSpec
from shipit.scheduler import CancellationToken, DependencyScheduler
from shipit.trigger import TriggerInfo

from .models import PipelineResult

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Orchestrates one run of a declarative deploy pipeline.

    Loader output -> DependencyScheduler -> StageExecutor per stage ->
    DeploymentController for deploy actions -> Notifier, which is called
    exactly once per run whatever happened before it.

    Example:
        spec = load_pipeline("pipeline.yml")
        result = PipelineOrchestrator(spec).run(TriggerInfo(commit=sha))
        print(f"Success: {result.success}")
    """

    def __init__(
        self,
        spec: PipelineSpec,
        settings: Optional[Settings] = None,
        scheduler: Optional[DependencyScheduler] = None,
        executor: Optional[StageExecutor] = None,
        controller: Optional[DeploymentController] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._spec = spec
        self._settings = settings or Settings()
        self._scheduler = scheduler
        self._executor = executor
        self._controller = controller
        self._notifier = notifier

    @property
    def spec(self) -> PipelineSpec:
        return self._spec

    def _get_scheduler(self) -> DependencyScheduler:
        if self._scheduler is None:
            # CLI flag or SHIPIT_CONCURRENCY, then the pipeline file
            concurrency = (
                self._settings.concurrency
                or self._spec.concurrency
                or DEFAULT_CONCURRENCY
            )
            self._scheduler = DependencyScheduler(concurrency=concurrency)
        return self._scheduler

    def _get_executor(self) -> StageExecutor:
        if self._executor is None:
            self._executor = StageExecutor(
                default_timeout_seconds=self._settings.stage_timeout_seconds
            )
        return self._executor

    def _get_controller(self) -> DeploymentController:
        if self._controller is None:
            settings = self._settings
            if not settings.registry:
                raise ConfigurationError(
                    "SHIPIT_REGISTRY must be set for pipelines with deploy actions"
                )
            self._controller = DeploymentController(
                registry=DockerRegistry(settings.registry),
                health_checker=HealthChecker(
                    retries=settings.health_retries,
                    delay_seconds=settings.health_delay_seconds,
                    timeout_seconds=settings.health_timeout_seconds,
                    backoff=settings.health_backoff,
                ),
                deployment_log=JsonFileDeploymentLog(settings.deploy_log_path),
                remote_factory=lambda env: SSHRemoteHost(
                    env.host, key_path=settings.ssh_key_path
                ),
            )
        return self._controller

    def _get_notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = build_notifier(self._settings)
        return self._notifier

    def _has_deploy_actions(self) -> bool:
        return any(
            action.kind == ActionKind.DEPLOY
            for stage in self._spec.stages
            for action in stage.actions
        )

    def _build_actions(self) -> dict[str, list[Action]]:
        controller = self._get_controller() if self._has_deploy_actions() else None
        return {
            stage.name: [
                build_action(a, self._spec.environments, controller)
                for a in stage.actions
            ]
            for stage in self._spec.stages
        }

    def default_image(self, trigger: TriggerInfo) -> str:
        return f"{self._spec.name}:{trigger.commit}"

    def run(
        self,
        trigger: TriggerInfo,
        image: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """Execute the full pipeline.

        Args:
            trigger: Commit, branch and actor of the run.
            image: Local image reference built by the pipeline. Defaults to
                ``<pipeline name>:<commit>``.
            cancel_token: Observed between stages.

        Returns:
            PipelineResult with per-stage results and deployment records.

        Raises:
            ConfigurationError: If the pipeline cannot start. The failure
                is still notified before the error propagates.
        """
        result = PipelineResult(
            pipeline=self._spec.name,
            trigger=trigger,
            started_at=datetime.now(timezone.utc),
        )
        context = RunContext(trigger=trigger, image=image or self.default_image(trigger))
        logger.info(
            "Starting pipeline '%s' for %s on %s (actor: %s)",
            self._spec.name,
            trigger.short_commit,
            trigger.branch or "-",
            trigger.actor or "-",
        )

        try:
            actions = self._build_actions()
            executor = self._get_executor()

            def run_stage(stage: StageSpec) -> StageResult:
                return executor.execute(
                    stage.name,
                    actions[stage.name],
                    context,
                    timeout_seconds=stage.timeout_seconds,
                )

            schedule = self._get_scheduler().run(self._spec, run_stage, cancel_token)
            result.stages = list(schedule.results.values())
            result.cancelled = schedule.cancelled
            self._collect_deployments(result)
        except ConfigurationError as e:
            result.fatal_error = str(e)
            logger.error("Pipeline '%s' cannot start: %s", self._spec.name, e)
            raise
        finally:
            result.finished_at = datetime.now(timezone.utc)
            result.notification = self._get_notifier().notify(
                self._build_notification(result)
            )

        logger.info(
            "Pipeline '%s' %s in %.2fs",
            self._spec.name,
            "succeeded" if result.success else "failed",
            result.duration_seconds,
        )
        return result

    @staticmethod
    def _collect_deployments(result: PipelineResult) -> None:
        for stage in result.stages:
            for action in stage.actions:
                record = action.details.get("deployment")
                if isinstance(record, DeploymentRecord):
                    result.deployments.append(record)
                if action.details.get("fatal") and result.fatal_error is None:
                    result.fatal_error = action.error

    def _build_notification(self, result: PipelineResult) -> Notification:
        status = RunStatus.SUCCEEDED if result.success else RunStatus.FAILED
        trigger = result.trigger

        if result.success:
            summary = f"{self._spec.name} succeeded for {trigger.short_commit}"
        elif result.fatal_error:
            summary = f"{self._spec.name} failed for {trigger.short_commit}: {result.fatal_error}"
        elif result.cancelled:
            summary = f"{self._spec.name} cancelled for {trigger.short_commit}"
        else:
            summary = (
                f"{self._spec.name} failed for {trigger.short_commit} "
                f"(failed: {', '.join(result.failed_stages) or '-'})"
            )

        return Notification(
            status=status,
            artifact_id=trigger.commit,
            actor=trigger.actor,
            branch=trigger.branch,
            pipeline=self._spec.name,
            failed_stages=tuple(result.failed_stages),
            summary=summary,
        )
