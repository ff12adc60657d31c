"""DeploymentController - publish, roll out, verify and roll back artifacts."""

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional

from shipit.pipeline.models import EnvironmentSpec

from .exceptions import (
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
from .registry import Registry
from .remote import RemoteHost, SSHRemoteHost
from .state import DeploymentLog, InMemoryDeploymentLog

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[EnvironmentSpec], RemoteHost]


class DeploymentController:
    """Runs the per-attempt deploy state machine.

    Idle -> Publishing -> RemoteUpdating -> HealthChecking, then either
    Committed or RollingBack. RollingBack restores the previous artifact
    exactly once; if that is unhealthy too the environment is reported as
    inconsistent and left alone.

    Only one attempt per environment may be past Publishing at a time.
    Every attempt appends exactly one DeploymentRecord to the log, including
    attempts refused because the environment is inconsistent.

    Example:
        controller = DeploymentController(registry=DockerRegistry(repo))
        record = controller.deploy(env, Artifact(id=sha, image=f"web-app:{sha}"))
    """

    def __init__(
        self,
        registry: Registry,
        health_checker: Optional[HealthChecker] = None,
        deployment_log: Optional[DeploymentLog] = None,
        remote_factory: Optional[RemoteFactory] = None,
    ):
        """Initialize the DeploymentController.

        Args:
            registry: Registry artifacts are published to.
            health_checker: Liveness poller. Created with defaults if not provided.
            deployment_log: Append-only record store. In-memory if not provided.
            remote_factory: Builds a RemoteHost for an environment.
                Defaults to SSHRemoteHost(environment.host).
        """
        self._registry = registry
        self._health_checker = health_checker
        self._log = deployment_log or InMemoryDeploymentLog()
        self._remote_factory = remote_factory or (lambda env: SSHRemoteHost(env.host))
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def deployment_log(self) -> DeploymentLog:
        return self._log

    def _get_health_checker(self) -> HealthChecker:
        if self._health_checker is None:
            self._health_checker = HealthChecker()
        return self._health_checker

    def _lock_for(self, environment: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(environment)
            if lock is None:
                lock = self._locks[environment] = threading.Lock()
            return lock

    def _check_health(self, env: EnvironmentSpec) -> HealthCheckResult:
        return self._get_health_checker().check(
            env.health_url,
            retries=env.health_retries,
            delay_seconds=env.health_delay_seconds,
        )

    def _append(self, record: DeploymentRecord) -> DeploymentRecord:
        self._log.append(record)
        logger.info(
            "Deployment of %s to %s finished: %s (live: %s)",
            record.artifact_id,
            record.environment,
            record.outcome.value,
            record.live_artifact_id or "none",
        )
        return record

    # -------------------- Public API --------------------

    def current(self, environment: str) -> Optional[DeploymentRecord]:
        """Return the record describing what is live in ``environment``."""
        return self._log.current(environment)

    def is_inconsistent(self, environment: str) -> bool:
        """Whether the last change made to the host left it inconsistent.

        Refusals and failed publishes never reach the host, so they do not
        clear the state; only a manual recovery or a later rollout does.
        """
        for record in reversed(self._log.history(environment)):
            if record.outcome == DeploymentOutcome.INCONSISTENT:
                return True
            if record.outcome in (
                DeploymentOutcome.REFUSED,
                DeploymentOutcome.FAILED,
            ) and DeployState.REMOTE_UPDATING not in record.states:
                continue
            return False
        return False

    def _refuse(
        self,
        env: EnvironmentSpec,
        artifact: Artifact,
        states: list[DeployState],
        actor: str,
    ) -> InconsistentStateError:
        error = InconsistentStateError(
            env.name,
            "a previous rollback failed; record a manual recovery before deploying",
        )
        logger.error(
            "Refusing to deploy %s: %s",
            artifact.id,
            error,
            extra={"environment": env.name},
        )
        states.append(DeployState.FAILED)
        self._append(
            DeploymentRecord(
                environment=env.name,
                artifact_id=artifact.id,
                image=artifact.deployable_ref,
                outcome=DeploymentOutcome.REFUSED,
                live_artifact_id=None,
                states=tuple(states),
                error=str(error),
                actor=actor,
            )
        )
        return error

    def deploy(
        self, env: EnvironmentSpec, artifact: Artifact, actor: str = ""
    ) -> DeploymentRecord:
        """Deploy ``artifact`` to ``env``.

        Returns:
            The appended record. Its outcome is COMMITTED on success,
            ROLLED_BACK when the previous artifact was restored, or FAILED
            when publishing failed and nothing remote was touched.

        Raises:
            InconsistentStateError: If the environment is inconsistent, either
                before publishing or once the environment lock is held, or if
                the rollback target is unhealthy too. A refusal still appends
                a REFUSED record.
            RemoteUpdateError: If the rollout failed and there was no
                previous artifact to restore.
            HealthCheckError: If the new artifact is unhealthy and there
                was no previous artifact to restore.
        """
        states = [DeployState.IDLE]
        log_context = {"environment": env.name}
        if self.is_inconsistent(env.name):
            raise self._refuse(env, artifact, states, actor)

        states.append(DeployState.PUBLISHING)
        logger.info("Deploying %s to %s", artifact.id, env.name, extra=log_context)

        try:
            ref = self._registry.push(artifact)
        except PublishError as e:
            logger.error(
                "Publishing %s failed: %s", artifact.id, e.reason, extra=log_context
            )
            current = self._log.current(env.name)
            states.append(DeployState.FAILED)
            return self._append(
                DeploymentRecord(
                    environment=env.name,
                    artifact_id=artifact.id,
                    image=artifact.image,
                    outcome=DeploymentOutcome.FAILED,
                    live_artifact_id=current.live_artifact_id if current else None,
                    live_image=current.live_image if current else None,
                    previous_artifact_id=current.live_artifact_id if current else None,
                    previous_image=current.live_image if current else None,
                    states=tuple(states),
                    error=str(e),
                    actor=actor,
                )
            )

        published = replace(artifact, registry_ref=ref)

        with self._lock_for(env.name):
            # Another attempt may have left the host inconsistent while this
            # one was publishing
            if self.is_inconsistent(env.name):
                raise self._refuse(env, published, states, actor)
            return self._roll_out(env, published, states, actor)

    def _roll_out(
        self,
        env: EnvironmentSpec,
        artifact: Artifact,
        states: list[DeployState],
        actor: str,
    ) -> DeploymentRecord:
        current = self._log.current(env.name)
        previous_id = current.live_artifact_id if current else None
        previous_image = current.live_image if current else None
        remote = self._remote_factory(env)
        image = artifact.deployable_ref

        base = DeploymentRecord(
            environment=env.name,
            artifact_id=artifact.id,
            image=image,
            outcome=DeploymentOutcome.FAILED,
            live_artifact_id=None,
            previous_artifact_id=previous_id,
            previous_image=previous_image,
            actor=actor,
        )

        states.append(DeployState.REMOTE_UPDATING)
        try:
            remote.stop(env.container)
            remote.start(image, env.container, env.port_binding, env.env_vars)
        except RemoteUpdateError as e:
            logger.error("Rollout of %s to %s failed: %s", artifact.id, env.name, e)
            if previous_id is None or previous_image is None:
                states.append(DeployState.FAILED)
                self._append(replace(base, states=tuple(states), error=str(e)))
                raise
            return self._roll_back(env, remote, base, states, str(e), health=None)

        states.append(DeployState.HEALTH_CHECKING)
        health = self._check_health(env)
        if health.healthy:
            states.append(DeployState.COMMITTED)
            return self._append(
                replace(
                    base,
                    outcome=DeploymentOutcome.COMMITTED,
                    live_artifact_id=artifact.id,
                    live_image=image,
                    health=health,
                    states=tuple(states),
                )
            )

        error = HealthCheckError(env.health_url, health.attempts, health.last_error)
        logger.error("New artifact %s is unhealthy: %s", artifact.id, error)
        if previous_id is None or previous_image is None:
            states.append(DeployState.FAILED)
            self._append(
                replace(base, health=health, states=tuple(states), error=str(error))
            )
            raise error
        return self._roll_back(env, remote, base, states, str(error), health=health)

    def _roll_back(
        self,
        env: EnvironmentSpec,
        remote: RemoteHost,
        base: DeploymentRecord,
        states: list[DeployState],
        reason: str,
        health: Optional[HealthCheckResult],
    ) -> DeploymentRecord:
        states.append(DeployState.ROLLING_BACK)
        logger.warning(
            "Rolling back %s to %s (%s)",
            env.name,
            base.previous_artifact_id,
            reason,
        )

        rollback_health: Optional[HealthCheckResult] = None
        rollback_error: Optional[str] = None
        try:
            remote.stop(env.container)
            remote.start(
                base.previous_image or "",
                env.container,
                env.port_binding,
                env.env_vars,
            )
            rollback_health = self._check_health(env)
            if not rollback_health.healthy:
                rollback_error = str(
                    HealthCheckError(
                        env.health_url,
                        rollback_health.attempts,
                        rollback_health.last_error,
                    )
                )
        except RemoteUpdateError as e:
            rollback_error = str(e)

        if rollback_error is None:
            states.append(DeployState.COMMITTED)
            return self._append(
                replace(
                    base,
                    outcome=DeploymentOutcome.ROLLED_BACK,
                    live_artifact_id=base.previous_artifact_id,
                    live_image=base.previous_image,
                    health=health,
                    rollback_health=rollback_health,
                    states=tuple(states),
                    error=reason,
                )
            )

        states.append(DeployState.INCONSISTENT)
        error = InconsistentStateError(
            env.name,
            f"rollback to {base.previous_artifact_id} failed ({rollback_error}) "
            f"after: {reason}",
        )
        logger.critical("%s", error, extra={"environment": env.name})
        self._append(
            replace(
                base,
                outcome=DeploymentOutcome.INCONSISTENT,
                health=health,
                rollback_health=rollback_health,
                states=tuple(states),
                error=str(error),
            )
        )
        raise error

    def record_manual_recovery(
        self, environment: str, artifact_id: str, image: str, actor: str = ""
    ) -> DeploymentRecord:
        """Record that an operator restored ``environment`` by hand.

        Clears an inconsistent state so deploys are accepted again.
        """
        with self._lock_for(environment):
            latest = self._log.latest(environment)
            return self._append(
                DeploymentRecord(
                    environment=environment,
                    artifact_id=artifact_id,
                    image=image,
                    outcome=DeploymentOutcome.MANUAL_RECOVERY,
                    live_artifact_id=artifact_id,
                    live_image=image,
                    previous_artifact_id=latest.live_artifact_id if latest else None,
                    previous_image=latest.live_image if latest else None,
                    actor=actor,
                )
            )
