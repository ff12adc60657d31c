"""Unit tests for the DeploymentController state machine."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from shipit.deploy import (
    Artifact,
    DeploymentController,
    DeploymentOutcome,
    DeploymentRecord,
    DeployState,
    HealthCheckError,
    HealthCheckResult,
    InconsistentStateError,
    InMemoryDeploymentLog,
    PublishError,
    Registry,
    RemoteHost,
    RemoteUpdateError,
)
from shipit.pipeline import EnvironmentSpec

HEALTHY = HealthCheckResult(healthy=True, attempts=1, last_status_code=200)
UNHEALTHY = HealthCheckResult(
    healthy=False, attempts=3, last_status_code=503, last_error="unexpected status 503"
)


def _env(name: str = "production") -> EnvironmentSpec:
    return EnvironmentSpec(
        name=name,
        host="ec2-user@203.0.113.10",
        health_url="http://203.0.113.10/health",
        container="web-app",
        port_binding="80:8000",
        env_vars={"APP_ENV": "production"},
    )


def _artifact(sha: str = "new") -> Artifact:
    return Artifact(id=sha, image=f"web-app:{sha}")


def _seed(log: InMemoryDeploymentLog, sha: str = "old", env: str = "production") -> None:
    log.append(
        DeploymentRecord(
            environment=env,
            artifact_id=sha,
            image=f"registry/web-app:{sha}",
            outcome=DeploymentOutcome.COMMITTED,
            live_artifact_id=sha,
            live_image=f"registry/web-app:{sha}",
        )
    )


class _Harness:
    def __init__(self, health_results=None, seed=True):
        self.registry = MagicMock(spec=Registry)
        self.registry.push.side_effect = lambda a: f"registry/web-app:{a.id}"
        self.remote = MagicMock(spec=RemoteHost)
        self.health = MagicMock()
        self.health.check.side_effect = list(health_results or [HEALTHY])
        self.log = InMemoryDeploymentLog()
        if seed:
            _seed(self.log)
        self.controller = DeploymentController(
            registry=self.registry,
            health_checker=self.health,
            deployment_log=self.log,
            remote_factory=lambda env: self.remote,
        )


class TestSuccessfulDeploy:
    def test_commits_new_artifact(self):
        h = _Harness([HEALTHY])

        record = h.controller.deploy(_env(), _artifact(), actor="octocat")

        assert record.outcome == DeploymentOutcome.COMMITTED
        assert record.live_artifact_id == "new"
        assert record.previous_artifact_id == "old"
        assert record.image == "registry/web-app:new"
        assert record.actor == "octocat"
        assert record.states == (
            DeployState.IDLE,
            DeployState.PUBLISHING,
            DeployState.REMOTE_UPDATING,
            DeployState.HEALTH_CHECKING,
            DeployState.COMMITTED,
        )
        assert h.log.current_artifact_id("production") == "new"

    def test_exactly_one_committed_record_is_appended(self):
        h = _Harness([HEALTHY])
        h.controller.deploy(_env(), _artifact())

        history = h.log.history("production")
        new_records = [r for r in history if r.artifact_id == "new"]
        assert len(new_records) == 1
        assert new_records[0].committed

    def test_stops_old_instance_then_starts_published_image(self):
        h = _Harness([HEALTHY])
        h.controller.deploy(_env(), _artifact())

        h.remote.stop.assert_called_once_with("web-app")
        h.remote.start.assert_called_once_with(
            "registry/web-app:new", "web-app", "80:8000", {"APP_ENV": "production"}
        )

    def test_first_deploy_without_history(self):
        h = _Harness([HEALTHY], seed=False)
        record = h.controller.deploy(_env(), _artifact())

        assert record.committed
        assert record.previous_artifact_id is None


class TestPublishFailure:
    def test_no_remote_change_and_live_unchanged(self):
        h = _Harness()
        h.registry.push.side_effect = PublishError("new", "denied")

        record = h.controller.deploy(_env(), _artifact())

        assert record.outcome == DeploymentOutcome.FAILED
        assert record.states[-1] == DeployState.FAILED
        assert "denied" in record.error
        h.remote.stop.assert_not_called()
        h.remote.start.assert_not_called()
        h.health.check.assert_not_called()
        assert h.log.current_artifact_id("production") == "old"


class TestRollback:
    def test_unhealthy_artifact_rolls_back_exactly_once(self):
        h = _Harness([UNHEALTHY, HEALTHY])

        record = h.controller.deploy(_env(), _artifact())

        assert record.outcome == DeploymentOutcome.ROLLED_BACK
        assert record.states.count(DeployState.ROLLING_BACK) == 1
        assert record.states[-1] == DeployState.COMMITTED
        assert record.health == UNHEALTHY
        assert record.rollback_health == HEALTHY
        assert h.health.check.call_count == 2
        assert h.remote.start.call_args_list[-1].args[0] == "registry/web-app:old"
        assert h.log.current_artifact_id("production") == "old"

    def test_remote_update_failure_rolls_back(self):
        h = _Harness([HEALTHY])
        h.remote.start.side_effect = [
            RemoteUpdateError("host", "start", "pull failed"),
            None,
        ]

        record = h.controller.deploy(_env(), _artifact())

        assert record.outcome == DeploymentOutcome.ROLLED_BACK
        assert DeployState.HEALTH_CHECKING not in record.states
        assert "pull failed" in record.error
        assert h.log.current_artifact_id("production") == "old"

    def test_remote_update_failure_without_previous_is_fatal(self):
        h = _Harness(seed=False)
        h.remote.start.side_effect = RemoteUpdateError("host", "start", "unreachable")

        with pytest.raises(RemoteUpdateError):
            h.controller.deploy(_env(), _artifact())

        assert h.log.latest("production").outcome == DeploymentOutcome.FAILED
        assert h.log.current_artifact_id("production") is None

    def test_unhealthy_first_deploy_raises_health_check_error(self):
        h = _Harness([UNHEALTHY], seed=False)

        with pytest.raises(HealthCheckError) as exc_info:
            h.controller.deploy(_env(), _artifact())

        assert exc_info.value.attempts == 3
        assert h.log.latest("production").outcome == DeploymentOutcome.FAILED

    def test_failed_rollback_is_inconsistent(self):
        h = _Harness([UNHEALTHY, UNHEALTHY])

        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact())

        latest = h.log.latest("production")
        assert latest.outcome == DeploymentOutcome.INCONSISTENT
        assert latest.states[-1] == DeployState.INCONSISTENT
        assert latest.states.count(DeployState.ROLLING_BACK) == 1
        assert h.log.current_artifact_id("production") is None
        # no third candidate is tried
        assert h.remote.start.call_count == 2
        assert h.health.check.call_count == 2

    def test_inconsistent_environment_refuses_new_deploys(self):
        h = _Harness([UNHEALTHY, UNHEALTHY])
        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact())
        h.registry.push.reset_mock()
        h.remote.reset_mock()

        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact("newer"))

        h.registry.push.assert_not_called()
        h.remote.start.assert_not_called()

    def test_refusal_appends_refused_record(self):
        h = _Harness([UNHEALTHY, UNHEALTHY])
        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact())
        before = len(h.log.history("production"))

        with pytest.raises(InconsistentStateError, match="manual recovery"):
            h.controller.deploy(_env(), _artifact("newer"), actor="octocat")

        history = h.log.history("production")
        assert len(history) == before + 1
        refused = history[-1]
        assert refused.outcome == DeploymentOutcome.REFUSED
        assert refused.artifact_id == "newer"
        assert refused.actor == "octocat"
        assert refused.states == (DeployState.IDLE, DeployState.FAILED)
        assert "manual recovery" in refused.error
        assert h.log.current_artifact_id("production") is None

    def test_refusals_keep_environment_inconsistent(self):
        h = _Harness([UNHEALTHY, UNHEALTHY])
        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact())

        for sha in ("b", "c"):
            with pytest.raises(InconsistentStateError):
                h.controller.deploy(_env(), _artifact(sha))

        assert h.controller.is_inconsistent("production") is True
        h.controller.record_manual_recovery("production", "old", "registry/web-app:old")
        assert h.controller.is_inconsistent("production") is False

    def test_manual_recovery_reopens_environment(self):
        h = _Harness([UNHEALTHY, UNHEALTHY, HEALTHY])
        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact())

        recovery = h.controller.record_manual_recovery(
            "production", "old", "registry/web-app:old", actor="ops"
        )
        assert recovery.outcome == DeploymentOutcome.MANUAL_RECOVERY
        assert h.log.current_artifact_id("production") == "old"

        record = h.controller.deploy(_env(), _artifact("fixed"))
        assert record.committed
        assert record.previous_artifact_id == "old"


class TestEnvironmentLock:
    def test_rollouts_to_one_environment_do_not_overlap(self):
        active = []
        overlaps = []
        lock = threading.Lock()

        def slow_start(*args):
            with lock:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
            time.sleep(0.05)
            with lock:
                active.pop()

        h = _Harness([HEALTHY, HEALTHY])
        h.remote.start.side_effect = slow_start

        threads = [
            threading.Thread(target=h.controller.deploy, args=(_env(), _artifact(sha)))
            for sha in ("a", "b")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert len(h.log.history("production")) == 3

    def test_deploy_publishing_during_failed_rollback_is_refused(self):
        h = _Harness([UNHEALTHY, UNHEALTHY])
        b_publishing = threading.Event()
        a_done = threading.Event()

        def push(artifact):
            if artifact.id == "b":
                b_publishing.set()
                a_done.wait(timeout=5)
            return f"registry/web-app:{artifact.id}"

        h.registry.push.side_effect = push
        errors = []

        def deploy_b():
            try:
                h.controller.deploy(_env(), _artifact("b"))
            except InconsistentStateError as e:
                errors.append(e)

        thread = threading.Thread(target=deploy_b)
        thread.start()
        assert b_publishing.wait(timeout=5)

        with pytest.raises(InconsistentStateError):
            h.controller.deploy(_env(), _artifact("a"))
        a_done.set()
        thread.join(timeout=5)

        assert len(errors) == 1
        started = [c.args[0] for c in h.remote.start.call_args_list]
        assert started == ["registry/web-app:a", "registry/web-app:old"]
        outcomes = [r.outcome for r in h.log.history("production")[1:]]
        assert outcomes == [DeploymentOutcome.INCONSISTENT, DeploymentOutcome.REFUSED]
        assert h.controller.is_inconsistent("production") is True
