"""Unit tests for deployment log implementations."""

import json
from datetime import datetime, timezone

import pytest

from shipit.deploy import (
    DeploymentLogError,
    DeploymentOutcome,
    DeploymentRecord,
    DeployState,
    HealthCheckResult,
    InMemoryDeploymentLog,
    JsonFileDeploymentLog,
)


def _record(sha, outcome=DeploymentOutcome.COMMITTED, env="production", live="same"):
    live_id = sha if live == "same" else live
    return DeploymentRecord(
        environment=env,
        artifact_id=sha,
        image=f"registry/web-app:{sha}",
        outcome=outcome,
        live_artifact_id=live_id,
        live_image=f"registry/web-app:{live_id}" if live_id else None,
        health=HealthCheckResult(healthy=True, attempts=2, last_status_code=200),
        states=(DeployState.IDLE, DeployState.PUBLISHING, DeployState.COMMITTED),
        created_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture(params=["memory", "file"])
def deployment_log(request, tmp_path):
    if request.param == "memory":
        return InMemoryDeploymentLog()
    return JsonFileDeploymentLog(tmp_path / "state" / "deployments.jsonl")


class TestDeploymentLog:
    def test_empty_environment(self, deployment_log):
        assert deployment_log.history("production") == []
        assert deployment_log.latest("production") is None
        assert deployment_log.current_artifact_id("production") is None

    def test_current_follows_latest_record(self, deployment_log):
        deployment_log.append(_record("a"))
        deployment_log.append(_record("b"))
        assert deployment_log.current_artifact_id("production") == "b"

    def test_rolled_back_record_keeps_previous_live(self, deployment_log):
        deployment_log.append(_record("a"))
        deployment_log.append(_record("b", DeploymentOutcome.ROLLED_BACK, live="a"))
        assert deployment_log.latest("production").artifact_id == "b"
        assert deployment_log.current_artifact_id("production") == "a"

    def test_inconsistent_record_has_no_current(self, deployment_log):
        deployment_log.append(_record("a"))
        deployment_log.append(_record("b", DeploymentOutcome.INCONSISTENT, live=None))
        assert deployment_log.current("production") is None

    def test_environments_are_separate(self, deployment_log):
        deployment_log.append(_record("a", env="staging"))
        deployment_log.append(_record("b", env="production"))
        assert [r.artifact_id for r in deployment_log.history("staging")] == ["a"]
        assert deployment_log.current_artifact_id("production") == "b"


class TestJsonFileDeploymentLog:
    def test_records_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "deployments.jsonl"
        JsonFileDeploymentLog(path).append(_record("a"))

        restored = JsonFileDeploymentLog(path).latest("production")

        assert restored == _record("a")

    def test_file_is_append_only_json_lines(self, tmp_path):
        path = tmp_path / "deployments.jsonl"
        log = JsonFileDeploymentLog(path)
        log.append(_record("a"))
        first_line = path.read_text().splitlines()[0]
        log.append(_record("b"))

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0] == first_line
        assert json.loads(lines[1])["artifact_id"] == "b"

    def test_corrupt_line_raises(self, tmp_path):
        path = tmp_path / "deployments.jsonl"
        path.write_text("{not json}\n")
        with pytest.raises(DeploymentLogError, match="line 1"):
            JsonFileDeploymentLog(path).history("production")
