"""Unit tests for environment-based settings and trigger metadata."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from shipit.config import DEFAULT_DEPLOY_LOG, Settings
from shipit.pipeline import ConfigurationError
from shipit.trigger import TriggerInfo


class TestSettingsFromEnv:
    def test_defaults_when_env_is_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.concurrency is None
        assert settings.health_retries == 3
        assert settings.health_delay_seconds == 5.0
        assert settings.health_backoff == 1.0
        assert settings.registry == ""
        assert settings.deploy_log_path == DEFAULT_DEPLOY_LOG
        assert settings.slack_webhook_url is None

    def test_reads_all_variables(self):
        env = {
            "SHIPIT_CONCURRENCY": "4",
            "SHIPIT_STAGE_TIMEOUT": "60",
            "SHIPIT_HEALTH_RETRIES": "5",
            "SHIPIT_HEALTH_DELAY": "0",
            "SHIPIT_HEALTH_TIMEOUT": "2.5",
            "SHIPIT_HEALTH_BACKOFF": "2",
            "SHIPIT_REGISTRY": "123.dkr.ecr.us-east-1.amazonaws.com/web-app",
            "SHIPIT_SSH_KEY": "/keys/deploy.pem",
            "SHIPIT_DEPLOY_LOG": "/var/lib/shipit/log.jsonl",
            "SLACK_WEBHOOK_URL": "https://hooks.slack.com/services/T/B/X",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert settings.concurrency == 4
        assert settings.stage_timeout_seconds == 60.0
        assert settings.health_retries == 5
        assert settings.health_delay_seconds == 0.0
        assert settings.health_timeout_seconds == 2.5
        assert settings.health_backoff == 2.0
        assert settings.registry.endswith("/web-app")
        assert settings.ssh_key_path == "/keys/deploy.pem"
        assert settings.deploy_log_path == Path("/var/lib/shipit/log.jsonl")
        assert settings.slack_webhook_url.startswith("https://hooks.slack.com")

    @pytest.mark.parametrize(
        "name,value",
        [
            ("SHIPIT_CONCURRENCY", "many"),
            ("SHIPIT_CONCURRENCY", "0"),
            ("SHIPIT_HEALTH_RETRIES", "-1"),
            ("SHIPIT_STAGE_TIMEOUT", "0"),
            ("SHIPIT_HEALTH_DELAY", "soon"),
        ],
    )
    def test_invalid_values_raise_configuration_error(self, name, value):
        with patch.dict(os.environ, {name: value}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Settings.from_env()
        assert name in str(exc_info.value)


class TestTriggerInfo:
    def test_from_github_env(self):
        trigger = TriggerInfo.from_github_env(
            {
                "GITHUB_SHA": "3f9c2e1abcdef",
                "GITHUB_REF_NAME": "main",
                "GITHUB_ACTOR": "octocat",
            }
        )
        assert trigger == TriggerInfo(commit="3f9c2e1abcdef", branch="main", actor="octocat")
        assert trigger.short_commit == "3f9c2e1"

    def test_outside_github_actions(self):
        assert TriggerInfo.from_github_env({}) is None
