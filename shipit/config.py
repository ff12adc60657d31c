"""Runtime settings read from environment variables.

The CLI calls ``load_dotenv()`` first, so every value here can also be set
in a ``.env`` file at the project root.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from shipit.pipeline.exceptions import ConfigurationError

DEFAULT_DEPLOY_LOG = Path(".shipit") / "deployments.jsonl"
DEFAULT_CONCURRENCY = 2


@dataclass(frozen=True)
class Settings:
    """Pipeline-wide defaults.

    Attributes:
        concurrency: Maximum number of stages running at once. None means
            unset: the pipeline file decides, then DEFAULT_CONCURRENCY.
        stage_timeout_seconds: Default per-stage timeout.
        health_retries: Health check attempts before rolling back.
        health_delay_seconds: Delay between health check attempts.
        health_timeout_seconds: Timeout of a single health request.
        health_backoff: Multiplier applied to the delay after each attempt.
            1.0 keeps the delay fixed.
        registry: Registry prefix images are pushed to
            (e.g., "123456789012.dkr.ecr.us-east-1.amazonaws.com/web-app").
        ssh_key_path: Private key used for remote hosts.
        deploy_log_path: JSON-lines file holding deployment records.
        slack_webhook_url: Slack incoming webhook for run notifications.
        notify_webhook_url: Generic JSON webhook for run notifications.
    """

    concurrency: Optional[int] = None
    stage_timeout_seconds: float = 1800.0
    health_retries: int = 3
    health_delay_seconds: float = 5.0
    health_timeout_seconds: float = 5.0
    health_backoff: float = 1.0
    registry: str = ""
    ssh_key_path: Optional[str] = None
    deploy_log_path: Path = DEFAULT_DEPLOY_LOG
    slack_webhook_url: Optional[str] = None
    notify_webhook_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SHIPIT_* and webhook environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed or
                is out of range.
        """
        defaults = cls()
        return cls(
            concurrency=_env_int("SHIPIT_CONCURRENCY", None),
            stage_timeout_seconds=_env_float(
                "SHIPIT_STAGE_TIMEOUT", defaults.stage_timeout_seconds
            ),
            health_retries=_env_int("SHIPIT_HEALTH_RETRIES", defaults.health_retries),
            health_delay_seconds=_env_float(
                "SHIPIT_HEALTH_DELAY", defaults.health_delay_seconds, allow_zero=True
            ),
            health_timeout_seconds=_env_float(
                "SHIPIT_HEALTH_TIMEOUT", defaults.health_timeout_seconds
            ),
            health_backoff=_env_float("SHIPIT_HEALTH_BACKOFF", defaults.health_backoff),
            registry=os.getenv("SHIPIT_REGISTRY", ""),
            ssh_key_path=os.getenv("SHIPIT_SSH_KEY") or None,
            deploy_log_path=Path(os.getenv("SHIPIT_DEPLOY_LOG") or DEFAULT_DEPLOY_LOG),
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
            notify_webhook_url=os.getenv("SHIPIT_NOTIFY_WEBHOOK_URL") or None,
        )


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


def _env_float(name: str, default: float, allow_zero: bool = False) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError(f"{name} is out of range: {value}")
    return value
