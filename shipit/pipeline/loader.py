"""Loads declarative YAML pipeline documents into PipelineSpec objects.

Expected document shape::

    name: web-app
    concurrency: 2
    environments:
      production:
        host: ec2-user@203.0.113.10
        container: app
        port: "80:8000"
        health_url: http://203.0.113.10/health
        env:
          APP_ENV: production
    stages:
      - name: test
        actions:
          - run: pytest -q
      - name: build
        needs: [test]
        timeout: 900
        actions:
          - run: docker build -t $SHIPIT_IMAGE .
      - name: deploy
        needs: [build]
        actions:
          - deploy: production
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .exceptions import ConfigurationError
from .graph import topological_order
from .models import ActionKind, ActionSpec, EnvironmentSpec, PipelineSpec, StageSpec

logger = logging.getLogger(__name__)


def load_pipeline(path: Union[str, Path]) -> PipelineSpec:
    """Read and validate a pipeline document from disk.

    Args:
        path: Path to a YAML pipeline document.

    Returns:
        Validated PipelineSpec.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML,
            or does not describe a valid acyclic pipeline.
    """
    path = Path(path)
    source = str(path)
    try:
        raw: Any = yaml.safe_load(path.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError("pipeline file not found", source=source) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML: {e}", source=source) from e

    spec = parse_pipeline(raw, source=source)
    logger.info(
        "Loaded pipeline '%s' with %d stages from %s",
        spec.name,
        len(spec.stages),
        source,
    )
    return spec


def parse_pipeline(data: Any, source: Optional[str] = None) -> PipelineSpec:
    """Validate a parsed document and build a PipelineSpec.

    Raises:
        ConfigurationError: On any structural problem or dependency cycle.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("document must be a mapping", source=source)

    name = str(data.get("name") or "pipeline")

    environments = _parse_environments(data.get("environments") or {}, source)

    raw_stages = data.get("stages")
    if not isinstance(raw_stages, list) or not raw_stages:
        raise ConfigurationError("'stages' must be a non-empty list", source=source)

    stages: list[StageSpec] = []
    seen: set[str] = set()
    for index, raw_stage in enumerate(raw_stages):
        stage = _parse_stage(raw_stage, index, environments, source)
        if stage.name in seen:
            raise ConfigurationError(
                f"duplicate stage name '{stage.name}'", source=source
            )
        seen.add(stage.name)
        stages.append(stage)

    concurrency = data.get("concurrency")
    if concurrency is not None:
        concurrency = _positive_int(concurrency, "concurrency", source)

    spec = PipelineSpec(
        name=name,
        stages=tuple(stages),
        environments=environments,
        concurrency=concurrency,
    )

    topological_order(spec, source=source)
    return spec


def _parse_stage(
    raw: Any,
    index: int,
    environments: dict[str, EnvironmentSpec],
    source: Optional[str],
) -> StageSpec:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"stage #{index + 1} must be a mapping", source=source)

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"stage #{index + 1} has no name", source=source)

    needs_raw = raw.get("needs") or []
    if isinstance(needs_raw, str):
        needs_raw = [needs_raw]
    if not isinstance(needs_raw, list) or not all(isinstance(n, str) for n in needs_raw):
        raise ConfigurationError(
            f"stage '{name}': 'needs' must be a list of stage names", source=source
        )

    raw_actions = raw.get("actions")
    if not isinstance(raw_actions, list) or not raw_actions:
        raise ConfigurationError(
            f"stage '{name}': 'actions' must be a non-empty list", source=source
        )
    actions = tuple(
        _parse_action(a, name, environments, source) for a in raw_actions
    )

    timeout = raw.get("timeout")
    if timeout is not None:
        timeout = _positive_float(timeout, f"stage '{name}': timeout", source)

    return StageSpec(
        name=name,
        actions=actions,
        needs=frozenset(needs_raw),
        timeout_seconds=timeout,
    )


def _parse_action(
    raw: Any,
    stage_name: str,
    environments: dict[str, EnvironmentSpec],
    source: Optional[str],
) -> ActionSpec:
    if isinstance(raw, str):
        return ActionSpec(kind=ActionKind.RUN, command=raw)
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"stage '{stage_name}': each action must be a mapping or a command string",
            source=source,
        )

    has_run = "run" in raw
    has_deploy = "deploy" in raw
    if has_run == has_deploy:
        raise ConfigurationError(
            f"stage '{stage_name}': action must declare exactly one of 'run' or 'deploy'",
            source=source,
        )

    display = str(raw.get("name") or "")

    if has_deploy:
        env_name = raw["deploy"]
        if not isinstance(env_name, str) or not env_name.strip():
            raise ConfigurationError(
                f"stage '{stage_name}': 'deploy' must name an environment",
                source=source,
            )
        if env_name not in environments:
            raise ConfigurationError(
                f"stage '{stage_name}': deploy target '{env_name}' is not a declared environment",
                source=source,
            )
        return ActionSpec(kind=ActionKind.DEPLOY, environment=env_name, name=display)

    command = raw["run"]
    if not isinstance(command, str) or not command.strip():
        raise ConfigurationError(
            f"stage '{stage_name}': 'run' must be a non-empty command", source=source
        )
    return ActionSpec(
        kind=ActionKind.RUN,
        command=command,
        name=display,
        env=_string_map(raw.get("env"), f"stage '{stage_name}': env", source),
    )


def _parse_environments(
    raw: Any, source: Optional[str]
) -> dict[str, EnvironmentSpec]:
    if not isinstance(raw, dict):
        raise ConfigurationError("'environments' must be a mapping", source=source)

    environments = {}
    for name, cfg in raw.items():
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(
                f"environment name {name!r} must be a non-empty string", source=source
            )
        if not isinstance(cfg, dict):
            raise ConfigurationError(
                f"environment '{name}' must be a mapping", source=source
            )
        for required in ("host", "health_url"):
            if not cfg.get(required):
                raise ConfigurationError(
                    f"environment '{name}' is missing '{required}'", source=source
                )

        retries = cfg.get("health_retries")
        delay = cfg.get("health_delay")
        environments[name] = EnvironmentSpec(
            name=name,
            host=str(cfg["host"]),
            health_url=str(cfg["health_url"]),
            container=str(cfg.get("container", "app")),
            port_binding=str(cfg.get("port", "80:8000")),
            env_vars=_string_map(cfg.get("env"), f"environment '{name}': env", source),
            health_retries=(
                _positive_int(retries, f"environment '{name}': health_retries", source)
                if retries is not None
                else None
            ),
            health_delay_seconds=(
                _non_negative_float(delay, f"environment '{name}': health_delay", source)
                if delay is not None
                else None
            ),
        )
    return environments


def _string_map(raw: Any, what: str, source: Optional[str]) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{what} must be a mapping", source=source)
    return {str(k): str(v) for k, v in raw.items()}


def _positive_int(value: Any, what: str, source: Optional[str]) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{what} must be a positive integer", source=source)
    return value


def _positive_float(value: Any, what: str, source: Optional[str]) -> float:
    result = _non_negative_float(value, what, source)
    if result == 0:
        raise ConfigurationError(f"{what} must be greater than zero", source=source)
    return result


def _non_negative_float(value: Any, what: str, source: Optional[str]) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigurationError(f"{what} must be a non-negative number", source=source)
    return float(value)
