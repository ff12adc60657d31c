"""Data models for declarative pipeline definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ActionKind(str, Enum):
    """Kinds of actions a stage can declare."""

    RUN = "run"
    DEPLOY = "deploy"


@dataclass(frozen=True)
class ActionSpec:
    """A single declared action inside a stage.

    Attributes:
        kind: RUN for a shell command, DEPLOY for a hand-off to the
            deployment controller.
        command: Shell command (RUN only).
        environment: Target environment name (DEPLOY only).
        name: Optional display name.
        env: Extra environment variables for the command.
    """

    kind: ActionKind
    command: str = ""
    environment: str = ""
    name: str = ""
    env: dict[str, str] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.kind == ActionKind.DEPLOY:
            return f"deploy to {self.environment}"
        return self.command

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the YAML document shape."""
        if self.kind == ActionKind.DEPLOY:
            data: dict[str, Any] = {"deploy": self.environment}
        else:
            data = {"run": self.command}
            if self.env:
                data["env"] = dict(self.env)
        if self.name:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class StageSpec:
    """A named unit of pipeline work with explicit dependencies."""

    name: str
    actions: tuple[ActionSpec, ...] = ()
    needs: frozenset[str] = frozenset()
    timeout_seconds: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "actions": [a.to_dict() for a in self.actions],
        }
        if self.needs:
            data["needs"] = sorted(self.needs)
        if self.timeout_seconds is not None:
            data["timeout"] = self.timeout_seconds
        return data


@dataclass(frozen=True)
class EnvironmentSpec:
    """Deployment target for DEPLOY actions.

    Attributes:
        name: Environment name (e.g., "production").
        host: Remote host in ssh form (e.g., "ec2-user@203.0.113.10").
        container: Name of the running container on the host.
        port_binding: Docker port mapping (e.g., "80:8000").
        health_url: Liveness endpoint polled after a rollout.
        env_vars: Environment variables passed to the container.
        health_retries: Per-environment override of the retry count.
        health_delay_seconds: Per-environment override of the retry delay.
    """

    name: str
    host: str
    health_url: str
    container: str = "app"
    port_binding: str = "80:8000"
    env_vars: dict[str, str] = field(default_factory=dict)
    health_retries: Optional[int] = None
    health_delay_seconds: Optional[float] = None


@dataclass(frozen=True)
class PipelineSpec:
    """An ordered set of stages plus the environments they deploy to.

    Stage order is the declaration order; execution order is derived
    from the ``needs`` relations by the scheduler.
    """

    name: str
    stages: tuple[StageSpec, ...]
    environments: dict[str, EnvironmentSpec] = field(default_factory=dict)
    concurrency: Optional[int] = None

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def get_stage(self, name: str) -> StageSpec:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def dependents_of(self, name: str) -> set[str]:
        """Return every stage that transitively depends on ``name``."""
        found: set[str] = set()
        frontier = [name]
        while frontier:
            current = frontier.pop()
            for stage in self.stages:
                if current in stage.needs and stage.name not in found:
                    found.add(stage.name)
                    frontier.append(stage.name)
        return found
