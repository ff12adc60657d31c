"""Run trigger metadata supplied by the source-control webhook."""

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class TriggerInfo:
    """Who and what started a pipeline run.

    Purely informational: it names the artifact and is echoed in
    notifications, but never affects scheduling.

    Attributes:
        commit: Commit SHA; doubles as the artifact id.
        branch: Branch the commit was pushed to.
        actor: User who triggered the run.
    """

    commit: str
    branch: str = ""
    actor: str = ""

    @property
    def short_commit(self) -> str:
        return self.commit[:7]

    @classmethod
    def from_github_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> Optional["TriggerInfo"]:
        """Read GITHUB_SHA, GITHUB_REF_NAME and GITHUB_ACTOR.

        Returns:
            TriggerInfo, or None when not running under GitHub Actions.
        """
        env = os.environ if environ is None else environ
        commit = env.get("GITHUB_SHA")
        if not commit:
            return None
        return cls(
            commit=commit,
            branch=env.get("GITHUB_REF_NAME", ""),
            actor=env.get("GITHUB_ACTOR", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"commit": self.commit, "branch": self.branch, "actor": self.actor}
