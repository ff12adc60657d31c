"""Append-only deployment log implementations."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from .exceptions import DeploymentLogError
from .models import DeploymentRecord

logger = logging.getLogger(__name__)


class DeploymentLog(ABC):
    """Interface for the per-environment history of deploy attempts.

    Records are only ever appended. The artifact currently live in an
    environment is derived from the newest record, never stored apart
    from the log.
    """

    @abstractmethod
    def append(self, record: DeploymentRecord) -> None:
        """Persist a new deployment record.

        Args:
            record: Record of a finished deploy attempt.
        """
        pass

    @abstractmethod
    def history(self, environment: str) -> list[DeploymentRecord]:
        """Get all records for an environment, oldest first.

        Args:
            environment: Environment name.

        Returns:
            List of DeploymentRecords in append order.
        """
        pass

    def latest(self, environment: str) -> Optional[DeploymentRecord]:
        """Get the newest record for an environment, if any."""
        records = self.history(environment)
        return records[-1] if records else None

    def current(self, environment: str) -> Optional[DeploymentRecord]:
        """Get the newest record, if it points at a live artifact.

        Returns:
            The latest record when its ``live_artifact_id`` is set, else None
            (never deployed, or left inconsistent).
        """
        record = self.latest(environment)
        if record is None or record.live_artifact_id is None:
            return None
        return record

    def current_artifact_id(self, environment: str) -> Optional[str]:
        """Get the id of the artifact currently live in an environment."""
        record = self.current(environment)
        return record.live_artifact_id if record else None


class InMemoryDeploymentLog(DeploymentLog):
    """In-memory implementation for testing and dry runs.

    Records are lost when the process exits.
    """

    def __init__(self) -> None:
        self._records: list[DeploymentRecord] = []
        self._lock = threading.Lock()

    def append(self, record: DeploymentRecord) -> None:
        with self._lock:
            self._records.append(record)

    def history(self, environment: str) -> list[DeploymentRecord]:
        with self._lock:
            return [r for r in self._records if r.environment == environment]

    def clear(self) -> None:
        """Drop all records. Useful for testing."""
        with self._lock:
            self._records.clear()


class JsonFileDeploymentLog(DeploymentLog):
    """JSON-lines file implementation.

    Each record is one line; the file is opened in append mode, so earlier
    records are never rewritten.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: DeploymentRecord) -> None:
        line = json.dumps(record.to_dict())
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            except OSError as e:
                raise DeploymentLogError(
                    f"Cannot write deployment log {self._path}: {e}"
                ) from e
        logger.debug(
            "Appended %s record for %s to %s",
            record.outcome.value,
            record.environment,
            self._path,
        )

    def history(self, environment: str) -> list[DeploymentRecord]:
        with self._lock:
            if not self._path.exists():
                return []
            try:
                lines = self._path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                raise DeploymentLogError(
                    f"Cannot read deployment log {self._path}: {e}"
                ) from e

        records = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = DeploymentRecord.from_dict(json.loads(line))
            except (ValueError, KeyError) as e:
                raise DeploymentLogError(
                    f"Corrupt deployment log {self._path} at line {number}: {e}"
                ) from e
            if record.environment == environment:
                records.append(record)
        return records
