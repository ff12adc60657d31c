"""Data models for scheduled runs."""

import threading
from dataclasses import dataclass, field
from typing import Optional

from shipit.executor.models import StageResult, StageStatus


class CancellationToken:
    """Thread-safe flag checked by the scheduler between stages.

    Cancelling never interrupts a stage that has already started.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason


@dataclass
class ScheduleResult:
    """Results of every stage of one scheduled run.

    Attributes:
        results: Final StageResult per stage name.
        started_order: Stage names in the order they were started.
        cancelled: Whether a cancellation stopped the run early.
        halted: Whether a failed stage stopped the run early.
    """

    results: dict[str, StageResult] = field(default_factory=dict)
    started_order: list[str] = field(default_factory=list)
    cancelled: bool = False
    halted: bool = False

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results.values())

    def by_status(self, status: StageStatus) -> list[str]:
        return [name for name, r in self.results.items() if r.status == status]
