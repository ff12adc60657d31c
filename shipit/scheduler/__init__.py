"""Dependency scheduler module.

Orders stages along their needs graph, runs independent stages in
parallel and stops the run on the first failure or on cancellation.

Public API:
    - DependencyScheduler: Runs a PipelineSpec through a stage runner
    - CancellationToken: Stage-boundary cancellation flag
    - ScheduleResult: Per-stage results of a run
"""

from .models import CancellationToken, ScheduleResult
from .scheduler import DependencyScheduler

__all__ = [
    "DependencyScheduler",
    "CancellationToken",
    "ScheduleResult",
]
