"""Pipeline orchestrator for the deploy pipeline.

Connects the DependencyScheduler, StageExecutor, DeploymentController and
Notifier into a single pipeline run with structured results.
"""

from .models import PipelineResult
from .pipeline import PipelineOrchestrator

__all__ = [
    "PipelineOrchestrator",
    "PipelineResult",
]
