"""Pipeline definition module.

Parses declarative YAML pipeline documents into validated, acyclic
PipelineSpec objects.

Public API:
    - load_pipeline: Read and validate a YAML document from disk
    - parse_pipeline: Validate an already-parsed document
    - topological_order: Dependency-respecting stage order
    - PipelineSpec, StageSpec, ActionSpec, ActionKind, EnvironmentSpec
    - ConfigurationError: Malformed or cyclic pipeline
    - CyclicDependencyError: Stage dependencies contain a cycle
"""

from .exceptions import ConfigurationError, CyclicDependencyError
from .graph import ready_stages, topological_order
from .loader import load_pipeline, parse_pipeline
from .models import ActionKind, ActionSpec, EnvironmentSpec, PipelineSpec, StageSpec

__all__ = [
    "load_pipeline",
    "parse_pipeline",
    "topological_order",
    "ready_stages",
    "PipelineSpec",
    "StageSpec",
    "ActionSpec",
    "ActionKind",
    "EnvironmentSpec",
    "ConfigurationError",
    "CyclicDependencyError",
]
