"""Stage dependency graph utilities using graphlib."""

from graphlib import CycleError, TopologicalSorter
from typing import Optional

from .exceptions import ConfigurationError, CyclicDependencyError
from .models import PipelineSpec


def build_graph(
    spec: PipelineSpec, source: Optional[str] = None
) -> dict[str, set[str]]:
    """Map each stage name to the set of stages it needs.

    Raises:
        ConfigurationError: If a stage needs an undeclared stage.
        CyclicDependencyError: If a stage needs itself.
    """
    declared = set(spec.stage_names)
    graph: dict[str, set[str]] = {}
    for stage in spec.stages:
        unknown = stage.needs - declared
        if unknown:
            raise ConfigurationError(
                f"stage '{stage.name}' needs undeclared stage(s): "
                f"{', '.join(sorted(unknown))}",
                source=source,
            )
        if stage.name in stage.needs:
            raise CyclicDependencyError([stage.name, stage.name], source=source)
        graph[stage.name] = set(stage.needs)
    return graph


def topological_order(
    spec: PipelineSpec, source: Optional[str] = None
) -> list[str]:
    """Return stage names so that every stage follows all of its needs.

    Ties are broken by declaration order, so the result is stable for a
    given document.

    Raises:
        CyclicDependencyError: If the needs relations contain a cycle.
    """
    graph = build_graph(spec, source=source)
    position = {name: i for i, name in enumerate(spec.stage_names)}
    sorter = TopologicalSorter(graph)
    try:
        sorter.prepare()
    except CycleError as e:
        # graphlib reports the cycle as [a, b, ..., a]
        raise CyclicDependencyError(list(e.args[1]), source=source) from e

    order: list[str] = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=position.__getitem__)
        order.extend(ready)
        sorter.done(*ready)
    return order


def ready_stages(
    spec: PipelineSpec, completed: set[str], started: set[str]
) -> list[str]:
    """Return stages whose needs are all in ``completed`` and not yet started."""
    return [
        stage.name
        for stage in spec.stages
        if stage.name not in started and stage.needs <= completed
    ]
