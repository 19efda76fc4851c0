"""Stage registry — every pipeline stage is a standalone function registered via decorator.

Usage:
    @stage(id="S2.01", layer=Layer.RESOLUTION, dependencies=["S1.02"])
    def resolve_coverage(ctx: SegmentationContext) -> None:
        ctx.label_map = propagate_labels(ctx.label_map)

Adding a new stage = creating one file with the decorator. Nothing else changes.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from surfacemask.engine.context import SegmentationContext

logger = logging.getLogger(__name__)


class Layer(enum.IntEnum):
    PREPARATION = 0
    LABELING = 1
    RESOLUTION = 2
    REGIONS = 3
    GEOMETRY = 4


@dataclass
class StageSpec:
    id: str
    layer: Layer
    fn: Callable[["SegmentationContext"], None]
    dependencies: list[str] = field(default_factory=list)


class StageRegistry:
    """Registry of pipeline stages keyed by stage ID."""

    def __init__(self) -> None:
        self._stages: dict[str, StageSpec] = {}

    def register(self, spec: StageSpec) -> None:
        if spec.id in self._stages:
            raise ValueError(f"Duplicate stage ID: {spec.id}")
        self._stages[spec.id] = spec
        logger.debug("Registered stage %s (%s)", spec.id, spec.layer.name)

    def all(self) -> list[StageSpec]:
        return sorted(self._stages.values(), key=lambda s: (s.layer, s.id))

    def resolve_order(self, requested_ids: set[str] | None = None) -> list[StageSpec]:
        """Topological sort respecting dependencies. If requested_ids is None, run all.

        Dependencies outside the requested set are not pulled back in, so a
        skipped stage stays skipped.
        """
        pool = self._stages
        if requested_ids is not None:
            pool = {k: v for k, v in pool.items() if k in requested_ids}

        # Kahn's algorithm
        in_degree: dict[str, int] = {sid: 0 for sid in pool}
        for sid, spec in pool.items():
            for dep in spec.dependencies:
                if dep in pool:
                    in_degree[sid] += 1

        queue = sorted([sid for sid, d in in_degree.items() if d == 0])
        ordered: list[StageSpec] = []

        while queue:
            sid = queue.pop(0)
            ordered.append(pool[sid])
            for other_id, other_spec in pool.items():
                if sid in other_spec.dependencies:
                    in_degree[other_id] -= 1
                    if in_degree[other_id] == 0:
                        queue.append(other_id)
                        queue.sort()

        if len(ordered) != len(pool):
            missing = set(pool.keys()) - {s.id for s in ordered}
            raise ValueError(f"Circular dependency detected among: {missing}")

        return ordered


# Module-level singleton
_registry = StageRegistry()


def get_registry() -> StageRegistry:
    return _registry


def stage(
    *,
    id: str,
    layer: Layer,
    dependencies: list[str] | None = None,
):
    """Decorator to register a stage function."""

    def decorator(fn: Callable[["SegmentationContext"], None]):
        spec = StageSpec(
            id=id,
            layer=layer,
            fn=fn,
            dependencies=dependencies or [],
        )
        _registry.register(spec)
        return fn

    return decorator
