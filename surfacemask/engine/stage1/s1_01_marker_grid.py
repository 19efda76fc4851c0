"""S1.01 — Marker Grid.

Uniform lattice of watershed seeds. Spacing shrinks as the detail level
rises and never drops below min_spacing. If the lattice would exceed the
marker budget, spacing grows until it fits; markers are never dropped from
an otherwise valid grid, so the whole image stays seeded.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.errors import InvalidInputError
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

_FLOOR_EPS = 1e-9


@dataclass
class MarkerGrid:
    """Seed lattice: points are (x, y) pixels, labels run 1..N in row-major order."""

    spacing: int
    xs: NDArray[np.int64]
    ys: NDArray[np.int64]

    @property
    def cols(self) -> int:
        return len(self.xs)

    @property
    def rows(self) -> int:
        return len(self.ys)

    @property
    def count(self) -> int:
        return self.cols * self.rows

    @property
    def points(self) -> NDArray[np.int64]:
        gx, gy = np.meshgrid(self.xs, self.ys)
        return np.column_stack([gx.ravel(), gy.ravel()])

    @property
    def labels(self) -> NDArray[np.int32]:
        return np.arange(1, self.count + 1, dtype=np.int32)

    def to_marker_image(self, height: int, width: int) -> NDArray[np.int32]:
        markers = np.zeros((height, width), dtype=np.int32)
        pts = self.points
        markers[pts[:, 1], pts[:, 0]] = self.labels
        return markers


def clamp_detail(detail: float, config: SegmentationConfig | None = None) -> int:
    config = config or SegmentationConfig()
    if not math.isfinite(detail):
        raise InvalidInputError(f"Detail level must be finite, got {detail}")
    return int(min(max(round(detail), config.detail_min), config.detail_max))


def grid_spacing(width: int, height: int, detail: float, config: SegmentationConfig | None = None) -> int:
    """Marker spacing before the budget check. Strictly decreasing in detail above the floor."""
    config = config or SegmentationConfig()
    d = clamp_detail(detail, config)
    max_region_size = min(width, height) / config.region_size_divisor
    base_spacing = max_region_size * config.base_spacing_ratio
    steps = config.detail_max - config.detail_min
    multiplier = config.spacing_multiplier_max - (d - config.detail_min) * (
        config.spacing_multiplier_span / steps
    )
    # Small epsilon keeps exact products like 140 * 0.6 from flooring one short
    return max(config.min_spacing, int(math.floor(base_spacing * multiplier + _FLOOR_EPS)))


def axis_positions(length: int, spacing: int) -> NDArray[np.int64]:
    """Marker coordinates along one axis: spacing/2, spacing/2 + spacing, ...

    An axis shorter than half a spacing still gets one marker at its middle.
    """
    positions = np.arange(spacing // 2, length, spacing, dtype=np.int64)
    if len(positions) == 0:
        positions = np.array([(length - 1) // 2], dtype=np.int64)
    return positions


def compute_marker_grid(
    width: int,
    height: int,
    detail: float,
    config: SegmentationConfig | None = None,
) -> MarkerGrid:
    config = config or SegmentationConfig()
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Cannot place markers on a {width}x{height} image")

    spacing = grid_spacing(width, height, detail, config)
    grid = MarkerGrid(spacing, axis_positions(width, spacing), axis_positions(height, spacing))

    budget = max(1, config.marker_budget)
    while grid.count > budget:
        grow = math.sqrt(grid.count / budget)
        spacing = max(spacing + 1, int(math.ceil(spacing * grow)))
        grid = MarkerGrid(spacing, axis_positions(width, spacing), axis_positions(height, spacing))
        logger.debug("Marker budget exceeded, spacing raised to %d (%d markers)", spacing, grid.count)

    return grid


@stage(id="S1.01", layer=Layer.LABELING, dependencies=["S0.01"])
def place_markers(ctx: SegmentationContext) -> None:
    working = ctx.working
    ctx.markers = compute_marker_grid(working.width, working.height, ctx.detail, ctx.config)
    logger.info(
        "Marker grid: spacing %dpx, %d markers (%dx%d)",
        ctx.markers.spacing, ctx.markers.count, ctx.markers.cols, ctx.markers.rows,
    )
