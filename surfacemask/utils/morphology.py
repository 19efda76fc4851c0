"""Boundary tracing for binary region masks.

Pixel (px, py) is the unit square centred on the integer point (px, py).
Outlines follow the pixel edges, so every vertex sits on a half-integer
corner and two masks that share a pixel edge share that outline segment
exactly.
"""

from __future__ import annotations

import logging

import numpy as np
import shapely
from numpy.typing import NDArray
from shapely.geometry import MultiPolygon, Polygon

logger = logging.getLogger(__name__)


def row_runs(mask: NDArray[np.bool_]) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.intp]]:
    """Horizontal runs of set pixels as (row, first column, end column exclusive)."""
    padded = np.pad(mask.astype(np.int8), ((0, 0), (1, 1)))
    steps = np.diff(padded, axis=1)
    rows, starts = np.nonzero(steps == 1)
    _, ends = np.nonzero(steps == -1)
    return rows, starts, ends


def mask_outline(mask: NDArray[np.bool_]) -> Polygon | MultiPolygon:
    """Union of the mask's pixel squares, assembled from one box per row run."""
    rows, starts, ends = row_runs(mask)
    boxes = shapely.box(starts - 0.5, rows - 0.5, ends - 0.5, rows + 0.5)
    return shapely.union_all(boxes)


def _drop_collinear(points: NDArray[np.float64]) -> NDArray[np.float64]:
    prev = np.roll(points, 1, axis=0)
    nxt = np.roll(points, -1, axis=0)
    same_x = (prev[:, 0] == points[:, 0]) & (nxt[:, 0] == points[:, 0])
    same_y = (prev[:, 1] == points[:, 1]) & (nxt[:, 1] == points[:, 1])
    return points[~(same_x | same_y)]


def trace_outer_boundary(mask: NDArray[np.bool_]) -> NDArray[np.float64]:
    """Trace the outer boundary of a binary mask along its pixel edges.

    Returns an Nx2 array of (x, y) vertices in mask-local pixel coordinates,
    closing edge implied. Every edge is axis-aligned. Holes are not traced.
    A mask whose pixels are not 4-connected yields the outline of its largest
    piece. An empty mask gives an empty array.
    """
    if mask.size == 0 or not mask.any():
        return np.empty((0, 2))

    outline = mask_outline(mask)
    if isinstance(outline, MultiPolygon):
        logger.debug("Mask has %d separate pieces, tracing the largest", len(outline.geoms))
        outline = max(outline.geoms, key=lambda g: g.area)

    ring = np.asarray(outline.exterior.coords, dtype=np.float64)[:-1]
    return np.ascontiguousarray(_drop_collinear(ring))
