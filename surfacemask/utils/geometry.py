"""Leaf-node polygon helpers. No engine imports.

Polygons are Nx2 arrays of (x, y) vertices with the closing edge implied
(the first vertex is not repeated at the end).
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray


def signed_area(points: NDArray[np.float64]) -> float:
    """Shoelace formula for signed area. Positive = CCW in y-up axes."""
    if len(points) < 3:
        return 0.0
    x = points[:, 0]
    y = points[:, 1]
    return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def edge_lengths(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Length of every edge, including the closing edge from last to first."""
    if len(points) < 2:
        return np.zeros(0)
    diffs = np.roll(points, -1, axis=0) - points
    return np.sqrt(np.sum(diffs**2, axis=1))


def densify_contour(points: NDArray[np.float64], max_segment_length: float) -> NDArray[np.float64]:
    """Insert evenly spaced vertices so that no edge exceeds max_segment_length.

    The closing edge is densified too. Contours with fewer than two vertices
    are returned unchanged. Edges already short enough keep their vertices,
    so densifying a dense contour is a no-op.
    """
    if not math.isfinite(max_segment_length) or max_segment_length <= 0:
        raise ValueError(f"max_segment_length must be a positive number, got {max_segment_length}")

    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 2:
        return pts.copy()

    lengths = edge_lengths(pts)
    counts = np.maximum(1, np.ceil(lengths / max_segment_length).astype(np.int64))
    if np.all(counts == 1):
        return pts.copy()

    nxt = np.roll(pts, -1, axis=0)
    pieces = []
    for p, q, k in zip(pts, nxt, counts):
        t = np.arange(k, dtype=np.float64)[:, None] / k
        pieces.append(p + t * (q - p))
    return np.vstack(pieces)
