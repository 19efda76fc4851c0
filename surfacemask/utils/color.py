"""Color helpers — RGB distance and merge thresholds. No engine imports."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

STRENGTH_MAX = 100.0


def color_distance(a, b) -> float:
    """Euclidean distance between two RGB triples."""
    da = np.asarray(a, dtype=np.float64)[:3]
    db = np.asarray(b, dtype=np.float64)[:3]
    return float(np.sqrt(np.sum((da - db) ** 2)))


def pairwise_color_distances(
    colors: NDArray[np.float64],
    pairs: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Distance for each (i, j) row of pairs, indexing into an Nx3 color table."""
    if len(pairs) == 0:
        return np.zeros(0)
    diff = colors[pairs[:, 0]] - colors[pairs[:, 1]]
    return np.sqrt(np.sum(diff**2, axis=1))


def clamp_strength(merge_strength: float) -> float:
    return min(max(float(merge_strength), 0.0), STRENGTH_MAX)


def merge_threshold(merge_strength: float, ceiling: float) -> float:
    """Map merge strength 0-100 onto an RGB distance; monotonic, 0 disables merging."""
    return clamp_strength(merge_strength) / STRENGTH_MAX * ceiling
