"""S3.02 — Color Merge.

Adjacent regions whose average colors are closer than a threshold derived
from merge_strength are joined. This is a threshold cut of the region
adjacency graph: every connected component of below-threshold edges becomes
one region, named after its lowest label, so the result does not depend on
the order pairs are found in. Strength 0 disables the stage.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.registry import Layer, stage
from surfacemask.engine.stage3.s3_04_region_builder import adjacency_pairs, region_statistics
from surfacemask.utils.color import merge_threshold, pairwise_color_distances

logger = logging.getLogger(__name__)


def merge_similar_regions(
    labels: NDArray[np.int32],
    rgb: NDArray[np.uint8],
    merge_strength: float,
    ceiling: float,
) -> tuple[NDArray[np.int32], dict[str, float]]:
    """Join adjacent labels with avg-color distance below the strength threshold."""
    threshold = merge_threshold(merge_strength, ceiling)
    stats: dict[str, float] = {"threshold": threshold, "unions": 0}
    if threshold <= 0:
        return labels, stats

    region_stats = region_statistics(labels, rgb)
    pairs = adjacency_pairs(labels)
    dists = pairwise_color_distances(region_stats.avg_colors, pairs)
    close = pairs[dists < threshold]
    if len(close) == 0:
        return labels, stats

    n = len(region_stats.counts)
    graph = coo_matrix((np.ones(len(close)), (close[:, 0], close[:, 1])), shape=(n, n))
    n_components, component = connected_components(graph, directed=False)
    stats["unions"] = n - n_components

    lowest = np.full(n_components, n, dtype=np.int64)
    np.minimum.at(lowest, component, np.arange(n))
    return lowest[component][labels].astype(np.int32), stats


@stage(id="S3.02", layer=Layer.REGIONS, dependencies=["S3.01"])
def merge_colors(ctx: SegmentationContext) -> None:
    ctx.label_map, stats = merge_similar_regions(
        ctx.label_map, ctx.working.rgb, ctx.merge_strength, ctx.config.merge_distance_ceiling,
    )
    ctx.stats["color_merge"] = stats
    logger.debug(
        "Color merge: threshold %.1f, %d unions", stats["threshold"], stats["unions"],
    )
