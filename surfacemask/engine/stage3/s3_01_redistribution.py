"""S3.01 — Redistribution.

Regions smaller than min_area are dissolved. Each of their pixels moves to
the region owning the nearest pixel (Euclidean) among regions at or above
min_area, searched out to max_search_radius. Pixels with nothing in reach
fall back to the lowest qualifying label; if no label qualifies the image
collapses into its lowest label. No pixel is ever left unowned.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import distance_transform_edt

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)


def min_area_for(width: int, height: int, fraction: float) -> int:
    """Minimum region size in pixels for an image, at least one pixel."""
    return max(1, int(math.ceil(fraction * width * height)))


def redistribute_small_regions(
    labels: NDArray[np.int32],
    min_area: int,
    max_search_radius: float,
) -> tuple[NDArray[np.int32], dict[str, int]]:
    """Return relabeled copy where every surviving label owns ≥ min_area pixels."""
    out = np.array(labels, dtype=np.int32, copy=True)
    counts = np.bincount(out.ravel())
    present = counts > 0
    large = counts >= min_area
    large[0] = False
    small = present & ~large
    small[0] = False
    stats = {"dissolved": int(small.sum()), "moved": 0, "fallback": 0}

    if not small.any():
        return out, stats

    large_ids = np.nonzero(large)[0]
    if len(large_ids) == 0:
        # Nothing qualifies: the whole image becomes one region
        fill = int(np.nonzero(present)[0][0])
        stats["fallback"] = int(out.size)
        out[:] = fill
        return out, stats

    owned_by_large = large[out]
    pending = ~owned_by_large

    # Distance to, and coordinates of, the nearest pixel owned by a large region
    dist, (near_y, near_x) = distance_transform_edt(pending, return_indices=True)
    reachable = pending & (dist <= max_search_radius)
    out[reachable] = out[near_y[reachable], near_x[reachable]]
    stats["moved"] = int(reachable.sum())

    unreachable = pending & ~reachable
    if unreachable.any():
        out[unreachable] = int(large_ids[0])
        stats["fallback"] = int(unreachable.sum())

    return out, stats


@stage(id="S3.01", layer=Layer.REGIONS, dependencies=["S2.01"])
def redistribute(ctx: SegmentationContext) -> None:
    working = ctx.working
    ctx.min_area = min_area_for(working.width, working.height, ctx.config.min_area_fraction)
    ctx.label_map, stats = redistribute_small_regions(
        ctx.label_map, ctx.min_area, ctx.config.max_search_radius,
    )
    ctx.stats["redistribution"] = stats
    if stats["fallback"]:
        logger.info(
            "Redistribution fallback: %d pixels beyond %dpx search radius",
            stats["fallback"], ctx.config.max_search_radius,
        )
    logger.debug(
        "Redistribution: %d regions below %d px dissolved, %d pixels moved",
        stats["dissolved"], ctx.min_area, stats["moved"],
    )
