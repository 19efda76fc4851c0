"""S1.02 — Watershed Labeling.

Priority-flood watershed from the marker grid over the edge map. The output
label map has three pixel classes:

    ≥1   owned by the marker with that label
    -1   ridge: separating line where two floods meet
     0   unreached: pixel excluded from flooding (non-finite edge value)
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from skimage.segmentation import watershed

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

RIDGE = -1
UNREACHED = 0

# 8-connected flooding (full connectivity in 2D)
_CONNECTIVITY = 2


def flood_labels(
    edge_map: NDArray[np.float64],
    markers: NDArray[np.int32],
    compactness: float = 0.0,
) -> NDArray[np.int32]:
    """Flood markers over the edge map; return an int32 label map in {-1, 0, 1..N}."""
    edge = np.asarray(edge_map, dtype=np.float64)
    floodable = np.isfinite(edge)
    surface = np.where(floodable, edge, 0.0)

    flooded = watershed(
        surface,
        markers=markers,
        connectivity=_CONNECTIVITY,
        mask=floodable,
        compactness=compactness,
        watershed_line=True,
    )

    labels = flooded.astype(np.int32, copy=False)
    labels[(flooded == 0) & floodable] = RIDGE
    return labels


@stage(id="S1.02", layer=Layer.LABELING, dependencies=["S0.02", "S1.01"])
def label_watershed(ctx: SegmentationContext) -> None:
    working = ctx.working
    markers = ctx.markers.to_marker_image(working.height, working.width)
    ctx.label_map = flood_labels(ctx.edge_map, markers, ctx.config.compactness)

    labels = ctx.label_map
    ctx.stats["ridge_pixels"] = int(np.count_nonzero(labels == RIDGE))
    ctx.stats["unreached_pixels"] = int(np.count_nonzero(labels == UNREACHED))
    logger.debug(
        "Watershed: %d ridge, %d unreached pixels",
        ctx.stats["ridge_pixels"], ctx.stats["unreached_pixels"],
    )
