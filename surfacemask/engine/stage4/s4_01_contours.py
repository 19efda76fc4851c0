"""S4.01 — Contour Extraction.

Each region's mask is traced into an ordered closed polygon and densified
so that no edge exceeds max_segment_length. Dense vertices keep neighbouring
outlines from opening sub-pixel gaps after contours are rescaled by
scale_factor or remapped through a perspective transform.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from surfacemask.engine.context import Region, SegmentationContext
from surfacemask.engine.registry import Layer, stage
from surfacemask.utils.geometry import densify_contour
from surfacemask.utils.morphology import trace_outer_boundary

logger = logging.getLogger(__name__)

__all__ = ["densify_contour", "trace_region_contour", "extract_contours"]


def trace_region_contour(region: Region) -> NDArray[np.float64]:
    """Outline of the region's mask in processing-image coordinates."""
    local = trace_outer_boundary(region.mask)
    if len(local) == 0:
        return local
    return local + np.array([region.bounds.x, region.bounds.y], dtype=np.float64)


def extract_contours(regions: list[Region], max_segment_length: float) -> int:
    """Populate every region's contour in place; return the total vertex count."""
    total = 0
    for region in regions:
        contour = trace_region_contour(region)
        if len(contour) < 3:
            logger.debug("Region %d: degenerate contour (%d vertices)", region.index, len(contour))
        region.contour = densify_contour(contour, max_segment_length)
        total += len(region.contour)
    return total


@stage(id="S4.01", layer=Layer.GEOMETRY, dependencies=["S3.04"])
def trace_contours(ctx: SegmentationContext) -> None:
    total = extract_contours(ctx.regions, ctx.config.max_segment_length)
    logger.debug("Contours: %d vertices across %d regions", total, len(ctx.regions))
