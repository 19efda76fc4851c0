"""S3.04 — Region Builder.

Single pass over a resolved label map: per-label pixel count, color sum and
bounding box, plus every pair of labels that meet across a horizontal,
vertical or diagonal pixel step. The statistics helpers are also used by the
merge stages on provisional labels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import find_objects

from surfacemask.engine.context import Bounds, Region, SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

# Forward half of the 8-neighbourhood; each unordered pixel pair is visited once.
_FORWARD_STEPS = [(0, 1), (1, 0), (1, 1), (1, -1)]


@dataclass
class RegionStats:
    """Per-label tables indexed by label value (index 0 unused once coverage is resolved)."""

    counts: NDArray[np.int64]
    color_sums: NDArray[np.float64]

    @property
    def avg_colors(self) -> NDArray[np.float64]:
        safe = np.maximum(self.counts, 1)[:, None]
        return self.color_sums / safe


def region_statistics(labels: NDArray[np.int32], rgb: NDArray[np.uint8]) -> RegionStats:
    flat = labels.ravel()
    size = int(flat.max()) + 1 if flat.size else 1
    counts = np.bincount(flat, minlength=size).astype(np.int64)
    sums = np.zeros((size, 3), dtype=np.float64)
    for ch in range(3):
        sums[:, ch] = np.bincount(flat, weights=rgb[:, :, ch].ravel().astype(np.float64), minlength=size)
    return RegionStats(counts=counts, color_sums=sums)


def adjacency_pairs(labels: NDArray[np.int32]) -> NDArray[np.int64]:
    """Unique (a, b) label pairs with a < b that touch across an 8-connected step."""
    h, w = labels.shape
    base = int(labels.max()) + 1 if labels.size else 1
    keys = []
    for dy, dx in _FORWARD_STEPS:
        if dx >= 0:
            a = labels[: h - dy, : w - dx]
            b = labels[dy:, dx:]
        else:
            a = labels[: h - dy, -dx:]
            b = labels[dy:, : w + dx]
        differs = a != b
        if not differs.any():
            continue
        lo = np.minimum(a[differs], b[differs]).astype(np.int64)
        hi = np.maximum(a[differs], b[differs]).astype(np.int64)
        keys.append(np.unique(lo * base + hi))

    if not keys:
        return np.empty((0, 2), dtype=np.int64)
    merged = np.unique(np.concatenate(keys))
    return np.column_stack([merged // base, merged % base])


def build_regions(
    labels: NDArray[np.int32],
    rgb: NDArray[np.uint8],
    scale_factor: float = 1.0,
) -> list[Region]:
    """Region records for every label, indexed 0..K-1 in ascending label order.

    Masks are copied out of the label map so the map can be released.
    Contours are left empty for the contour stage.
    """
    uniq, inverse = np.unique(labels, return_inverse=True)
    index_map = inverse.reshape(labels.shape).astype(np.int32)

    stats = region_statistics(index_map, rgb)
    avg = stats.avg_colors
    pairs = adjacency_pairs(index_map)

    neighbours: list[set[int]] = [set() for _ in range(len(uniq))]
    for a, b in pairs:
        neighbours[int(a)].add(int(b))
        neighbours[int(b)].add(int(a))

    # find_objects treats 0 as background, so shift indices up by one
    slices = find_objects(index_map + 1)

    regions: list[Region] = []
    for k, sl in enumerate(slices):
        if sl is None:
            continue
        rows, cols = sl
        bounds = Bounds(
            x=int(cols.start),
            y=int(rows.start),
            width=int(cols.stop - cols.start),
            height=int(rows.stop - rows.start),
        )
        regions.append(
            Region(
                index=k,
                bounds=bounds,
                mask=np.ascontiguousarray(index_map[sl] == k),
                scale_factor=scale_factor,
                avg_color=(float(avg[k, 0]), float(avg[k, 1]), float(avg[k, 2])),
                adjacent_indices=neighbours[k],
                pixel_count=int(stats.counts[k]),
            )
        )
    return regions


@stage(id="S3.04", layer=Layer.REGIONS, dependencies=["S3.03"])
def assemble_regions(ctx: SegmentationContext) -> None:
    ctx.regions = build_regions(ctx.label_map, ctx.working.rgb, ctx.scale_factor)
    n_edges = sum(len(r.adjacent_indices) for r in ctx.regions) // 2
    logger.info("Built %d regions, %d adjacency edges", len(ctx.regions), n_edges)
    if not ctx.config.keep_label_map:
        ctx.label_map = None
