"""Selection engine — hit testing, similarity flood selection, and mask synthesis.

All x/y/radius arguments are in source-image coordinates. Each region's
scale_factor maps them into the processing resolution its bounds and mask
live in. Apart from the `selected` flag these functions never modify regions.
"""

from __future__ import annotations

import logging
import math
from collections import deque

import numpy as np
from numpy.typing import NDArray

from surfacemask.engine.context import Region
from surfacemask.engine.errors import InvalidInputError
from surfacemask.utils.color import color_distance
from surfacemask.utils.rasterizer import fill_polygon

logger = logging.getLogger(__name__)

MASK_ON = 255


def _finite(*values: float) -> bool:
    return all(isinstance(v, (int, float, np.integer, np.floating)) and math.isfinite(v) for v in values)


def find_region_at_point(x: float, y: float, regions: list[Region]) -> int:
    """Index of the region owning (x, y), checking later regions first; -1 if none."""
    if not regions or not _finite(x, y):
        return -1
    for i in range(len(regions) - 1, -1, -1):
        region = regions[i]
        scale = region.scale_factor or 1.0
        px = math.floor(x * scale)
        py = math.floor(y * scale)
        # owns() rejects on bounds before touching the mask
        if region.owns(px, py):
            return i
    return -1


def _circle_hits_mask(region: Region, cx: float, cy: float, radius: float) -> bool:
    """True if any owned pixel has its center inside the circle, or contains its center."""
    b = region.bounds

    # Closest point of the bounding box [x, x1) × [y, y1) to the circle center
    nearest_x = min(max(cx, b.x), b.x1)
    nearest_y = min(max(cy, b.y), b.y1)
    if (cx - nearest_x) ** 2 + (cy - nearest_y) ** 2 > radius * radius:
        return False

    px0 = max(b.x, math.floor(cx - radius))
    px1 = min(b.x1 - 1, math.floor(cx + radius))
    py0 = max(b.y, math.floor(cy - radius))
    py1 = min(b.y1 - 1, math.floor(cy + radius))
    if px1 < px0 or py1 < py0:
        return False

    ys, xs = np.ogrid[py0 : py1 + 1, px0 : px1 + 1]
    inside = (xs + 0.5 - cx) ** 2 + (ys + 0.5 - cy) ** 2 <= radius * radius
    inside = inside | ((xs == math.floor(cx)) & (ys == math.floor(cy)))
    window = region.mask[py0 - b.y : py1 - b.y + 1, px0 - b.x : px1 - b.x + 1]
    return bool(np.any(window & inside))


def find_regions_in_radius(x: float, y: float, radius: float, regions: list[Region]) -> list[int]:
    """Indices of all regions owning at least one pixel within radius of (x, y)."""
    if not regions or not _finite(x, y, radius):
        return []
    if radius <= 0:
        hit = find_region_at_point(x, y, regions)
        return [hit] if hit >= 0 else []

    found: list[int] = []
    for i, region in enumerate(regions):
        scale = region.scale_factor or 1.0
        if _circle_hits_mask(region, x * scale, y * scale, radius * scale):
            found.append(i)
    return found


def select_similar_regions(seed_index: int, regions: list[Region], threshold: float) -> list[int]:
    """Flood-select regions connected to the seed and close to the seed's color.

    Breadth-first over the adjacency graph. A region is accepted, marked
    selected and expanded only if its average color is within threshold of
    the seed's color. Comparing against the seed (never the discovering
    neighbour) stops selection drifting along gradual color ramps.
    """
    if not regions or not isinstance(seed_index, (int, np.integer)):
        return []
    if not 0 <= seed_index < len(regions):
        return []
    if not _finite(threshold):
        raise InvalidInputError(f"Similarity threshold must be finite, got {threshold}")

    position = {r.index: i for i, r in enumerate(regions)}
    seed = regions[seed_index]
    seed.selected = True
    if seed.avg_color is None:
        return [int(seed_index)]

    accepted = [int(seed_index)]
    visited = {int(seed_index)}
    queue = deque([int(seed_index)])

    while queue:
        current = regions[queue.popleft()]
        for neighbour_index in sorted(current.adjacent_indices):
            pos = position.get(neighbour_index)
            if pos is None or pos in visited:
                continue
            visited.add(pos)
            candidate = regions[pos]
            if candidate.avg_color is None:
                continue
            if color_distance(candidate.avg_color, seed.avg_color) <= threshold:
                candidate.selected = True
                accepted.append(pos)
                queue.append(pos)

    logger.debug("Similarity selection from %d: %d regions within %.1f", seed_index, len(accepted), threshold)
    return accepted


def toggle_region_at_point(x: float, y: float, regions: list[Region]) -> int:
    """Flip the selection of the region under (x, y); returns its index or -1."""
    hit = find_region_at_point(x, y, regions)
    if hit >= 0:
        regions[hit].selected = not regions[hit].selected
    return hit


def paint_regions_in_radius(x: float, y: float, radius: float, regions: list[Region]) -> list[int]:
    """Brush stroke: select every region under the brush; returns the newly selected ones."""
    newly: list[int] = []
    for i in find_regions_in_radius(x, y, radius, regions):
        if not regions[i].selected:
            regions[i].selected = True
            newly.append(i)
    return newly


def clear_selection(regions: list[Region]) -> int:
    cleared = 0
    for region in regions:
        if region.selected:
            region.selected = False
            cleared += 1
    return cleared


def selected_indices(regions: list[Region]) -> list[int]:
    return [i for i, r in enumerate(regions) if r.selected]


def create_mask(regions: list[Region], width: int, height: int) -> NDArray[np.uint8]:
    """Binary mask at source size: 255 inside selected regions' contours, 0 elsewhere.

    Each selected contour is scaled back by 1/scale_factor (Region.to_source)
    and filled on its own; fills only ever add, so overlapping outlines cannot
    cancel out. Neighbouring outlines share their pixel edges, so selecting
    every region covers the whole canvas.
    """
    canvas = np.zeros((max(int(height), 0), max(int(width), 0)), dtype=np.uint8)
    if canvas.size == 0 or not regions:
        return canvas

    n_filled = 0
    for region in regions:
        if not region.selected or len(region.contour) == 0:
            continue
        fill_polygon(canvas, region.source_contour(), MASK_ON)
        n_filled += 1

    logger.debug("Mask: %d regions filled on %dx%d canvas", n_filled, width, height)
    return canvas
