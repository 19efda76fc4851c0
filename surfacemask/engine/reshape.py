"""Region reshaping — rebuild bounds and mask from an edited or remapped contour.

Both operations are pure: they return a new, fully populated Region and leave
the input untouched, so a region list being iterated is never half-updated.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Iterable

import numpy as np

from surfacemask.engine.context import Bounds, Region
from surfacemask.engine.errors import InvalidInputError
from surfacemask.utils.rasterizer import pixel_bounds, rasterize_polygon

logger = logging.getLogger(__name__)

PointFn = Callable[[tuple[float, float]], tuple[float, float]]


def rebuild_region_mask(region: Region) -> Region:
    """New Region whose bounds and mask are recomputed from region.contour alone.

    Bounds are the inclusive integer box of pixel centers the contour can
    cover; the mask marks pixels whose centers lie inside or on the contour.
    """
    contour = np.asarray(region.contour, dtype=np.float64)
    if len(contour) == 0:
        logger.debug("Region %d: empty contour, shape left unchanged", region.index)
        return dataclasses.replace(region, adjacent_indices=set(region.adjacent_indices))

    x0, y0, x1, y1 = pixel_bounds(contour)
    bounds = Bounds(x=x0, y=y0, width=x1 - x0 + 1, height=y1 - y0 + 1)
    mask = rasterize_polygon(contour, x0, y0, bounds.width, bounds.height)
    return dataclasses.replace(
        region,
        bounds=bounds,
        mask=mask,
        contour=contour.copy(),
        pixel_count=int(mask.sum()),
        adjacent_indices=set(region.adjacent_indices),
    )


def transform_region(region: Region, point_fn: PointFn, source_space: bool = True) -> Region:
    """Remap every contour vertex through point_fn and rebuild the mask.

    With source_space=True, point_fn works in source-image coordinates (as a
    perspective correction chosen on the full photo does); vertices are
    mapped out of and back into processing coordinates around the call.
    """
    contour = np.asarray(region.contour, dtype=np.float64)
    if source_space:
        contour = region.to_source(contour)

    mapped = np.array([point_fn((float(x), float(y))) for x, y in contour], dtype=np.float64)
    mapped = mapped.reshape(-1, 2)
    if source_space:
        mapped = region.to_processing(mapped)

    if not np.all(np.isfinite(mapped)):
        raise InvalidInputError(f"Transform produced non-finite vertices for region {region.index}")

    return rebuild_region_mask(dataclasses.replace(region, contour=mapped))


def transform_regions(regions: Iterable[Region], point_fn: PointFn, source_space: bool = True) -> list[Region]:
    """Transformed copy of a region list; the input list is not modified."""
    return [transform_region(r, point_fn, source_space) for r in regions]
