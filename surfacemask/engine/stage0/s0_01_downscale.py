"""S0.01 — Downscale.

Large photographs are segmented on a reduced copy whose longest side is
max_dimension. The ratio is kept as scale_factor on the context and on every
region so that geometry can be mapped back to source coordinates.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray
from skimage.transform import resize

from surfacemask.engine.context import RasterBuffer, SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

# Absorbs float error in side * scale when the product is a whole number
_SIZE_EPS = 1e-9


def compute_scale_factor(width: int, height: int, max_dimension: int) -> float:
    long_side = max(width, height)
    if long_side <= max_dimension:
        return 1.0
    return max_dimension / long_side


def working_size(width: int, height: int, scale_factor: float) -> tuple[int, int]:
    """Processing (width, height) for a source size.

    Sides are rounded up so the working raster spans the whole source once
    mapped back; the longest side still lands on max_dimension exactly.
    """
    if scale_factor == 1.0:
        return width, height
    return (
        max(1, math.ceil(width * scale_factor - _SIZE_EPS)),
        max(1, math.ceil(height * scale_factor - _SIZE_EPS)),
    )


def downscale(pixels: NDArray[np.uint8], scale_factor: float) -> NDArray[np.uint8]:
    """Anti-aliased resize of an 8-bit image by scale_factor."""
    h, w = pixels.shape[:2]
    new_w, new_h = working_size(w, h, scale_factor)
    out = resize(
        pixels,
        (new_h, new_w) + pixels.shape[2:],
        order=1,
        anti_aliasing=True,
        preserve_range=True,
    )
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


@stage(id="S0.01", layer=Layer.PREPARATION)
def prepare_working_image(ctx: SegmentationContext) -> None:
    src = ctx.source
    scale = compute_scale_factor(src.width, src.height, ctx.config.max_dimension)
    ctx.scale_factor = scale

    if scale == 1.0:
        ctx.working = src
        return

    ctx.working = RasterBuffer(downscale(src.pixels, scale))
    logger.info(
        "Downscaled %dx%d by %.3f to %dx%d",
        src.width, src.height, scale, ctx.working.width, ctx.working.height,
    )
