"""S0.02 — Edge Map.

Gradient magnitude of the blurred grayscale image, min-max normalized to
0-255. Watershed floods low values first, so region boundaries settle on
strong edges. Callers may pass their own edge map instead.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from skimage.color import rgb2gray
from skimage.filters import gaussian, sobel
from skimage.transform import resize

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.errors import InvalidInputError
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

_EDGE_RANGE = 255.0


def compute_edge_map(rgb: NDArray[np.uint8], blur_sigma: float = 1.0) -> NDArray[np.float64]:
    """Sobel magnitude of the Gaussian-blurred grayscale image, scaled to [0, 255]."""
    gray = rgb2gray(rgb[:, :, :3])
    if blur_sigma > 0:
        gray = gaussian(gray, sigma=blur_sigma, preserve_range=True)
    grad = sobel(gray)

    lo, hi = float(grad.min()), float(grad.max())
    if hi - lo < np.finfo(float).eps:
        # Flat image: no edges anywhere
        return np.zeros(grad.shape, dtype=np.float64)
    return (grad - lo) / (hi - lo) * _EDGE_RANGE


def _fit_supplied_edge_map(ctx: SegmentationContext) -> NDArray[np.float64]:
    edge = np.asarray(ctx.edge_map, dtype=np.float64)
    working = ctx.working
    if edge.ndim != 2:
        raise InvalidInputError(f"Edge map must be single-channel, got shape {edge.shape}")
    if edge.shape == (working.height, working.width):
        return edge
    if ctx.scale_factor != 1.0 and edge.shape == (ctx.source.height, ctx.source.width):
        return resize(edge, (working.height, working.width), order=1, preserve_range=True)
    raise InvalidInputError(
        f"Edge map shape {edge.shape} does not match image {working.height}x{working.width}"
    )


@stage(id="S0.02", layer=Layer.PREPARATION, dependencies=["S0.01"])
def prepare_edge_map(ctx: SegmentationContext) -> None:
    if ctx.edge_map_supplied:
        ctx.edge_map = _fit_supplied_edge_map(ctx)
        return
    ctx.edge_map = compute_edge_map(ctx.working.rgb, ctx.config.blur_sigma)
