"""Shared test fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from surfacemask.engine.context import Bounds, Region

# Synthetic photos

RED = (200, 40, 40)
BLUE = (40, 40, 200)
GREEN = (40, 180, 60)
YELLOW = (230, 210, 50)


def two_tone_image(height: int = 120, width: int = 160) -> np.ndarray:
    """Left half RED, right half BLUE."""
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, : width // 2] = RED
    img[:, width // 2 :] = BLUE
    return img


def quadrant_image(size: int = 100) -> np.ndarray:
    img = np.zeros((size, size, 3), dtype=np.uint8)
    h = size // 2
    img[:h, :h] = RED
    img[:h, h:] = BLUE
    img[h:, :h] = GREEN
    img[h:, h:] = YELLOW
    return img


def noisy_image(height: int = 64, width: int = 96, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def make_region(
    index: int,
    x: int,
    y: int,
    mask: np.ndarray,
    color: tuple[float, float, float] | None = None,
    adjacent: tuple[int, ...] = (),
    scale_factor: float = 1.0,
    contour: np.ndarray | None = None,
) -> Region:
    """Region with a hand-made mask placed at (x, y)."""
    mask = np.asarray(mask, dtype=bool)
    return Region(
        index=index,
        bounds=Bounds(x=x, y=y, width=mask.shape[1], height=mask.shape[0]),
        mask=mask,
        contour=np.empty((0, 2)) if contour is None else np.asarray(contour, dtype=np.float64),
        scale_factor=scale_factor,
        avg_color=color,
        adjacent_indices=set(adjacent),
        pixel_count=int(mask.sum()),
    )


def coverage_counts(regions: list[Region], height: int, width: int) -> np.ndarray:
    """How many regions own each processing-resolution pixel."""
    counts = np.zeros((height, width), dtype=np.int32)
    for r in regions:
        b = r.bounds
        counts[b.y : b.y1, b.x : b.x1] += r.mask
    return counts


@pytest.fixture
def two_tone() -> np.ndarray:
    return two_tone_image()


@pytest.fixture
def quadrants() -> np.ndarray:
    return quadrant_image()


@pytest.fixture
def noisy() -> np.ndarray:
    return noisy_image()


@pytest.fixture
def side_by_side() -> list[Region]:
    """Two 5x10 regions sharing the edge at x=5."""
    full = np.ones((10, 5), dtype=bool)
    return [
        make_region(0, 0, 0, full, color=RED, adjacent=(1,)),
        make_region(1, 5, 0, full, color=BLUE, adjacent=(0,)),
    ]
