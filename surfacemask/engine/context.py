"""SegmentationContext — the single value object flowing through all stages.

Per-region results → Region
Whole-image buffers → RasterBuffer / SegmentationContext.*
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.errors import InvalidInputError


@dataclass
class RasterBuffer:
    """Pixel samples (H×W×3 or H×W×4 uint8) plus a same-size int32 label map."""

    pixels: NDArray[np.uint8]
    label_map: NDArray[np.int32] | None = None

    def __post_init__(self) -> None:
        if self.pixels is None:
            raise InvalidInputError("No image data")
        pixels = np.asarray(self.pixels)
        if pixels.ndim == 2:
            pixels = np.repeat(pixels[:, :, None], 3, axis=2)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidInputError(f"Expected an H×W×3 or H×W×4 image, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidInputError("Image has zero size")
        if pixels.dtype != np.uint8:
            if not np.all(np.isfinite(pixels)):
                raise InvalidInputError("Image contains non-finite samples")
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        self.pixels = pixels

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> NDArray[np.uint8]:
        return self.pixels[:, :, :3]


@dataclass(frozen=True)
class Bounds:
    """Integer rectangle; (x, y) is the top-left pixel, sizes are inclusive counts."""

    x: int
    y: int
    width: int
    height: int

    @property
    def x1(self) -> int:
        return self.x + self.width

    @property
    def y1(self) -> int:
        return self.y + self.height

    def contains(self, px: int, py: int) -> bool:
        return self.x <= px < self.x1 and self.y <= py < self.y1

    def as_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class Region:
    """One selectable region of the segmented image."""

    index: int
    bounds: Bounds
    # Bool raster shaped (bounds.height, bounds.width); True = owned pixel
    mask: NDArray[np.bool_]
    # Closed polygon as Nx2 (x, y) in processing coordinates; closing edge implied
    contour: NDArray[np.float64] = field(default_factory=lambda: np.empty((0, 2)))
    # Processing resolution / source resolution
    scale_factor: float = 1.0
    avg_color: tuple[float, float, float] | None = None
    adjacent_indices: set[int] = field(default_factory=set)
    pixel_count: int = 0
    selected: bool = False

    def owns(self, px: int, py: int) -> bool:
        """Exact mask lookup at a processing-resolution pixel."""
        if not self.bounds.contains(px, py):
            return False
        return bool(self.mask[py - self.bounds.y, px - self.bounds.x])

    def to_source(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Processing pixel coordinates to source pixel coordinates.

        Pixel centers sit on integers in both spaces, so the mapping scales
        about the image corner at (-0.5, -0.5) rather than about pixel 0.
        """
        scale = self.scale_factor or 1.0
        return (np.asarray(points, dtype=np.float64) + 0.5) / scale - 0.5

    def to_processing(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        scale = self.scale_factor or 1.0
        return (np.asarray(points, dtype=np.float64) + 0.5) * scale - 0.5

    def source_contour(self) -> NDArray[np.float64]:
        """Contour mapped back to source-image coordinates."""
        return self.to_source(self.contour)


@dataclass
class SegmentationContext:
    """Shared state flowing through the entire segmentation pipeline."""

    # Source image as supplied by the caller
    source: RasterBuffer
    # Working image at processing resolution (same object when not downscaled)
    working: RasterBuffer | None = None
    scale_factor: float = 1.0
    config: SegmentationConfig = field(default_factory=SegmentationConfig)

    # Parameters
    detail: int = 10
    merge_strength: float = 0.0

    # Single-channel edge/gradient map at processing resolution
    edge_map: NDArray[np.float64] | None = None
    edge_map_supplied: bool = False

    # Marker grid (stage 1)
    markers: Any = None
    min_area: int = 0

    # Output
    regions: list[Region] = field(default_factory=list)

    # --- Pipeline metadata ---
    completed_stages: list[str] = field(default_factory=list)
    timings_ms: dict[str, float] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def label_map(self) -> NDArray[np.int32] | None:
        return self.working.label_map if self.working is not None else None

    @label_map.setter
    def label_map(self, value: NDArray[np.int32] | None) -> None:
        if self.working is None:
            raise InvalidInputError("Working image not prepared")
        self.working.label_map = value

    @property
    def num_regions(self) -> int:
        return len(self.regions)
