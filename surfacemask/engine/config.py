"""Segmentation configuration — algorithm constants for every stage."""

from __future__ import annotations

from dataclasses import dataclass

from surfacemask.config import Settings, settings


@dataclass
class SegmentationConfig:
    """Controls marker density, region sizing and contour resolution."""

    # Processing resolution: longest side after downscaling
    max_dimension: int = 2000

    # Marker grid
    detail_min: int = 1
    detail_max: int = 20
    region_size_divisor: int = 20  # maxRegionSize = min(W, H) / divisor
    base_spacing_ratio: float = 0.7
    spacing_multiplier_max: float = 1.3  # at detail_min
    spacing_multiplier_span: float = 0.7  # drop from detail_min to detail_max
    min_spacing: int = 10  # px
    marker_budget: int = 5000

    # Edge map
    blur_sigma: float = 1.0

    # Watershed: 0 = classic flooding, >0 = compact watershed
    compactness: float = 0.0

    # Redistribution
    min_area_fraction: float = 0.001  # 0.1% of image area
    max_search_radius: int = 64  # px

    # Color merge: merge_strength 100 → this RGB distance
    merge_distance_ceiling: float = 64.0

    # Contours
    max_segment_length: float = 8.0  # px

    # Keep the label map on the context after regions are built
    keep_label_map: bool = False

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> SegmentationConfig:
        source = source or settings
        return cls(max_dimension=source.max_dimension, marker_budget=source.marker_budget)
