"""SurfaceMask segmentation engine."""

from surfacemask.engine.registry import stage, Layer, get_registry
from surfacemask.engine.context import Bounds, RasterBuffer, Region, SegmentationContext
from surfacemask.engine.errors import InvalidInputError, SegmentationError
from surfacemask.engine.pipeline import Pipeline, create_pipeline, segment_image

__all__ = [
    "stage",
    "Layer",
    "get_registry",
    "Bounds",
    "RasterBuffer",
    "Region",
    "SegmentationContext",
    "InvalidInputError",
    "SegmentationError",
    "Pipeline",
    "create_pipeline",
    "segment_image",
]
