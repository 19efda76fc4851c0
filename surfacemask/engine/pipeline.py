"""Pipeline orchestrator — runs stages in dependency order with adaptive gating."""

from __future__ import annotations

import importlib
import logging
import pkgutil
import time

import numpy as np
from numpy.typing import ArrayLike
from pydantic import ValidationError

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.context import RasterBuffer, Region, SegmentationContext
from surfacemask.engine.errors import InvalidInputError, SegmentationError
from surfacemask.engine.registry import StageRegistry, get_registry
from surfacemask.engine.stage0.s0_01_downscale import compute_scale_factor, working_size

logger = logging.getLogger(__name__)

_STAGE_PACKAGES = ["stage0", "stage1", "stage2", "stage3", "stage4"]


def register_stages() -> None:
    """Import all stage modules so @stage decorators fire. Safe to call repeatedly."""
    for package_name in _STAGE_PACKAGES:
        qualified = f"surfacemask.engine.{package_name}"
        package = importlib.import_module(qualified)
        for _, module_name, _ in pkgutil.iter_modules(package.__path__):
            importlib.import_module(f"{qualified}.{module_name}")


class Pipeline:
    """Orchestrates the segmentation pipeline.

    Any stage failure aborts the run: partial regions are discarded and the
    error is re-raised as SegmentationError naming the stage. Input errors
    pass through unchanged.
    """

    def __init__(
        self,
        registry: StageRegistry | None = None,
        config: SegmentationConfig | None = None,
    ) -> None:
        if registry is None:
            register_stages()
        self.registry = registry or get_registry()
        self.config = config

    def run(self, ctx: SegmentationContext) -> SegmentationContext:
        """Run the full pipeline on the given context."""
        start = time.perf_counter()
        if self.config is not None:
            ctx.config = self.config

        skip_ids = self._adaptive_gate(ctx)
        requested = {s.id for s in self.registry.all()} - skip_ids
        ordered = self.registry.resolve_order(requested)

        logger.info(
            "Pipeline: %d stages queued (%d skipped) for %dx%d image",
            len(ordered),
            len(skip_ids),
            ctx.source.width,
            ctx.source.height,
        )

        for spec in ordered:
            t0 = time.perf_counter()
            try:
                spec.fn(ctx)
            except InvalidInputError as e:
                ctx.regions = []
                logger.warning("  %s rejected input: %s", spec.id, e)
                raise
            except Exception as e:
                ctx.regions = []
                logger.warning("  %s FAILED: %s", spec.id, e)
                raise SegmentationError(spec.id, str(e)) from e
            elapsed = (time.perf_counter() - t0) * 1000
            ctx.completed_stages.append(spec.id)
            ctx.timings_ms[spec.id] = elapsed
            logger.debug("  %s completed in %.1fms", spec.id, elapsed)

        total = (time.perf_counter() - start) * 1000
        logger.info(
            "Pipeline complete: %d regions from %d/%d stages in %.0fms",
            ctx.num_regions,
            len(ctx.completed_stages),
            len(ordered),
            total,
        )
        return ctx

    def _adaptive_gate(self, ctx: SegmentationContext) -> set[str]:
        """Stages to skip for this run.

        Color merge is a no-op at strength 0, so it is not scheduled at all.
        """
        skip: set[str] = set()
        if ctx.merge_strength <= 0:
            skip.add("S3.02")
        return skip


def create_pipeline(config: SegmentationConfig | None = None) -> Pipeline:
    """Factory function for creating a pipeline instance."""
    return Pipeline(config=config)


def _validate_edge_map(edge_map: ArrayLike, source: RasterBuffer, max_dimension: int) -> np.ndarray:
    try:
        edge = np.asarray(edge_map, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Edge map is not numeric: {e}") from e

    scale = compute_scale_factor(source.width, source.height, max_dimension)
    working_w, working_h = working_size(source.width, source.height, scale)
    allowed = {(source.height, source.width), (working_h, working_w)}
    if edge.ndim != 2 or edge.shape not in allowed:
        raise InvalidInputError(
            f"Edge map shape {edge.shape} does not match image {source.height}x{source.width}"
        )
    return edge


def segment_image(
    image: ArrayLike | RasterBuffer,
    detail: float = 10,
    merge_strength: float = 0,
    edge_map: ArrayLike | None = None,
    config: SegmentationConfig | None = None,
) -> list[Region]:
    """Segment an RGB(A) image into complete, non-overlapping regions.

    Parameters are validated before any work starts. The returned regions
    carry processing-resolution geometry and the scale_factor that maps it
    back to the source image.
    """
    # Deferred: models.params reuses engine limits, which imports this package
    from surfacemask.models.params import SegmentParams

    config = config or SegmentationConfig()
    try:
        params = SegmentParams(
            detail=detail,
            merge_strength=merge_strength,
            min_area_fraction=config.min_area_fraction,
        )
    except ValidationError as e:
        raise InvalidInputError(f"Invalid segmentation parameters: {e}") from e

    if image is None:
        raise InvalidInputError("No image data")
    source = image if isinstance(image, RasterBuffer) else RasterBuffer(np.asarray(image))

    edge = None
    if edge_map is not None:
        edge = _validate_edge_map(edge_map, source, config.max_dimension)

    ctx = SegmentationContext(
        source=source,
        config=config,
        detail=params.detail,
        merge_strength=params.merge_strength,
        edge_map=edge,
        edge_map_supplied=edge is not None,
    )
    create_pipeline(config).run(ctx)
    return ctx.regions
