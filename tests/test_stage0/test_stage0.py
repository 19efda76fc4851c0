"""Tests for stage 0 — downscale and edge map."""

from __future__ import annotations

import numpy as np
import pytest

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.context import RasterBuffer, SegmentationContext
from surfacemask.engine.errors import InvalidInputError
from surfacemask.engine.stage0.s0_01_downscale import (
    compute_scale_factor,
    downscale,
    prepare_working_image,
    working_size,
)
from surfacemask.engine.stage0.s0_02_edge_map import compute_edge_map, prepare_edge_map
from tests.conftest import two_tone_image


class TestDownscale:
    def test_small_image_untouched(self):
        assert compute_scale_factor(640, 480, 2000) == 1.0
        assert compute_scale_factor(2000, 1500, 2000) == 1.0

    def test_long_side_limited(self):
        assert compute_scale_factor(4000, 3000, 2000) == pytest.approx(0.5)
        assert compute_scale_factor(1000, 5000, 2000) == pytest.approx(0.4)

    def test_downscale_shape_and_dtype(self):
        out = downscale(two_tone_image(100, 200), 0.5)
        assert out.shape == (50, 100, 3)
        assert out.dtype == np.uint8

    def test_working_size_rounds_short_side_up(self):
        scale = compute_scale_factor(390, 260, 200)
        assert working_size(390, 260, scale) == (200, 134)
        assert working_size(640, 480, 1.0) == (640, 480)

    def test_working_size_long_side_exact(self):
        for long_side in (2001, 2999, 3000, 4321, 7777):
            scale = compute_scale_factor(long_side, 10, 2000)
            assert working_size(long_side, 10, scale)[0] == 2000

    def test_downscale_preserves_flat_color(self):
        img = np.full((40, 40, 3), 77, dtype=np.uint8)
        assert np.all(downscale(img, 0.25) == 77)

    def test_stage_reuses_source_when_small(self):
        ctx = SegmentationContext(source=RasterBuffer(two_tone_image(40, 60)))
        prepare_working_image(ctx)
        assert ctx.working is ctx.source
        assert ctx.scale_factor == 1.0

    def test_stage_downscales_large_image(self):
        ctx = SegmentationContext(
            source=RasterBuffer(two_tone_image(100, 300)),
            config=SegmentationConfig(max_dimension=150),
        )
        prepare_working_image(ctx)
        assert ctx.scale_factor == pytest.approx(0.5)
        assert (ctx.working.height, ctx.working.width) == (50, 150)


class TestEdgeMap:
    def test_flat_image_has_no_edges(self):
        edge = compute_edge_map(np.full((20, 30, 3), 90, dtype=np.uint8))
        assert edge.shape == (20, 30)
        assert np.all(edge == 0)

    def test_range_normalized(self):
        edge = compute_edge_map(two_tone_image(40, 60))
        assert edge.min() == pytest.approx(0.0)
        assert edge.max() == pytest.approx(255.0)

    def test_peak_at_color_boundary(self):
        edge = compute_edge_map(two_tone_image(40, 60))
        assert int(np.argmax(edge[20])) in (29, 30)

    def test_supplied_edge_map_kept(self):
        supplied = np.random.default_rng(1).random((40, 60))
        ctx = SegmentationContext(
            source=RasterBuffer(two_tone_image(40, 60)),
            edge_map=supplied,
            edge_map_supplied=True,
        )
        prepare_working_image(ctx)
        prepare_edge_map(ctx)
        assert np.array_equal(ctx.edge_map, supplied)

    def test_source_sized_edge_map_resized(self):
        ctx = SegmentationContext(
            source=RasterBuffer(two_tone_image(100, 300)),
            config=SegmentationConfig(max_dimension=150),
            edge_map=np.zeros((100, 300)),
            edge_map_supplied=True,
        )
        prepare_working_image(ctx)
        prepare_edge_map(ctx)
        assert ctx.edge_map.shape == (50, 150)

    def test_mismatched_edge_map_rejected(self):
        ctx = SegmentationContext(
            source=RasterBuffer(two_tone_image(40, 60)),
            edge_map=np.zeros((10, 10)),
            edge_map_supplied=True,
        )
        prepare_working_image(ctx)
        with pytest.raises(InvalidInputError):
            prepare_edge_map(ctx)
