"""Tests for stage 4 — contour extraction, densification and region reshaping."""

from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from surfacemask.engine.context import Bounds
from surfacemask.engine.errors import InvalidInputError
from surfacemask.engine.reshape import rebuild_region_mask, transform_region, transform_regions
from surfacemask.engine.stage4.s4_01_contours import densify_contour, extract_contours, trace_region_contour
from surfacemask.utils.geometry import edge_lengths
from tests.conftest import make_region

SQUARE_20 = np.array([[0, 0], [20, 0], [20, 20], [0, 20]], dtype=np.float64)
RECT_CONTOUR = np.array([[10, 20], [50, 20], [50, 60], [10, 60]], dtype=np.float64)


class TestDensify:
    def test_no_edge_exceeds_limit(self):
        dense = densify_contour(SQUARE_20, 8.0)
        assert len(dense) == 12
        assert edge_lengths(dense).max() <= 8.0 + 1e-9

    def test_original_vertices_kept(self):
        dense = densify_contour(SQUARE_20, 8.0)
        assert np.array_equal(dense[0], SQUARE_20[0])
        assert np.array_equal(dense[3], SQUARE_20[1])

    def test_idempotent(self):
        once = densify_contour(SQUARE_20, 8.0)
        twice = densify_contour(once, 8.0)
        assert np.array_equal(once, twice)

    def test_short_edges_untouched(self):
        assert np.array_equal(densify_contour(SQUARE_20, 25.0), SQUARE_20)

    def test_degenerate_inputs(self):
        assert densify_contour(np.empty((0, 2)), 8.0).shape == (0, 2)
        assert densify_contour(np.array([[3.0, 4.0]]), 8.0).tolist() == [[3.0, 4.0]]

    @pytest.mark.parametrize("length", [0.0, -1.0, float("nan")])
    def test_invalid_length(self, length):
        with pytest.raises(ValueError):
            densify_contour(SQUARE_20, length)


class TestContourTracing:
    def test_rectangle_traced_half_a_pixel_out(self):
        region = make_region(0, 10, 20, np.ones((5, 4), dtype=bool))
        contour = trace_region_contour(region)
        assert contour.min(axis=0).tolist() == [9.5, 19.5]
        assert contour.max(axis=0).tolist() == [13.5, 24.5]

    def test_neighbours_share_their_edge(self):
        left = make_region(0, 0, 0, np.ones((6, 5), dtype=bool))
        right_mask = np.ones((6, 5), dtype=bool)
        right_mask[0, 4] = False
        right = make_region(1, 5, 0, right_mask)
        a = trace_region_contour(left)
        b = trace_region_contour(right)
        assert a[:, 0].max() == b[:, 0].min() == 4.5
        shared_a = {tuple(p) for p in a.tolist() if p[0] == 4.5}
        shared_b = {tuple(p) for p in b.tolist() if p[0] == 4.5}
        assert shared_a == shared_b == {(4.5, -0.5), (4.5, 5.5)}

    def test_traced_contour_rasterizes_back_to_mask(self):
        mask = np.zeros((12, 15), dtype=bool)
        mask[2:10, 3:12] = True
        mask[5:7, 0:3] = True
        region = make_region(0, 40, 30, mask)
        region.contour = trace_region_contour(region)
        rebuilt = rebuild_region_mask(region)
        assert rebuilt.bounds == Bounds(40, 32, 12, 8)
        assert np.array_equal(rebuilt.mask, mask[2:10, 0:12])

    def test_single_pixel(self):
        region = make_region(0, 7, 3, np.ones((1, 1), dtype=bool))
        contour = trace_region_contour(region)
        assert len(contour) >= 3
        rebuilt = rebuild_region_mask(dataclasses.replace(region, contour=contour))
        assert rebuilt.bounds == Bounds(7, 3, 1, 1)

    def test_extract_contours_densifies(self):
        regions = [
            make_region(0, 0, 0, np.ones((30, 30), dtype=bool)),
            make_region(1, 30, 0, np.ones((30, 2), dtype=bool)),
        ]
        total = extract_contours(regions, 8.0)
        assert total == sum(len(r.contour) for r in regions)
        for r in regions:
            assert len(r.contour) >= 3
            assert edge_lengths(r.contour).max() <= 8.0 + 1e-9


class TestRebuild:
    def test_rectangle_bounds(self):
        region = make_region(0, 0, 0, np.ones((1, 1), dtype=bool), contour=RECT_CONTOUR)
        rebuilt = rebuild_region_mask(region)
        assert rebuilt.bounds.as_dict() == {"x": 10, "y": 20, "width": 41, "height": 41}
        assert rebuilt.mask.shape == (41, 41)
        assert rebuilt.mask.all()
        assert rebuilt.pixel_count == 41 * 41

    def test_input_not_modified(self):
        region = make_region(3, 0, 0, np.ones((1, 1), dtype=bool), color=(1.0, 2.0, 3.0), adjacent=(4,), contour=RECT_CONTOUR)
        rebuilt = rebuild_region_mask(region)
        assert region.bounds == Bounds(0, 0, 1, 1)
        assert rebuilt is not region
        assert rebuilt.index == 3
        assert rebuilt.avg_color == (1.0, 2.0, 3.0)
        assert rebuilt.adjacent_indices == {4}

    def test_single_vertex_contour(self):
        region = make_region(0, 0, 0, np.ones((2, 2), dtype=bool), contour=[[3.2, 4.7]])
        rebuilt = rebuild_region_mask(region)
        assert rebuilt.bounds == Bounds(3, 4, 1, 1)
        assert rebuilt.mask.tolist() == [[True]]

    def test_empty_contour_keeps_shape(self):
        region = make_region(0, 2, 2, np.ones((2, 2), dtype=bool))
        rebuilt = rebuild_region_mask(region)
        assert rebuilt.bounds == region.bounds
        assert rebuilt is not region


class TestTransform:
    def test_translate(self):
        region = make_region(0, 0, 0, np.ones((1, 1), dtype=bool), contour=RECT_CONTOUR)
        moved = transform_region(region, lambda p: (p[0] + 5, p[1]))
        assert moved.bounds == Bounds(15, 20, 41, 41)

    def test_source_space_mapping(self):
        region = make_region(0, 0, 0, np.ones((1, 1), dtype=bool), scale_factor=0.5, contour=RECT_CONTOUR)
        # +10 source pixels is +5 processing pixels
        moved = transform_region(region, lambda p: (p[0] + 10, p[1]))
        assert moved.bounds.x == 15
        assert moved.contour[0].tolist() == [15.0, 20.0]

    def test_processing_space_mapping(self):
        region = make_region(0, 0, 0, np.ones((1, 1), dtype=bool), scale_factor=0.5, contour=RECT_CONTOUR)
        moved = transform_region(region, lambda p: (p[0] + 10, p[1]), source_space=False)
        assert moved.bounds.x == 20

    def test_non_finite_result_rejected(self):
        region = make_region(0, 0, 0, np.ones((1, 1), dtype=bool), contour=RECT_CONTOUR)
        with pytest.raises(InvalidInputError):
            transform_region(region, lambda p: (float("nan"), p[1]))

    def test_transform_regions_returns_new_list(self):
        regions = [make_region(i, 0, 0, np.ones((1, 1), dtype=bool), contour=RECT_CONTOUR) for i in range(2)]
        out = transform_regions(regions, lambda p: p)
        assert len(out) == 2
        assert all(a is not b for a, b in zip(regions, out))
        assert out[1].bounds == Bounds(10, 20, 41, 41)
