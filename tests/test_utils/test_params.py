"""Tests for validated segmentation parameters."""

import pytest
from pydantic import ValidationError

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.stage1.s1_01_marker_grid import clamp_detail
from surfacemask.models.params import SegmentParams
from surfacemask.utils.color import merge_threshold


def test_defaults():
    p = SegmentParams()
    assert p.detail == 10
    assert p.merge_strength == 0.0


def test_detail_clamped_and_rounded():
    assert SegmentParams(detail=0).detail == 1
    assert SegmentParams(detail=99).detail == 20
    assert SegmentParams(detail=7.6).detail == 8


@pytest.mark.parametrize("detail", [-3, 0.4, 1, 7.6, 12, 20, 20.4, 99])
def test_detail_matches_marker_grid_clamp(detail):
    assert SegmentParams(detail=detail).detail == clamp_detail(detail, SegmentationConfig())


def test_detail_limits_follow_config():
    config = SegmentationConfig()
    assert SegmentParams(detail=-10).detail == config.detail_min
    assert SegmentParams(detail=1000).detail == config.detail_max


def test_merge_strength_clamped():
    assert SegmentParams(merge_strength=-5).merge_strength == 0.0
    assert SegmentParams(merge_strength=150).merge_strength == 100.0


def test_clamped_strength_gives_same_threshold():
    p = SegmentParams(merge_strength=150)
    assert merge_threshold(p.merge_strength, 64.0) == merge_threshold(150, 64.0) == 64.0


@pytest.mark.parametrize("field", ["detail", "merge_strength", "min_area_fraction"])
def test_non_finite_rejected(field):
    with pytest.raises(ValidationError):
        SegmentParams(**{field: float("nan")})


def test_non_numeric_rejected():
    with pytest.raises(ValidationError):
        SegmentParams(detail=None)
    with pytest.raises(ValidationError):
        SegmentParams(merge_strength="lots")


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1])
def test_min_area_fraction_bounds(fraction):
    with pytest.raises(ValidationError):
        SegmentParams(min_area_fraction=fraction)
