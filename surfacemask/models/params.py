"""Validated segmentation parameters."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.stage1.s1_01_marker_grid import clamp_detail
from surfacemask.utils.color import clamp_strength


def _require_finite(value: Any, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number") from e
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number")
    return value


class SegmentParams(BaseModel):
    """User-facing knobs for one segmentation run."""

    detail: int = Field(10, description="Marker density, 1 (coarse) to 20 (fine)")
    merge_strength: float = Field(0.0, description="Color merge aggressiveness, 0 disables")
    min_area_fraction: float = Field(0.001, gt=0.0, lt=1.0, description="Smallest region, as a share of the image")

    @field_validator("detail", mode="before")
    @classmethod
    def _clamp_detail(cls, v: Any) -> int:
        return clamp_detail(_require_finite(v, "detail"), SegmentationConfig())

    @field_validator("merge_strength", mode="before")
    @classmethod
    def _clamp_merge(cls, v: Any) -> float:
        return clamp_strength(_require_finite(v, "merge_strength"))

    @field_validator("min_area_fraction", mode="before")
    @classmethod
    def _finite_fraction(cls, v: Any) -> float:
        return _require_finite(v, "min_area_fraction")

