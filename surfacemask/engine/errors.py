"""Engine error taxonomy."""

from __future__ import annotations


class InvalidInputError(ValueError):
    """Missing or zero-size image, mismatched edge map, non-finite parameters."""


class SegmentationError(RuntimeError):
    """A pipeline stage failed; no regions were produced."""

    def __init__(self, stage_id: str, message: str) -> None:
        super().__init__(f"{stage_id}: {message}")
        self.stage_id = stage_id
