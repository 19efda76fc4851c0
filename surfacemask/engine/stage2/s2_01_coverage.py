"""S2.01 — Coverage Resolution.

Ridge (-1) and unreached (0) pixels are absorbed by iterative 8-connected
propagation: each pass gives every unresolved pixel the lowest label among
its already-resolved neighbours, using the labels as they stood at the start
of the pass. Afterwards every pixel carries a label in 1..N.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)

# Label used when no pixel in the image was ever labeled.
_FIRST_LABEL = 1

_NEIGHBOURS_8 = [(dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if (dy, dx) != (0, 0)]


def _lowest_neighbour_label(labels: NDArray[np.int32]) -> NDArray[np.int64]:
    """Lowest positive label among each pixel's 8 neighbours; sentinel where none."""
    h, w = labels.shape
    sentinel = np.iinfo(np.int64).max
    candidates = np.where(labels > 0, labels.astype(np.int64), sentinel)
    padded = np.pad(candidates, 1, mode="constant", constant_values=sentinel)
    best = np.full((h, w), sentinel, dtype=np.int64)
    for dy, dx in _NEIGHBOURS_8:
        np.minimum(best, padded[1 + dy : 1 + dy + h, 1 + dx : 1 + dx + w], out=best)
    return best


def resolve_coverage(labels: NDArray[np.int32]) -> tuple[NDArray[np.int32], dict[str, int]]:
    """Return a copy of labels with every pixel ≥1, plus pass statistics."""
    out = np.array(labels, dtype=np.int32, copy=True)
    sentinel = np.iinfo(np.int64).max
    stats = {"passes": 0, "propagated": 0, "fallback": 0}
    last_majority: int | None = None

    while True:
        unresolved = out <= 0
        if not unresolved.any():
            break
        best = _lowest_neighbour_label(out)
        assign = unresolved & (best != sentinel)
        if not assign.any():
            break
        assigned = best[assign]
        out[assign] = assigned.astype(np.int32)
        last_majority = int(np.bincount(assigned).argmax())
        stats["passes"] += 1
        stats["propagated"] += int(assign.sum())

    remaining = out <= 0
    if remaining.any():
        fill = last_majority if last_majority is not None else _FIRST_LABEL
        out[remaining] = fill
        stats["fallback"] = int(remaining.sum())
        logger.info("Coverage fallback: %d isolated pixels assigned label %d", stats["fallback"], fill)

    return out, stats


@stage(id="S2.01", layer=Layer.RESOLUTION, dependencies=["S1.02"])
def resolve_unassigned(ctx: SegmentationContext) -> None:
    ctx.label_map, stats = resolve_coverage(ctx.label_map)
    ctx.stats["coverage"] = stats
    logger.debug(
        "Coverage: %d pixels resolved in %d passes (%d fallback)",
        stats["propagated"], stats["passes"], stats["fallback"],
    )
