"""S3.03 — Connectivity.

Redistribution and color merge can leave one label spread over separate
pieces. Every label is split into its 4-connected pieces, and each piece
becomes a region of its own. Pieces smaller than min_area are absorbed
whole into the 4-adjacent piece they share the longest border with, which
keeps the union connected. Absorption repeats until no small piece is left
or the image is a single piece.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from skimage.measure import label

from surfacemask.engine.context import SegmentationContext
from surfacemask.engine.registry import Layer, stage

logger = logging.getLogger(__name__)


def split_into_pieces(labels: NDArray[np.int32]) -> NDArray[np.int32]:
    """Relabel so that every label is one 4-connected piece, numbered from 1."""
    # Labels are all >= 1 after coverage resolution; background=-1 keeps 0 usable too
    return label(labels, background=-1, connectivity=1).astype(np.int32)


def border_lengths(pieces: NDArray[np.int32]) -> tuple[NDArray[np.int64], NDArray[np.int64], NDArray[np.int64]]:
    """Directed (a, b, shared edge count) for every pair of 4-adjacent pieces."""
    a = np.concatenate([pieces[:, :-1].ravel(), pieces[:-1, :].ravel()]).astype(np.int64)
    b = np.concatenate([pieces[:, 1:].ravel(), pieces[1:, :].ravel()]).astype(np.int64)
    differs = a != b
    src = np.concatenate([a[differs], b[differs]])
    dst = np.concatenate([b[differs], a[differs]])
    if len(src) == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, empty
    base = int(pieces.max()) + 1
    keys, counts = np.unique(src * base + dst, return_counts=True)
    return keys // base, keys % base, counts.astype(np.int64)


def absorb_small_pieces(
    pieces: NDArray[np.int32],
    min_area: int,
) -> tuple[NDArray[np.int32], int]:
    """One absorption round; returns the new piece map and how many pieces were absorbed."""
    counts = np.bincount(pieces.ravel())
    src, dst, shared = border_lengths(pieces)
    small = counts[src] < min_area
    src, dst, shared = src[small], dst[small], shared[small]
    if len(src) == 0:
        return pieces, 0

    # Longest shared border first, ties to the lowest neighbour
    order = np.lexsort((dst, -shared, src))
    src, dst = src[order], dst[order]
    first = np.unique(src, return_index=True)[1]
    src, dst = src[first], dst[first]

    n = len(counts)
    graph = coo_matrix((np.ones(len(src)), (src, dst)), shape=(n, n))
    n_groups, group = connected_components(graph, directed=False)
    merged = group[pieces].astype(np.int32) + 1
    return merged, n - n_groups


def enforce_connectivity(
    labels: NDArray[np.int32],
    min_area: int,
) -> tuple[NDArray[np.int32], dict[str, int]]:
    """Split labels into connected pieces and absorb the ones below min_area."""
    pieces = split_into_pieces(labels)
    n_labels = len(np.unique(labels))
    stats = {"split": int(pieces.max()) - n_labels, "absorbed": 0, "rounds": 0}

    while True:
        pieces, absorbed = absorb_small_pieces(pieces, min_area)
        if absorbed == 0:
            break
        stats["absorbed"] += absorbed
        stats["rounds"] += 1
    return pieces, stats


@stage(id="S3.03", layer=Layer.REGIONS, dependencies=["S3.01", "S3.02"])
def connect_regions(ctx: SegmentationContext) -> None:
    ctx.label_map, stats = enforce_connectivity(ctx.label_map, max(1, ctx.min_area))
    ctx.stats["connectivity"] = stats
    if stats["split"]:
        logger.info(
            "Connectivity: %d detached pieces, %d absorbed in %d rounds",
            stats["split"], stats["absorbed"], stats["rounds"],
        )
