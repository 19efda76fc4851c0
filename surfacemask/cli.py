"""
SurfaceMask command line — segment a photo and export a selection mask.

Usage:
  surfacemask segment photo.jpg                                  # region summary only
  surfacemask segment photo.jpg --select 120,340 -o mask.png     # click-select one region
  surfacemask segment photo.jpg --select 50,60 --radius 25 -o m.png
  surfacemask segment photo.jpg --similar 400,300 --threshold 30 -o wall.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from surfacemask.config import settings
from surfacemask.engine.config import SegmentationConfig
from surfacemask.engine.errors import InvalidInputError, SegmentationError
from surfacemask.engine.pipeline import segment_image
from surfacemask.engine.selection import (
    create_mask,
    find_region_at_point,
    paint_regions_in_radius,
    select_similar_regions,
    selected_indices,
    toggle_region_at_point,
)
from surfacemask.utils.imageio import load_rgb, save_mask_png

logger = logging.getLogger(__name__)


def _point(text: str) -> tuple[float, float]:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected X,Y, got {text!r}") from e
    return x, y


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="surfacemask", description="Photo surface segmentation and masking")
    sub = parser.add_subparsers(dest="command", required=True)

    seg = sub.add_parser("segment", help="Segment an image and optionally export a mask")
    seg.add_argument("image", type=Path, help="Input image file")
    seg.add_argument("--detail", type=float, default=settings.default_detail, help="Detail level 1-20")
    seg.add_argument(
        "--merge-strength", type=float, default=settings.default_merge_strength,
        help="Color merge strength 0-100 (0 disables)",
    )
    seg.add_argument(
        "--select", type=_point, action="append", default=[], metavar="X,Y",
        help="Toggle the region at X,Y (repeatable)",
    )
    seg.add_argument("--radius", type=float, default=0.0, help="Brush radius applied to each --select point")
    seg.add_argument("--similar", type=_point, metavar="X,Y", help="Seed point for similar-color selection")
    seg.add_argument("--threshold", type=float, default=30.0, help="RGB distance for --similar")
    seg.add_argument("-o", "--mask-out", type=Path, help="Write the selection mask PNG here")
    return parser


def run_segment(args: argparse.Namespace) -> int:
    image = load_rgb(args.image)
    height, width = image.shape[:2]

    regions = segment_image(
        image,
        detail=args.detail,
        merge_strength=args.merge_strength,
        config=SegmentationConfig.from_settings(settings),
    )

    for x, y in args.select:
        if args.radius > 0:
            paint_regions_in_radius(x, y, args.radius, regions)
        elif toggle_region_at_point(x, y, regions) < 0:
            logger.warning("No region at %.1f,%.1f", x, y)

    if args.similar is not None:
        seed = find_region_at_point(args.similar[0], args.similar[1], regions)
        if seed < 0:
            logger.warning("No region at similarity seed %.1f,%.1f", *args.similar)
        else:
            select_similar_regions(seed, regions, args.threshold)

    chosen = selected_indices(regions)
    summary = f"{args.image.name}: {width}x{height}, {len(regions)} regions, {len(chosen)} selected"

    if args.mask_out is not None:
        out = save_mask_png(create_mask(regions, width, height), args.mask_out)
        summary += f" → {out}"

    print(summary)
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    args = build_parser().parse_args(argv)
    try:
        return run_segment(args)
    except FileNotFoundError:
        print(f"File not found: {args.image}")
        return 1
    except (InvalidInputError, SegmentationError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
