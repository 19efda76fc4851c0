"""Rasterization utilities — polygons to pixel masks.

A pixel (px, py) is inside a polygon when its center point (px, py) lies inside
or on the polygon boundary. Contours traced at the 0.5 level between pixel
centers therefore rasterize back to exactly the pixels they were traced from.
"""

from __future__ import annotations

import math

import numpy as np
import shapely
from numpy.typing import NDArray
from shapely.geometry import LineString, Point, Polygon
from shapely.validation import make_valid

# Tolerance for treating a vertex coordinate as lying on a pixel center.
_PIXEL_EPS = 1e-9


def polygon_geometry(points: NDArray[np.float64]):
    """Shapely geometry for a vertex list; degenerate lists become points/lines."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) == 0:
        return None
    if len(pts) == 1:
        return Point(pts[0])
    if len(pts) == 2:
        return LineString(pts)
    poly = Polygon(pts)
    if not poly.is_valid:
        # Self-intersecting outlines are repaired rather than rejected
        return make_valid(poly)
    return poly


def pixel_bounds(points: NDArray[np.float64]) -> tuple[int, int, int, int]:
    """Inclusive integer pixel span (x0, y0, x1, y1) of the pixel centers a polygon can cover.

    An empty span (contour narrower than a pixel pitch between centers) falls
    back to the pixel under the first vertex.
    """
    pts = np.asarray(points, dtype=np.float64)
    x0 = math.ceil(float(pts[:, 0].min()) - _PIXEL_EPS)
    y0 = math.ceil(float(pts[:, 1].min()) - _PIXEL_EPS)
    x1 = math.floor(float(pts[:, 0].max()) + _PIXEL_EPS)
    y1 = math.floor(float(pts[:, 1].max()) + _PIXEL_EPS)
    if x1 < x0 or y1 < y0:
        fx = math.floor(float(pts[0, 0]))
        fy = math.floor(float(pts[0, 1]))
        return fx, fy, fx, fy
    return x0, y0, x1, y1


def rasterize_polygon(
    points: NDArray[np.float64],
    x0: int,
    y0: int,
    width: int,
    height: int,
) -> NDArray[np.bool_]:
    """Rasterize a polygon into a (height, width) bool grid whose top-left pixel is (x0, y0)."""
    grid = np.zeros((max(height, 0), max(width, 0)), dtype=bool)
    geom = polygon_geometry(points)
    if geom is None or grid.size == 0:
        return grid

    shapely.prepare(geom)
    ys, xs = np.mgrid[y0 : y0 + height, x0 : x0 + width]
    inside = shapely.intersects_xy(geom, xs.ravel().astype(np.float64), ys.ravel().astype(np.float64))
    grid[:, :] = np.asarray(inside, dtype=bool).reshape(height, width)

    if not grid.any():
        # Sliver or point polygon: keep at least the pixel under the first vertex
        fx = math.floor(float(points[0][0])) - x0
        fy = math.floor(float(points[0][1])) - y0
        if 0 <= fx < width and 0 <= fy < height:
            grid[fy, fx] = True
    return grid


def fill_polygon(
    canvas: NDArray[np.uint8],
    points: NDArray[np.float64],
    value: int = 255,
) -> None:
    """Fill a polygon into a full-size canvas in place, clipped to the canvas."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) == 0:
        return
    h, w = canvas.shape[:2]
    x0, y0, x1, y1 = pixel_bounds(pts)
    cx0, cy0 = max(x0, 0), max(y0, 0)
    cx1, cy1 = min(x1, w - 1), min(y1, h - 1)
    if cx1 < cx0 or cy1 < cy0:
        return
    window = rasterize_polygon(pts, cx0, cy0, cx1 - cx0 + 1, cy1 - cy0 + 1)
    canvas[cy0 : cy1 + 1, cx0 : cx1 + 1][window] = value
