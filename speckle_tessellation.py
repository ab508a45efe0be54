# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_tessellation.py — Planar Voronoi cells clipped to a rectangle.

The renderer only depends on the narrow ``Tessellator`` protocol:

    tessellate(points, bounds) → one polygon (or None) per input point

``ScipyVoronoiTessellator`` is the reference implementation.  It mirrors the
sites across all four edges of the rectangle before calling Qhull.  Every
original site then has a bounded region, and the bisectors between a site
and its mirror images are exactly the rectangle edges, so no separate
polygon-clipping pass is required.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional, Protocol, runtime_checkable

import numpy as np
from scipy.spatial import QhullError, Voronoi

__all__ = [
    "Bounds",
    "Polygon",
    "Tessellator",
    "ScipyVoronoiTessellator",
]

logger = logging.getLogger(__name__)

# Ordered (k, 2) float64 vertex array, no repeated closing vertex.
Polygon = np.ndarray


class Bounds(NamedTuple):
    """Axis-aligned clip rectangle ``[x0, x1] × [y0, y1]``."""
    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_size(cls, width: float, height: float) -> "Bounds":
        return cls(0.0, 0.0, float(width), float(height))

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def contains(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    def as_polygon(self) -> Polygon:
        return np.array([[self.x0, self.y0], [self.x1, self.y0],
                         [self.x1, self.y1], [self.x0, self.y1]], dtype=np.float64)


@runtime_checkable
class Tessellator(Protocol):
    """
    Minimal interface a computational-geometry backend must satisfy.

    Returns one entry per input point: an ordered vertex array, or ``None``
    when the site has no cell inside *bounds*.
    """
    def tessellate(self, points: np.ndarray, bounds: Bounds) -> List[Optional[Polygon]]: ...


class ScipyVoronoiTessellator:
    """
    Voronoi tessellation via ``scipy.spatial.Voronoi`` (Qhull).

    Args:
        qhull_options: Passed through to Qhull.  The default ``"Qbb Qc Qz"``
            matches SciPy's own default for 2-D input.
    """

    __slots__ = ("qhull_options",)

    def __init__(self, qhull_options: str = "Qbb Qc Qz") -> None:
        self.qhull_options = qhull_options

    def tessellate(self, points: np.ndarray, bounds: Bounds) -> List[Optional[Polygon]]:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        n = pts.shape[0]
        if n == 0:
            return []
        if n == 1:
            return [bounds.as_polygon() if bounds.contains(*pts[0]) else None]

        mirrored = np.concatenate([
            pts,
            np.column_stack([2.0 * bounds.x0 - pts[:, 0], pts[:, 1]]),
            np.column_stack([2.0 * bounds.x1 - pts[:, 0], pts[:, 1]]),
            np.column_stack([pts[:, 0], 2.0 * bounds.y0 - pts[:, 1]]),
            np.column_stack([pts[:, 0], 2.0 * bounds.y1 - pts[:, 1]]),
        ])

        try:
            vor = Voronoi(mirrored, qhull_options=self.qhull_options)
        except QhullError as exc:
            logger.error("Qhull could not tessellate %d sites: %s", n, exc)
            return [None] * n

        lo = np.array([bounds.x0, bounds.y0])
        hi = np.array([bounds.x1, bounds.y1])
        polygons: List[Optional[Polygon]] = []
        for i in range(n):
            if not bounds.contains(*pts[i]):
                polygons.append(None)
                continue
            region_index = vor.point_region[i]
            region = vor.regions[region_index] if region_index >= 0 else []
            if len(region) < 3 or -1 in region:
                polygons.append(None)
                continue
            # Snap round-off just outside the rectangle back onto its edge.
            poly = np.clip(vor.vertices[region], lo, hi)
            polygons.append(_order_counterclockwise(poly))
        return polygons

    def __repr__(self) -> str:
        return f"ScipyVoronoiTessellator(qhull_options={self.qhull_options!r})"


def _order_counterclockwise(poly: Polygon) -> Polygon:
    """Sort a convex polygon's vertices by angle around their mean."""
    centre = poly.mean(axis=0)
    angles = np.arctan2(poly[:, 1] - centre[1], poly[:, 0] - centre[0])
    return np.ascontiguousarray(poly[np.argsort(angles, kind="stable")])
