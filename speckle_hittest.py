# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_hittest.py — "Which cell is under the cursor?"

In a Voronoi tiling the cell containing a point is the cell of its nearest
site, so the default lookup is a single k-d tree query.  The exact polygon
test is available for callers that tessellate with something other than a
true Voronoi diagram (or want to confirm the answer near an edge).
"""

from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence

import numpy as np
from numba import njit
from scipy.spatial import cKDTree

from speckle_palette import Color, color_probability, total_density
from speckle_tessellation import Bounds, Polygon

__all__ = [
    "CellHoverInfo",
    "point_in_polygon",
    "CellHitTester",
]


class CellHoverInfo(NamedTuple):
    """Hover payload: the cell, its palette entry and that entry's draw probability."""
    cell_index: int
    palette_index: int
    color: Color
    probability: float


@njit(cache=True)
def _point_in_polygon_kernel(x: float, y: float, poly: np.ndarray) -> bool:
    """
    Even-odd ray casting.  Points exactly on an edge count as inside.
    """
    n = poly.shape[0]
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = poly[i, 0], poly[i, 1]
        xj, yj = poly[j, 0], poly[j, 1]
        # On-edge check: collinear and within the segment's box.
        cross = (x - xi) * (yj - yi) - (y - yi) * (xj - xi)
        if abs(cross) <= 1e-9 and min(xi, xj) <= x <= max(xi, xj) \
                and min(yi, yj) <= y <= max(yi, yj):
            return True
        if (yi > y) != (yj > y):
            x_cross = xi + (y - yi) * (xj - xi) / (yj - yi)
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(x: float, y: float, polygon: Polygon) -> bool:
    poly = np.ascontiguousarray(polygon, dtype=np.float64)
    if poly.ndim != 2 or poly.shape[0] < 3 or poly.shape[1] != 2:
        return False
    return bool(_point_in_polygon_kernel(float(x), float(y), poly))


class CellHitTester:
    """
    Resolves canvas coordinates to rendered cells.

    Args:
        points: ``(n, 2)`` cell sites.
        palette_indices: Palette index assigned to each site.
        colors: The palette the indices refer to (as rendered, i.e. after any
            lighting transform).
        bounds: Canvas rectangle; queries outside it return ``None``.
        polygons: Optional per-site polygons, required for exact tests.
    """

    def __init__(self, points: np.ndarray, palette_indices: np.ndarray,
                 colors: Sequence[Color], bounds: Bounds,
                 polygons: Optional[Sequence[Optional[Polygon]]] = None) -> None:
        self.points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        self.palette_indices = np.asarray(palette_indices, dtype=np.int64)
        if self.palette_indices.shape[0] != self.points.shape[0]:
            raise ValueError(
                f"{self.points.shape[0]} points but {self.palette_indices.shape[0]} palette indices"
            )
        self.colors: List[Color] = list(colors)
        self.bounds = bounds
        self.polygons: Optional[List[Optional[Polygon]]] = (
            list(polygons) if polygons is not None else None
        )
        self._tree: Optional[cKDTree] = cKDTree(self.points) if len(self.points) else None
        self._total = total_density(self.colors)

    def nearest(self, x: float, y: float) -> Optional[int]:
        """Index of the site nearest to ``(x, y)``, or ``None`` with no sites."""
        if self._tree is None:
            return None
        _, index = self._tree.query((x, y))
        return int(index)

    def contains(self, cell_index: int, x: float, y: float) -> bool:
        """Exact containment test against the cell's polygon."""
        if self.polygons is None:
            raise ValueError("CellHitTester was built without polygons")
        polygon = self.polygons[cell_index]
        return polygon is not None and point_in_polygon(x, y, polygon)

    def find(self, x: float, y: float, exact: bool = False) -> Optional[CellHoverInfo]:
        """
        Hover information for the cell under ``(x, y)``.

        With ``exact=True`` the nearest site's polygon must contain the point;
        otherwise every polygon is scanned and the first containing one wins.
        """
        if not self.colors or not self.bounds.contains(x, y):
            return None
        index = self.nearest(x, y)
        if index is None:
            return None
        if exact and not self.contains(index, x, y):
            index = self._scan(x, y)
            if index is None:
                return None
        return self._info(index)

    def _scan(self, x: float, y: float) -> Optional[int]:
        assert self.polygons is not None
        for i, polygon in enumerate(self.polygons):
            if polygon is not None and point_in_polygon(x, y, polygon):
                return i
        return None

    def _info(self, cell_index: int) -> CellHoverInfo:
        palette_index = int(self.palette_indices[cell_index])
        color = self.colors[palette_index]
        return CellHoverInfo(
            cell_index=cell_index,
            palette_index=palette_index,
            color=color,
            probability=color_probability(color, self._total, len(self.colors)),
        )
