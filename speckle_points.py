# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_points.py — Cell-centre placement and the scale → cell-count map.

Regeneration contract
---------------------
``PointFieldGenerator`` owns the current seed and the last point field it
built.  Only ``regenerate()`` issues a new seed.  Any other change (palette
edits, densities, lighting) reuses the cached field; a change of canvas size
or cell count rebuilds the field from the *same* seed.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Final, NamedTuple, Optional

import numpy as np

from speckle_random import SeededRandomSource, new_seed

__all__ = [
    "MIN_SCALE",
    "MAX_SCALE",
    "MIN_CELLS",
    "MAX_CELLS",
    "scale_to_cell_count",
    "generate_points",
    "PointField",
    "PointFieldGenerator",
]

logger = logging.getLogger(__name__)

MIN_SCALE: Final[float] = 0.1
MAX_SCALE: Final[float] = 4.0
MIN_CELLS: Final[int] = 100
MAX_CELLS: Final[int] = 10000


def scale_to_cell_count(scale: float) -> int:
    """
    Linearly map a user-facing *scale* in ``[0.1, 4.0]`` onto ``[100, 10000]`` cells.

    Rounds half-up and clamps, so out-of-range scales saturate.  A non-finite
    scale degrades to ``MIN_CELLS``.
    """
    scale = float(scale)
    if not math.isfinite(scale):
        logger.warning("Non-finite scale %r; using %d cells", scale, MIN_CELLS)
        return MIN_CELLS
    raw = MIN_CELLS + (scale - MIN_SCALE) * (MAX_CELLS - MIN_CELLS) / (MAX_SCALE - MIN_SCALE)
    count = math.floor(raw + 0.5)
    return max(MIN_CELLS, min(MAX_CELLS, count))


def generate_points(cell_count: int, width: float, height: float, seed: int) -> np.ndarray:
    """
    Draw *cell_count* points uniformly over ``[0, width) × [0, height)``.

    One ``SeededRandomSource`` feeds every coordinate, ``x`` then ``y`` for each
    point in order, so row ``i`` is ``(draw[2i] * width, draw[2i+1] * height)``.

    Returns:
        Read-only float64 array of shape ``(cell_count, 2)``.
    """
    if cell_count < 0:
        raise ValueError(f"cell_count must be non-negative, got {cell_count}")
    draws = SeededRandomSource(seed).fill(2 * int(cell_count)).reshape(-1, 2)
    points = draws * np.array([width, height], dtype=np.float64)
    points.setflags(write=False)
    return points


class PointField(NamedTuple):
    """One generated field together with the inputs that fully determine it."""
    seed: int
    width: float
    height: float
    cell_count: int
    points: np.ndarray


class PointFieldGenerator:
    """
    Holds the seed and memoises the last point field.

    Args:
        seed: Initial seed.  A fresh non-deterministic seed is issued if omitted.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._seed: int = new_seed() if seed is None else int(seed)
        self._field: Optional[PointField] = None
        self._lock = threading.RLock()

    @property
    def seed(self) -> int:
        return self._seed

    def regenerate(self, seed: Optional[int] = None) -> int:
        """
        Explicit "regenerate" request: switch to a new seed and drop the cache.

        Returns:
            The new seed.
        """
        with self._lock:
            self._seed = new_seed() if seed is None else int(seed)
            self._field = None
        logger.debug("Point field regenerated with seed %d", self._seed)
        return self._seed

    def field(self, width: float, height: float, cell_count: int) -> PointField:
        """Return the cached field for these inputs, building it on a miss."""
        with self._lock:
            cached = self._field
            if (cached is not None
                    and cached.width == width
                    and cached.height == height
                    and cached.cell_count == cell_count):
                return cached
            points = generate_points(cell_count, width, height, self._seed)
            self._field = PointField(self._seed, width, height, int(cell_count), points)
            logger.debug("Built %d points for %gx%g (seed %d)",
                         cell_count, width, height, self._seed)
            return self._field
