# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_sampler.py — Density-weighted colour draws.

Algorithm (identical for every entry point)
-------------------------------------------
1. Empty palette → ``EmptyPaletteError``.
2. One colour → that colour, no randomness consumed.
3. ``total = Σ density`` accumulated in palette order.
4. ``total == 0`` → uniform index ``floor(u * n)``.
5. Otherwise ``r = u * total`` and the first colour whose running sum is
   ``>= r`` wins; if rounding leaves none, the last colour is returned.

Per-cell draws use ``seed = base_seed + cell_index``, one fresh LCG stream per
cell.  Offsetting the seed is a cheap decorrelation heuristic, good enough for
a visual texture and nothing more.  Only densities are read, never hex values,
so recolouring a swatch cannot move the assignment.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

import numpy as np
from numba import njit

from speckle_errors import EmptyPaletteError, InvalidDensityError
from speckle_palette import Color
from speckle_random import SeededRandomSource, _lcg_step

__all__ = [
    "densities_of",
    "draw",
    "draw_seeded",
    "draw_index_seeded",
    "assign_indices",
    "WeightedColorSampler",
]


def densities_of(colors: Sequence[Color]) -> np.ndarray:
    """
    Validate and collect densities in palette order.

    Raises:
        EmptyPaletteError: no colours.
        InvalidDensityError: a density is negative, NaN or infinite.
    """
    if len(colors) == 0:
        raise EmptyPaletteError("Cannot select from an empty palette.")
    weights = np.empty(len(colors), dtype=np.float64)
    for i, color in enumerate(colors):
        d = float(color.density)
        if not math.isfinite(d) or d < 0.0:
            raise InvalidDensityError(
                f"Colour {color.hex} (index {i}) has invalid density {color.density!r}"
            )
        weights[i] = d
    return weights


def _select_index(weights: np.ndarray, random: Callable[[], float]) -> int:
    n = weights.shape[0]
    if n == 1:
        return 0
    total = 0.0
    for w in weights:
        total += w
    if total == 0.0:
        return int(math.floor(random() * n))
    r = random() * total
    cumulative = 0.0
    for i in range(n):
        cumulative += weights[i]
        if r <= cumulative:
            return i
    return n - 1


def draw(colors: Sequence[Color], rng: Optional[np.random.Generator] = None) -> Color:
    """
    Weighted draw from a non-deterministic source.

    Kept for API parity; the render path always uses the seeded variants.
    """
    weights = densities_of(colors)
    rng = rng if rng is not None else np.random.default_rng()
    return colors[_select_index(weights, rng.random)]


def draw_index_seeded(colors: Sequence[Color], seed: int) -> int:
    """Palette index chosen by the first draw of ``SeededRandomSource(seed)``."""
    weights = densities_of(colors)
    return _select_index(weights, SeededRandomSource(seed).next)


def draw_seeded(colors: Sequence[Color], seed: int) -> Color:
    """Deterministic weighted draw; same *seed* and densities, same colour."""
    return colors[draw_index_seeded(colors, seed)]


# =============================================================================
# BATCH ASSIGNMENT (JIT)
# =============================================================================

@njit(cache=True)
def _assign_kernel(cumulative: np.ndarray, total: float, base_seed: int,
                   out: np.ndarray) -> None:
    """
    ``out[i]`` = palette index drawn from the stream seeded ``base_seed + i``.

    *cumulative* holds running density sums accumulated left to right so the
    comparisons match the scalar scan exactly.
    """
    n_colors = cumulative.shape[0]
    for i in range(out.shape[0]):
        u = _lcg_step((base_seed + i) & 0xFFFFFFFF) / 4294967296.0
        if total == 0.0:
            out[i] = int(u * n_colors)
            continue
        r = u * total
        idx = n_colors - 1
        for j in range(n_colors):
            if r <= cumulative[j]:
                idx = j
                break
        out[i] = idx


def assign_indices(colors: Sequence[Color], base_seed: int, cell_count: int) -> np.ndarray:
    """
    Palette index for every cell ``0 .. cell_count-1``.

    Equivalent to ``[draw_index_seeded(colors, base_seed + i) for i in ...]``.

    Returns:
        int64 array of shape ``(cell_count,)``.
    """
    weights = densities_of(colors)
    out = np.zeros(int(cell_count), dtype=np.int64)
    if weights.shape[0] == 1 or cell_count == 0:
        return out
    # np.cumsum accumulates sequentially, matching the scalar running sum.
    cumulative = np.cumsum(weights)
    total = float(cumulative[-1])
    base = SeededRandomSource.reduce_seed(base_seed)
    _assign_kernel(cumulative, total, np.int64(base), out)
    return out


class WeightedColorSampler:
    """
    Object facade over the module functions, bound to one base seed.

    Examples:
        >>> sampler = WeightedColorSampler(base_seed=42)
        >>> sampler.color_for_cell(colors, 0) == draw_seeded(colors, 42)
        True
    """

    __slots__ = ("base_seed",)

    def __init__(self, base_seed: int) -> None:
        self.base_seed = int(base_seed)

    def color_for_cell(self, colors: Sequence[Color], cell_index: int) -> Color:
        return draw_seeded(colors, self.base_seed + cell_index)

    def assign(self, colors: Sequence[Color], cell_count: int) -> np.ndarray:
        return assign_indices(colors, self.base_seed, cell_count)

    def __repr__(self) -> str:
        return f"WeightedColorSampler(base_seed={self.base_seed})"
