# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_random.py — Seed-driven pseudo-random stream.

The generator is the classic 32-bit linear congruential generator

    state' = (state * 1664525 + 1013904223) mod 2**32
    output = state' / 2**32            (a real in [0, 1))

The constants are fixed so independent implementations can be checked against
each other draw for draw.  Both the scalar path (``next``) and the JIT batch
path (``fill``) produce bit-identical floats: every intermediate is an exact
integer below 2**53 and the final division is correctly rounded.

This is *not* a statistically strong generator.  It is only required to be
reproducible.
"""

from __future__ import annotations

import logging
from typing import Final, Iterator, Optional

import numpy as np
from numba import njit

__all__ = [
    "LCG_MULTIPLIER",
    "LCG_INCREMENT",
    "LCG_MODULUS",
    "SeededRandomSource",
    "new_seed",
]

logger = logging.getLogger(__name__)

LCG_MULTIPLIER: Final[int] = 1664525
LCG_INCREMENT: Final[int] = 1013904223
LCG_MODULUS: Final[int] = 4294967296          # 2**32
_LCG_MASK: Final[int] = LCG_MODULUS - 1

# Upper bound (exclusive) for seeds produced by ``new_seed``.
SEED_SPAN: Final[int] = 1_000_000


# =============================================================================
# 1. JIT KERNELS
# =============================================================================
# State is carried as int64.  state < 2**32 and the multiplier < 2**21, so the
# product stays far below the int64 limit and no overflow is possible.

@njit(cache=True)
def _lcg_step(state: int) -> int:
    """Advance the LCG by one step."""
    return (state * 1664525 + 1013904223) & 0xFFFFFFFF


@njit(cache=True)
def _lcg_fill(state: int, out: np.ndarray) -> int:
    """
    Write ``out.size`` consecutive draws into *out* and return the new state.
    """
    s = state
    for i in range(out.size):
        s = (s * 1664525 + 1013904223) & 0xFFFFFFFF
        out[i] = s / 4294967296.0
    return s


# =============================================================================
# 2. SEEDED RANDOM SOURCE
# =============================================================================

class SeededRandomSource:
    """
    Restartable, infinite stream of reals in ``[0, 1)`` driven by an integer seed.

    Seeds wider than 32 bits (or negative) are reduced modulo ``2**32``; float
    seeds are truncated to an integer first.

    Examples:
        >>> rng = SeededRandomSource(42)
        >>> first = rng.next()
        >>> rng.reseed(42)
        >>> rng.next() == first
        True
    """

    __slots__ = ("_seed", "_state")

    def __init__(self, seed: int) -> None:
        self._seed: int = 0
        self._state: int = 0
        self.reseed(seed)

    @staticmethod
    def reduce_seed(seed: int) -> int:
        """Map any integer-like seed onto the 32-bit state space."""
        return int(seed) % LCG_MODULUS

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def state(self) -> int:
        return self._state

    def reseed(self, seed: int) -> None:
        """Restart the stream from *seed*."""
        self._seed = self.reduce_seed(seed)
        self._state = self._seed

    def next(self) -> float:
        """Return the next draw."""
        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) & _LCG_MASK
        return self._state / LCG_MODULUS

    __call__ = next

    def fill(self, count: int) -> np.ndarray:
        """
        Return the next *count* draws as a float64 array.

        Equivalent to calling ``next()`` *count* times, but runs in a compiled
        loop.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        out = np.empty(int(count), dtype=np.float64)
        if count:
            self._state = int(_lcg_fill(np.int64(self._state), out))
        return out

    def __iter__(self) -> Iterator[float]:
        while True:
            yield self.next()

    def __repr__(self) -> str:
        return f"SeededRandomSource(seed={self._seed}, state={self._state})"


def new_seed(rng: Optional[np.random.Generator] = None) -> int:
    """
    Produce a fresh, non-deterministic seed for an explicit "regenerate" request.

    Args:
        rng: Optional NumPy generator; a new OS-entropy generator is used if
            omitted.
    """
    rng = rng if rng is not None else np.random.default_rng()
    seed = int(rng.integers(0, SEED_SPAN))
    logger.debug("Issued new seed %d", seed)
    return seed
