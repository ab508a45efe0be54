# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_palette.py — Colour records, validation helpers and the
ordered palette container.

Palette order is significant: the weighted sampler scans colours in the order
they were added, so nothing in this module ever sorts a palette.
"""

from __future__ import annotations

import itertools
import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Final, Iterable, Iterator, List, Optional, Tuple

from speckle_errors import InvalidDensityError, InvalidHexError

__all__ = [
    "MAX_COLORS",
    "DEFAULT_DENSITY",
    "Color",
    "Palette",
    "DEFAULT_PALETTE",
    "normalize_hex",
    "is_valid_hex",
    "is_valid_density",
    "validate_density",
    "parse_density",
    "create_color",
    "total_density",
    "color_probability",
]

logger = logging.getLogger(__name__)

MAX_COLORS: Final[int] = 10
DEFAULT_DENSITY: Final[float] = 1.0

_HEX_RE: Final[re.Pattern[str]] = re.compile(r"^#?([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")
_CANONICAL_HEX_RE: Final[re.Pattern[str]] = re.compile(r"^#[0-9A-F]{6}$")

_uid_gen: itertools.count = itertools.count()


# =============================================================================
# 1. VALIDATION HELPERS
# =============================================================================

def normalize_hex(value: str) -> str:
    """
    Canonicalise a hex colour to ``#RRGGBB`` uppercase.

    Accepts ``RGB``/``RRGGBB`` with or without a leading ``#`` in any case.
    Shorthand digits are doubled (``#abc`` → ``#AABBCC``).

    Raises:
        InvalidHexError: If *value* is not a hex colour.
    """
    if not isinstance(value, str):
        raise InvalidHexError(f"Hex colour must be a string, got {type(value).__name__}")
    match = _HEX_RE.match(value.strip())
    if match is None:
        raise InvalidHexError(f"Invalid hex colour: {value!r}")
    digits = match.group(1).upper()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


def is_valid_hex(value: str) -> bool:
    try:
        normalize_hex(value)
    except InvalidHexError:
        return False
    return True


def is_valid_density(value: object) -> bool:
    """True for finite, non-negative real numbers (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def validate_density(value: float) -> float:
    """Return *value* as float or raise ``InvalidDensityError``."""
    if not is_valid_density(value):
        raise InvalidDensityError(f"Invalid density: {value!r}")
    return float(value)


def parse_density(text: str, default: float = DEFAULT_DENSITY) -> float:
    """Parse user-entered text; anything unusable falls back to *default*."""
    try:
        value = float(text)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value < 0:
        return default
    return value


# =============================================================================
# 2. COLOUR RECORD
# =============================================================================

@dataclass(slots=True, frozen=True)
class Color:
    """
    One palette entry.

    ``hex`` is canonicalised on construction.  ``density`` is stored as given;
    the sampler is the component that rejects unusable weights.
    """
    id: str
    hex: str
    density: float = DEFAULT_DENSITY
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not _CANONICAL_HEX_RE.match(self.hex):
            object.__setattr__(self, "hex", normalize_hex(self.hex))


def _next_color_id() -> str:
    return f"c{next(_uid_gen):06d}"


def create_color(hex_value: str, density: float = DEFAULT_DENSITY,
                 name: Optional[str] = None) -> Color:
    """
    Build a validated colour with a process-unique id.

    Raises:
        InvalidHexError: malformed hex string.
        InvalidDensityError: negative, NaN or infinite density.
    """
    hex_norm = normalize_hex(hex_value)
    return Color(id=_next_color_id(), hex=hex_norm,
                 density=validate_density(density), name=name)


def total_density(colors: Iterable[Color]) -> float:
    """Sum of densities, accumulated in palette order."""
    total = 0.0
    for color in colors:
        total += color.density
    return total


def color_probability(color: Color, total: float, count: int) -> float:
    """
    Probability that a single draw picks *color*.

    When every density is zero the sampler draws uniformly, so each colour
    gets ``1 / count``.
    """
    if count <= 0:
        return 0.0
    if total == 0:
        return 1.0 / count
    return color.density / total


# =============================================================================
# 3. PALETTE CONTAINER
# =============================================================================

class Palette:
    """
    Ordered, capped collection of ``Color`` records.

    Colours are immutable; edits swap in a replacement record at the same
    position, so palette order never changes except by ``add`` / ``remove``.
    Adding beyond ``max_colors`` is ignored (logged), mirroring an editor that
    simply refuses the extra swatch.
    """

    __slots__ = ("_colors", "max_colors")

    def __init__(self, colors: Iterable[Color] = (), max_colors: int = MAX_COLORS) -> None:
        self.max_colors = int(max_colors)
        self._colors: List[Color] = []
        for color in colors:
            if len(self._colors) >= self.max_colors:
                logger.warning("Palette limit of %d reached; dropping %s",
                               self.max_colors, color.hex)
                break
            self._colors.append(color)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, float]],
                   max_colors: int = MAX_COLORS) -> "Palette":
        """Build a palette from ``(hex, density)`` pairs."""
        return cls((create_color(hex_value, density) for hex_value, density in pairs),
                   max_colors=max_colors)

    # -- read interface ----------------------------------------------------
    def __len__(self) -> int:
        return len(self._colors)

    def __iter__(self) -> Iterator[Color]:
        return iter(self._colors)

    def __getitem__(self, index: int) -> Color:
        return self._colors[index]

    @property
    def colors(self) -> Tuple[Color, ...]:
        return tuple(self._colors)

    @property
    def is_full(self) -> bool:
        return len(self._colors) >= self.max_colors

    def index_of(self, color_id: str) -> int:
        for i, color in enumerate(self._colors):
            if color.id == color_id:
                return i
        raise KeyError(f"Colour id {color_id!r} not in palette.")

    def get(self, color_id: str) -> Color:
        return self._colors[self.index_of(color_id)]

    def total_density(self) -> float:
        return total_density(self._colors)

    def probability(self, color_id: str) -> float:
        return color_probability(self.get(color_id), self.total_density(), len(self._colors))

    # -- write interface ---------------------------------------------------
    def add(self, hex_value: str, density: float = DEFAULT_DENSITY,
            name: Optional[str] = None) -> Optional[Color]:
        """Append a new colour; returns ``None`` when the palette is full."""
        if self.is_full:
            logger.info("Palette is full (%d colours); ignoring %s", self.max_colors, hex_value)
            return None
        color = create_color(hex_value, density, name)
        self._colors.append(color)
        return color

    def remove(self, color_id: str) -> Color:
        return self._colors.pop(self.index_of(color_id))

    def set_density(self, color_id: str, density: float) -> Color:
        i = self.index_of(color_id)
        self._colors[i] = replace(self._colors[i], density=validate_density(density))
        return self._colors[i]

    def set_hex(self, color_id: str, hex_value: str) -> Color:
        i = self.index_of(color_id)
        self._colors[i] = replace(self._colors[i], hex=normalize_hex(hex_value))
        return self._colors[i]

    def __repr__(self) -> str:
        swatches = ", ".join(f"{c.hex}×{c.density:g}" for c in self._colors)
        return f"Palette([{swatches}])"


# Two light greys, equal weight.
DEFAULT_PALETTE: Final[Tuple[Tuple[str, float], ...]] = (("#AAA", 1.0), ("#BBB", 1.0))
