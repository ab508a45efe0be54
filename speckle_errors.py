# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_errors.py — Exception hierarchy shared by all Speckle modules.

Validation errors also derive from ``ValueError`` and numeric faults from
``ArithmeticError`` so callers that only know the builtin families still
catch them.
"""

__all__ = [
    "SpeckleError",
    "InvalidHexError",
    "InvalidDensityError",
    "EmptyPaletteError",
    "DegenerateTransformError",
    "NumericOverflowError",
]


class SpeckleError(Exception):
    """Base class for every error raised by Speckle."""


class InvalidHexError(SpeckleError, ValueError):
    """A colour string is not ``#RGB`` / ``#RRGGBB`` hexadecimal."""


class InvalidDensityError(SpeckleError, ValueError):
    """A density weight is negative, NaN or infinite."""


class EmptyPaletteError(SpeckleError, ValueError):
    """A colour draw was requested from a palette with no colours."""


class DegenerateTransformError(SpeckleError, ArithmeticError):
    """Chromatic adaptation would divide by a zero cone response."""


class NumericOverflowError(SpeckleError, ArithmeticError):
    """A non-finite value appeared inside the colour pipeline."""
