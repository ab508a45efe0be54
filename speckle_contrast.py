# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_contrast.py — Luminance and label-colour choice for swatches.

``text_color_for`` uses a plain 0.5 luminance cut-off.  It is a readability
heuristic for swatch labels, not the WCAG contrast-ratio test.
"""

from __future__ import annotations

from typing import Final

import numpy as np

from speckle_colorengine import _inverse_gamma_srgb, hex_to_rgb

__all__ = [
    "DARK_TEXT",
    "LIGHT_TEXT",
    "LUMINANCE_THRESHOLD",
    "relative_luminance",
    "text_color_for",
]

DARK_TEXT: Final[str] = "#374151"
LIGHT_TEXT: Final[str] = "#F3F4F6"
LUMINANCE_THRESHOLD: Final[float] = 0.5

# Rec. 709 luma weights on linear RGB.
_LUMA_WEIGHTS: Final[np.ndarray] = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)


def relative_luminance(hex_value: str) -> float:
    """Relative luminance in [0, 1] of an sRGB hex colour."""
    linear = _inverse_gamma_srgb(hex_to_rgb(hex_value))
    return float(np.dot(linear, _LUMA_WEIGHTS))


def text_color_for(hex_value: str) -> str:
    """Dark text on light backgrounds, light text on dark ones."""
    if relative_luminance(hex_value) > LUMINANCE_THRESHOLD:
        return DARK_TEXT
    return LIGHT_TEXT
