# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Photometric Transform Engine
============================
Re-colours a single hex swatch as it would appear under another light source.

Pipeline (one colour, one light):
1. Hex → sRGB in [0, 1].
2. sRGB EOTF (remove gamma).
3. Linear RGB → CIE XYZ via the IEC 61966-2-1 D65 matrix, scaled so Y_white = 100.
4. Either a direct 3×3 override (narrow-band sources such as a 660 nm LED) or
   Bradford chromatic adaptation from the source white (default D65) to the
   light's white point.
5. XYZ → linear RGB → sRGB OETF → clamp → 8-bit → hex.
6. Any non-finite intermediate short-circuits to ``#000000`` with a logged fault.

The sRGB transfer curves run as Numba kernels with a fast-math and a strict
IEEE 754 variant, selected at runtime with ``set_strict_ieee``.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - Lam, K. M. (1985). "Metamerism and Colour Constancy" (Bradford transform)
    - CIE 15:2004 "Colorimetry"
"""

from __future__ import annotations

import functools
import logging
from typing import (
    TYPE_CHECKING, Any, Callable, Final, Iterable, List, NamedTuple,
    Optional, Sequence, Tuple, TypeAlias, Union,
)

import numpy as np
import numpy.typing as npt
from numba import njit

from speckle_cache import TransformCache
from speckle_errors import DegenerateTransformError, NumericOverflowError
from speckle_palette import Color, normalize_hex

if TYPE_CHECKING:
    from speckle_lighting import LightRegistry, LightSource

__all__ = [
    # --- Types ---
    "ArrayFloat",
    "Matrix3",
    "XYZColor",

    # --- Constants ---
    "D65_WHITE_POINT",
    "BLACK_HEX",
    "M_SRGB_TO_XYZ_T",
    "M_XYZ_TO_SRGB_T",
    "M_BRADFORD_T",
    "M_BRADFORD_INV_T",

    # --- Configuration ---
    "set_strict_ieee",

    # --- Matrix helpers ---
    "as_matrix3",
    "apply_matrix",
    "invert_matrix3",

    # --- Decorators ---
    "handle_shapes",

    # --- Codec ---
    "hex_to_rgb",
    "hex_to_rgb255",
    "rgb_to_hex",

    # --- Classes / entry points ---
    "ColorSpaceEngine",
    "ChromaticAdaptation",
    "transform_color",
    "PhotometricTransformEngine",
]

logger = logging.getLogger(__name__)

# --- Type Aliases ---
ArrayFloat: TypeAlias = npt.NDArray[np.floating]
# A (3, 3) float64 array.  Built and checked by ``as_matrix3``.
Matrix3: TypeAlias = np.ndarray


class XYZColor(NamedTuple):
    """CIE 1931 tristimulus triple, scaled so the reference white has Y = 100."""
    X: float
    Y: float
    Z: float

    def as_array(self) -> ArrayFloat:
        return np.array(self, dtype=np.float64)


# --- Constants & Pre-Transposed Matrices ---

# D65 white, Y = 100 scale.
D65_WHITE_POINT: Final[XYZColor] = XYZColor(95.047, 100.0, 108.883)
BLACK_HEX: Final[str] = "#000000"
_XYZ_SCALE: Final[float] = 100.0

# sRGB Matrices (IEC 61966-2-1).
# Pre-transposed so a row vector (or a stack of row vectors) can be multiplied
# on the left: xyz = rgb @ M_T.
_M_SRGB_TO_XYZ_BASE = np.array([
    [ 0.4124564,  0.3575761,  0.1804375],
    [ 0.2126729,  0.7151522,  0.0721750],
    [ 0.0193339,  0.1191920,  0.9503041]
], dtype=np.float64)
M_SRGB_TO_XYZ_T: Final[ArrayFloat] = _M_SRGB_TO_XYZ_BASE.T.copy()

_M_XYZ_TO_SRGB_BASE = np.array([
    [ 3.2404542, -1.5371385, -0.4985314],
    [-0.9692660,  1.8760108,  0.0415560],
    [ 0.0556434, -0.2040259,  1.0572252]
], dtype=np.float64)
M_XYZ_TO_SRGB_T: Final[ArrayFloat] = _M_XYZ_TO_SRGB_BASE.T.copy()

# Bradford Adaptation.
# The inverse is kept as the published 7-digit table rather than computed, so
# results match other implementations of the same table bit for bit.
_M_BRADFORD = np.array([
    [ 0.8951000,  0.2664000, -0.1614000],
    [-0.7502000,  1.7135000,  0.0367000],
    [ 0.0389000, -0.0685000,  1.0296000]
], dtype=np.float64)
M_BRADFORD_T: Final[ArrayFloat] = _M_BRADFORD.T.copy()

_M_BRADFORD_INV = np.array([
    [ 0.9869929, -0.1470543,  0.1599627],
    [ 0.4323053,  0.5183603,  0.0492912],
    [-0.0085287,  0.0400428,  0.9684867]
], dtype=np.float64)
M_BRADFORD_INV_T: Final[ArrayFloat] = _M_BRADFORD_INV.T.copy()

for _m in (M_SRGB_TO_XYZ_T, M_XYZ_TO_SRGB_T, M_BRADFORD_T, M_BRADFORD_INV_T):
    _m.setflags(write=False)
del _m


# --- Runtime Configuration ---
# When True, the sRGB kernels use fastmath=False variants that preserve strict
# IEEE 754 semantics (inf / NaN propagation, no FP reassociation).
_STRICT_IEEE: bool = False


def set_strict_ieee(enabled: bool = True) -> None:
    """
    Toggle between fast (default) and strict IEEE 754 Numba kernels.

    Args:
        enabled: If True, use strict IEEE mode.
    """
    global _STRICT_IEEE
    _STRICT_IEEE = bool(enabled)


# =============================================================================
# 1. 3×3 MATRIX HELPERS
# =============================================================================

def as_matrix3(matrix: Union[ArrayFloat, Sequence[Sequence[float]]]) -> Matrix3:
    """
    Coerce *matrix* to a read-only ``(3, 3)`` float64 array.

    Raises:
        ValueError: If the input is not 3×3 or holds non-finite entries.
    """
    m = np.array(matrix, dtype=np.float64)
    if m.shape != (3, 3):
        raise ValueError(f"Transform matrix must be 3x3, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise ValueError("Transform matrix contains non-finite entries")
    m.setflags(write=False)
    return m


def apply_matrix(matrix: Matrix3, xyz: ArrayFloat) -> ArrayFloat:
    """Column-vector product ``matrix @ xyz`` for one triple or an (N, 3) stack."""
    return np.dot(xyz, matrix.T)


def invert_matrix3(matrix: Matrix3) -> Matrix3:
    """
    Inverse of a 3×3 matrix.

    Raises:
        DegenerateTransformError: If the matrix is singular.
    """
    try:
        return as_matrix3(np.linalg.inv(matrix))
    except np.linalg.LinAlgError as exc:
        raise DegenerateTransformError(f"Matrix is singular: {exc}") from exc


# =============================================================================
# 2. ROBUST DECORATORS
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Decorator to normalize inputs to (N, 3) and safeguard shape.

    - If input is (3,), returns (3,)
    - If input is (N, 3), returns (N, 3)
    """
    @functools.wraps(func)
    def wrapper(arr: ArrayFloat, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr = np.asarray(arr, dtype=np.float64)
        arr_in = np.ascontiguousarray(np.atleast_2d(arr))

        if arr_in.shape[-1] != 3:
            raise ValueError(f"Expected last dimension size 3, got {arr_in.shape[-1]}")

        res = func(arr_in, *args, **kwargs)

        if arr.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 3. LOW-LEVEL TRANSFER KERNELS (Numba)
# =============================================================================

@njit(cache=True, fastmath=True)
def _fast_gamma_srgb(linear: ArrayFloat) -> ArrayFloat:
    """
    Applies sRGB OETF (Gamma Correction).

    Standard: IEC 61966-2-1
    """
    out = np.empty_like(linear)
    linear_flat = linear.ravel()
    out_flat = out.ravel()

    for i in range(linear.size):
        v = linear_flat[i]
        if v <= 0.0031308:
            out_flat[i] = 12.92 * v
        else:
            out_flat[i] = 1.055 * (v ** (1.0/2.4)) - 0.055
    return out


@njit(cache=True, fastmath=True)
def _fast_inverse_gamma_srgb(srgb: ArrayFloat) -> ArrayFloat:
    """
    Applies sRGB EOTF (Inverse Gamma).

    Standard: IEC 61966-2-1
    """
    out = np.empty_like(srgb)
    srgb_flat = srgb.ravel()
    out_flat = out.ravel()

    for i in range(srgb.size):
        v = srgb_flat[i]
        if v <= 0.04045:
            out_flat[i] = v / 12.92
        else:
            out_flat[i] = ((v + 0.055) / 1.055) ** 2.4
    return out


@njit(cache=True, fastmath=False)
def _fast_gamma_srgb_strict(linear: ArrayFloat) -> ArrayFloat:
    """sRGB OETF — strict IEEE 754 variant."""
    out = np.empty_like(linear)
    linear_flat = linear.ravel()
    out_flat = out.ravel()
    for i in range(linear.size):
        v = linear_flat[i]
        if v <= 0.0031308:
            out_flat[i] = 12.92 * v
        else:
            out_flat[i] = 1.055 * (v ** (1.0/2.4)) - 0.055
    return out


@njit(cache=True, fastmath=False)
def _fast_inverse_gamma_srgb_strict(srgb: ArrayFloat) -> ArrayFloat:
    """sRGB EOTF — strict IEEE 754 variant."""
    out = np.empty_like(srgb)
    srgb_flat = srgb.ravel()
    out_flat = out.ravel()
    for i in range(srgb.size):
        v = srgb_flat[i]
        if v <= 0.04045:
            out_flat[i] = v / 12.92
        else:
            out_flat[i] = ((v + 0.055) / 1.055) ** 2.4
    return out


def _gamma_srgb(linear: ArrayFloat) -> ArrayFloat:
    """Dispatch sRGB OETF to fast or strict kernel."""
    if _STRICT_IEEE:
        return _fast_gamma_srgb_strict(linear)
    return _fast_gamma_srgb(linear)


def _inverse_gamma_srgb(srgb: ArrayFloat) -> ArrayFloat:
    """Dispatch sRGB EOTF to fast or strict kernel."""
    if _STRICT_IEEE:
        return _fast_inverse_gamma_srgb_strict(srgb)
    return _fast_inverse_gamma_srgb(srgb)


def _check_finite(values: ArrayFloat, stage: str) -> ArrayFloat:
    if not np.all(np.isfinite(values)):
        raise NumericOverflowError(f"Non-finite value after {stage}: {values}")
    return values


# =============================================================================
# 4. HEX CODEC
# =============================================================================

def hex_to_rgb255(hex_value: str) -> Tuple[int, int, int]:
    """Decode ``#RGB`` / ``#RRGGBB`` into 8-bit channels."""
    digits = normalize_hex(hex_value)
    return int(digits[1:3], 16), int(digits[3:5], 16), int(digits[5:7], 16)


def hex_to_rgb(hex_value: str) -> ArrayFloat:
    """Decode a hex colour into an sRGB float64 triple in [0, 1]."""
    return np.array(hex_to_rgb255(hex_value), dtype=np.float64) / 255.0


def rgb_to_hex(rgb255: Union[ArrayFloat, Sequence[float]]) -> str:
    """
    Encode 0..255 channels as canonical ``#RRGGBB``.

    Channels are rounded half-up and clamped.  Any NaN yields ``#000000`` and
    logs a fault instead of raising.
    """
    values = np.asarray(rgb255, dtype=np.float64)
    if np.any(np.isnan(values)):
        logger.error("NaN channel in rgb_to_hex: %s", values)
        return BLACK_HEX
    channels = np.clip(np.floor(values + 0.5), 0, 255).astype(np.int64)
    return "#{:02X}{:02X}{:02X}".format(*channels)


# =============================================================================
# 5. COLOR SPACE ENGINE
# =============================================================================

class ColorSpaceEngine:
    """Static sRGB ↔ XYZ conversions on the Y = 100 scale."""

    @staticmethod
    @handle_shapes
    def srgb_to_xyz(rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Converts sRGB [0..1] to XYZ [0..100] (D65).

        Args:
            rgb_array: Input sRGB data, shape (N, 3) or (3,).
        """
        linear = _inverse_gamma_srgb(np.clip(rgb_array, 0.0, 1.0))
        return np.dot(linear, M_SRGB_TO_XYZ_T) * _XYZ_SCALE

    @staticmethod
    @handle_shapes
    def xyz_to_linear_rgb(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts XYZ [0..100] (D65) to unclamped linear RGB."""
        return np.dot(xyz_array / _XYZ_SCALE, M_XYZ_TO_SRGB_T)

    @staticmethod
    @handle_shapes
    def xyz_to_srgb(xyz_array: ArrayFloat) -> ArrayFloat:
        """
        Converts XYZ [0..100] (D65) to display-referred sRGB [0..1].

        The OETF is applied first and the result clamped afterwards.  Negative
        linear values sit on the linear segment, so no NaN can arise there.
        """
        linear = np.dot(xyz_array / _XYZ_SCALE, M_XYZ_TO_SRGB_T)
        _check_finite(linear, "XYZ -> linear RGB")
        return np.clip(_gamma_srgb(linear), 0.0, 1.0)


# =============================================================================
# 6. CHROMATIC ADAPTATION
# =============================================================================

def _to_hashable(obj: Union[ArrayFloat, Sequence[float]]) -> Tuple[float, ...]:
    """Helper to ensure inputs are hashable tuples for caching."""
    if isinstance(obj, np.ndarray):
        return tuple(float(v) for v in obj.ravel())
    return tuple(float(v) for v in obj)


@functools.lru_cache(maxsize=16)
def _get_cached_bradford_matrix(src_white_tuple: Tuple[float, ...],
                                dst_white_tuple: Tuple[float, ...]) -> ArrayFloat:
    """
    Cached worker for the composite Bradford matrix.

    Since we operate on row vectors: M_comp = M_B.T @ Gain @ M_B_inv.T

    Raises:
        DegenerateTransformError: If any source-white cone response is zero.
    """
    src = np.array(src_white_tuple, dtype=np.float64)
    dst = np.array(dst_white_tuple, dtype=np.float64)

    src_lms = np.dot(src, M_BRADFORD_T)
    dst_lms = np.dot(dst, M_BRADFORD_T)

    if np.any(src_lms == 0.0):
        raise DegenerateTransformError(
            f"Source white {src_white_tuple} has a zero cone response {src_lms}"
        )
    gains = dst_lms / src_lms
    composite = M_BRADFORD_T @ np.diag(gains) @ M_BRADFORD_INV_T
    composite.setflags(write=False)
    return composite


class ChromaticAdaptation:
    """Handles White Point Adaptation (Bradford Method)."""

    @staticmethod
    def calc_transform_matrix(src_white: Union[ArrayFloat, Sequence[float]],
                              dst_white: Union[ArrayFloat, Sequence[float]]) -> ArrayFloat:
        """
        Computes the Bradford adaptation matrix between two white points.

        Returns:
            3x3 Adaptation Matrix (for row-vector multiplication).

        Raises:
            DegenerateTransformError: zero source cone response.
        """
        return _get_cached_bradford_matrix(_to_hashable(src_white), _to_hashable(dst_white))

    @staticmethod
    def adapt(xyz: ArrayFloat,
              src_white: Union[ArrayFloat, Sequence[float]],
              dst_white: Union[ArrayFloat, Sequence[float]]) -> ArrayFloat:
        """
        Adapts XYZ color(s) from *src_white* to *dst_white*.

        A degenerate source white is recovered locally: the input is returned
        unchanged and the fault is logged.
        """
        try:
            M = ChromaticAdaptation.calc_transform_matrix(src_white, dst_white)
        except DegenerateTransformError as exc:
            logger.warning("Skipping chromatic adaptation: %s", exc)
            return xyz
        return np.dot(xyz, M)


# =============================================================================
# 7. TRANSFORM ENTRY POINTS
# =============================================================================

def transform_color(hex_value: str, light: "LightSource",
                    source_white: Union[XYZColor, Sequence[float]] = D65_WHITE_POINT) -> str:
    """
    Re-colour *hex_value* as seen under *light*.

    Args:
        hex_value: Colour to transform (``#RGB`` or ``#RRGGBB``).
        light: Target light source.  The identity source returns the colour
            unchanged.
        source_white: White the colour is currently referred to (default D65).

    Returns:
        Canonical ``#RRGGBB``; ``#000000`` if the pipeline produced a
        non-finite value.

    Raises:
        InvalidHexError: malformed *hex_value*.
    """
    hex_norm = normalize_hex(hex_value)
    if light.is_identity:
        return hex_norm

    try:
        xyz = _check_finite(ColorSpaceEngine.srgb_to_xyz(hex_to_rgb(hex_norm)), "sRGB -> XYZ")
        if light.transform_matrix is not None:
            xyz = apply_matrix(light.transform_matrix, xyz)
        else:
            try:
                M = ChromaticAdaptation.calc_transform_matrix(source_white, light.white_point)
            except DegenerateTransformError as exc:
                logger.warning("Leaving %s untransformed under %s: %s", hex_norm, light.id, exc)
                return hex_norm
            xyz = np.dot(xyz, M)
        _check_finite(xyz, f"lighting transform ({light.id})")
        srgb = _check_finite(ColorSpaceEngine.xyz_to_srgb(xyz), "XYZ -> sRGB")
    except NumericOverflowError as exc:
        logger.error("Transform of %s under %s failed: %s", hex_norm, light.id, exc)
        return BLACK_HEX

    return rgb_to_hex(srgb * 255.0)


class PhotometricTransformEngine:
    """
    Light-id based front end with a bounded memo of ``(hex, light_id) → hex``.

    The cache belongs to the engine instance; each render context owns one
    engine, so there is no process-wide mutable state.

    Args:
        registry: Light registry used to resolve ids (built-in sources if omitted).
        cache: Bounded result cache (a fresh 1000-entry LRU cache if omitted).
    """

    def __init__(self, registry: Optional["LightRegistry"] = None,
                 cache: Optional[TransformCache] = None) -> None:
        if registry is None:
            from speckle_lighting import DEFAULT_REGISTRY
            registry = DEFAULT_REGISTRY
        self.registry: "LightRegistry" = registry
        self.cache: TransformCache = cache if cache is not None else TransformCache()

    def transform(self, hex_value: str, light_id: str) -> str:
        """
        Cached transform by light id.

        Unknown ids log a warning and return the colour unchanged.
        """
        hex_norm = normalize_hex(hex_value)
        try:
            light = self.registry.get(light_id)
        except KeyError:
            logger.warning("Unknown light source %r; colour left untouched", light_id)
            return hex_norm
        if light.is_identity:
            return hex_norm
        return self.cache.get_or_compute(
            (hex_norm, light.id), lambda: transform_color(hex_norm, light)
        )

    def transform_palette(self, colors: Iterable[Color], light_id: str) -> List[Color]:
        """Map every colour through ``transform``; ids, densities and order are kept."""
        out: List[Color] = []
        for color in colors:
            new_hex = self.transform(color.hex, light_id)
            out.append(color if new_hex == color.hex else
                       Color(id=color.id, hex=new_hex, density=color.density, name=color.name))
        return out

    def __repr__(self) -> str:
        return f"PhotometricTransformEngine(lights={len(self.registry)}, cache={self.cache!r})"
