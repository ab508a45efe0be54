# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_lighting.py — Light-source records and the static registry.

Exactly one id, ``natural``, is reserved for the identity source: colours are
passed through untouched.  Every other source either carries a direct 3×3 XYZ
matrix (narrow-band emitters) or is handled by Bradford adaptation to its
white point.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Final, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from speckle_colorengine import D65_WHITE_POINT, Matrix3, XYZColor, as_matrix3

__all__ = [
    "NATURAL_LIGHT_ID",
    "SpectralProfile",
    "LightSource",
    "LightRegistry",
    "NATURAL_LIGHT",
    "BUILTIN_LIGHT_SOURCES",
    "DEFAULT_REGISTRY",
]

NATURAL_LIGHT_ID: Final[str] = "natural"


class SpectralProfile(str, enum.Enum):
    CONTINUOUS = "continuous"
    NARROW = "narrow"
    MIXED = "mixed"


@dataclass(slots=True, frozen=True, eq=False)
class LightSource:
    """
    One viewing condition.

    ``transform_matrix`` (if given) is applied to XYZ column vectors and takes
    precedence over ``white_point`` adaptation.
    """
    id: str
    name: str
    white_point: XYZColor
    spectral_profile: SpectralProfile = SpectralProfile.CONTINUOUS
    color_temperature: Optional[float] = None
    transform_matrix: Optional[Matrix3] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.white_point, XYZColor):
            object.__setattr__(self, "white_point", XYZColor(*self.white_point))
        object.__setattr__(self, "spectral_profile", SpectralProfile(self.spectral_profile))
        if self.transform_matrix is not None:
            object.__setattr__(self, "transform_matrix", as_matrix3(self.transform_matrix))

    @property
    def is_identity(self) -> bool:
        return self.id == NATURAL_LIGHT_ID

    def __repr__(self) -> str:
        return (f"LightSource(id={self.id!r}, white={tuple(round(v, 3) for v in self.white_point)}, "
                f"profile={self.spectral_profile.value})")


class LightRegistry:
    """
    Immutable, ordered set of light sources keyed by id.

    The registry must contain the identity source under ``natural``; it is
    added automatically if the caller omits it.

    Raises:
        ValueError: duplicate ids, or a non-identity source registered as ``natural``.
    """

    __slots__ = ("_sources",)

    def __init__(self, sources: Sequence[LightSource]) -> None:
        ordered: Dict[str, LightSource] = {}
        if not any(s.id == NATURAL_LIGHT_ID for s in sources):
            ordered[NATURAL_LIGHT_ID] = NATURAL_LIGHT
        for source in sources:
            if source.id in ordered:
                raise ValueError(f"Duplicate light source id {source.id!r}")
            if source.id == NATURAL_LIGHT_ID and source.transform_matrix is not None:
                raise ValueError("The 'natural' light source must not carry a transform matrix")
            ordered[source.id] = source
        self._sources: Tuple[Tuple[str, LightSource], ...] = tuple(ordered.items())

    def get(self, light_id: str) -> LightSource:
        for key, source in self._sources:
            if key == light_id:
                return source
        raise KeyError(f"Unknown light source '{light_id}'. Available: {', '.join(self.ids())}")

    def __contains__(self, light_id: object) -> bool:
        return any(key == light_id for key, _ in self._sources)

    def __iter__(self) -> Iterator[LightSource]:
        return (source for _, source in self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def ids(self) -> List[str]:
        return [key for key, _ in self._sources]

    @property
    def natural(self) -> LightSource:
        return self.get(NATURAL_LIGHT_ID)


def _white(values: Union[Sequence[float], np.ndarray]) -> XYZColor:
    return XYZColor(*(float(v) for v in values))


NATURAL_LIGHT: Final[LightSource] = LightSource(
    id=NATURAL_LIGHT_ID,
    name="Natural (Daylight)",
    white_point=D65_WHITE_POINT,
    color_temperature=6504,
    spectral_profile=SpectralProfile.CONTINUOUS,
    description="Reference daylight; colours are shown as entered.",
)

BUILTIN_LIGHT_SOURCES: Final[Tuple[LightSource, ...]] = (
    NATURAL_LIGHT,
    LightSource(
        id="incandescent-a",
        name="Incandescent",
        white_point=_white((109.85, 100.0, 35.585)),
        color_temperature=2856,
        spectral_profile=SpectralProfile.CONTINUOUS,
        description="Warm tungsten bulb (CIE illuminant A, 2856 K).",
    ),
    LightSource(
        id="fluorescent-f2",
        name="Fluorescent",
        white_point=_white((99.19, 100.0, 67.39)),
        color_temperature=4230,
        spectral_profile=SpectralProfile.MIXED,
        description="Cool white fluorescent tube (F2, 4230 K).",
    ),
    LightSource(
        id="led-5000k",
        name="LED Cool White",
        white_point=_white((96.42, 100.0, 82.51)),
        color_temperature=5000,
        spectral_profile=SpectralProfile.MIXED,
        description="Phosphor-converted white LED (5000 K).",
    ),
    LightSource(
        id="red-660nm",
        name="Red LED (660nm)",
        white_point=_white((41.24, 21.26, 1.93)),
        spectral_profile=SpectralProfile.NARROW,
        transform_matrix=as_matrix3([
            [0.8, 0.0, 0.0],
            [0.3, 0.1, 0.0],
            [0.0, 0.0, 0.05],
        ]),
        description="Narrow-band deep red emitter; not a white illuminant.",
    ),
)

DEFAULT_REGISTRY: Final[LightRegistry] = LightRegistry(BUILTIN_LIGHT_SOURCES)
