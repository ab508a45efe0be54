# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_renderer.py — Render pass and seam-free polygon rasterisation.

One pass
--------
    palette + scale + seed
        → PointFieldGenerator     (cached; new seed only on regenerate)
        → Tessellator             (clipped Voronoi cells)
        → PhotometricTransformEngine (palette re-coloured for the light)
        → assign_indices          (one seeded draw per cell index)
        → GapEliminationRenderer  (expand, round, fill)

Every trigger recomputes the full assignment and raster; there is no partial
update.

Seams
-----
Neighbouring polygons filled independently can leave a hairline of
background between them.  Each polygon is therefore pushed outward from its
vertex mean by ``(cell_count / 10000) * 0.2`` before filling, and all vertices
are rounded to whole pixels.  Smoothing is switched off from 8000 cells up.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import asdict, dataclass, fields
from typing import (
    Any, Dict, Final, List, NamedTuple, Optional, Protocol, Sequence,
    runtime_checkable,
)

import numpy as np
from PIL import Image, ImageDraw

from speckle_cache import DEFAULT_CACHE_SIZE, EvictionPolicy, TransformCache
from speckle_colorengine import PhotometricTransformEngine, hex_to_rgb255
from speckle_hittest import CellHitTester
from speckle_lighting import DEFAULT_REGISTRY, NATURAL_LIGHT_ID, LightRegistry
from speckle_palette import Color, normalize_hex
from speckle_points import MAX_CELLS, PointFieldGenerator, scale_to_cell_count
from speckle_sampler import assign_indices, densities_of
from speckle_tessellation import Bounds, Polygon, ScipyVoronoiTessellator, Tessellator

__all__ = [
    "MAX_EXPANSION",
    "SMOOTHING_CUTOFF",
    "NEUTRAL_FILL",
    "ISOLATION_FILL",
    "expansion_factor",
    "smoothing_enabled",
    "expand_polygon",
    "round_half_up",
    "RasterSurface",
    "PillowSurface",
    "GapEliminationRenderer",
    "RenderSettings",
    "RenderedCell",
    "RenderResult",
    "RenderContext",
]

logger = logging.getLogger(__name__)

MAX_EXPANSION: Final[float] = 0.2
SMOOTHING_CUTOFF: Final[int] = 8000
NEUTRAL_FILL: Final[str] = "#F3F4F6"
ISOLATION_FILL: Final[str] = "#E5E7EB"


# =============================================================================
# 1. GEOMETRY POLICY
# =============================================================================

def expansion_factor(cell_count: int) -> float:
    """0 with no cells, rising linearly to 0.2 at 10 000 cells."""
    return (cell_count / MAX_CELLS) * MAX_EXPANSION


def smoothing_enabled(cell_count: int, cutoff: int = SMOOTHING_CUTOFF) -> bool:
    return cell_count < cutoff


def expand_polygon(polygon: Polygon, factor: float) -> Polygon:
    """``v' = c + (v - c) * (1 + factor)`` with ``c`` the vertex mean."""
    poly = np.asarray(polygon, dtype=np.float64)
    if factor == 0.0:
        return poly
    centroid = poly.mean(axis=0)
    return centroid + (poly - centroid) * (1.0 + factor)


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Pixel rounding with .5 going up (``np.rint`` would round half to even)."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5).astype(np.int64)


# =============================================================================
# 2. RASTER SURFACES
# =============================================================================

@runtime_checkable
class RasterSurface(Protocol):
    """
    Anything that can take a flat background and filled closed polygons.

    ``clear`` starts a new frame and fixes whether smoothing is used for it.
    """
    width: int
    height: int

    def clear(self, fill_hex: str, smoothing: bool) -> None: ...
    def fill_polygon(self, vertices: np.ndarray, fill_hex: str) -> None: ...


class PillowSurface:
    """
    ``PIL.Image`` backed surface.

    Smoothing is implemented by supersampling: the frame is drawn at
    ``supersample`` times the size and reduced with a Lanczos filter in
    ``image()``.  With smoothing off, polygons land directly on the pixel grid.
    """

    def __init__(self, width: int, height: int, supersample: int = 2) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.supersample = max(1, int(supersample))
        self._factor = 1
        self._image = Image.new("RGB", (self.width, self.height), NEUTRAL_FILL)
        self._draw = ImageDraw.Draw(self._image)

    @property
    def smoothing(self) -> bool:
        return self._factor > 1

    def clear(self, fill_hex: str, smoothing: bool) -> None:
        self._factor = self.supersample if smoothing else 1
        size = (self.width * self._factor, self.height * self._factor)
        self._image = Image.new("RGB", size, hex_to_rgb255(fill_hex))
        self._draw = ImageDraw.Draw(self._image)

    def fill_polygon(self, vertices: np.ndarray, fill_hex: str) -> None:
        pts = np.asarray(vertices) * self._factor
        if len(pts) < 3:
            return
        self._draw.polygon([(int(x), int(y)) for x, y in pts],
                           fill=hex_to_rgb255(fill_hex), outline=None)

    def image(self) -> Image.Image:
        """The finished frame at the surface's nominal size."""
        if self._factor == 1:
            return self._image.copy()
        return self._image.resize((self.width, self.height), Image.Resampling.LANCZOS)

    def save(self, path: str) -> None:
        self.image().save(path)


class GapEliminationRenderer:
    """Writes cells onto a ``RasterSurface`` with seam-hiding expansion."""

    __slots__ = ("surface",)

    def __init__(self, surface: RasterSurface) -> None:
        self.surface = surface

    def begin(self, cell_count: int, fill_hex: str = NEUTRAL_FILL,
              smoothing_cutoff: int = SMOOTHING_CUTOFF) -> bool:
        """Clear the surface for a new frame; returns whether smoothing is on."""
        smoothing = smoothing_enabled(cell_count, smoothing_cutoff)
        self.surface.clear(fill_hex, smoothing)
        return smoothing

    def draw_cell(self, polygon: Optional[Polygon], fill_hex: str, cell_count: int) -> bool:
        """
        Expand, round and fill one cell.  Returns False for a missing polygon.
        """
        if polygon is None or len(polygon) < 3:
            return False
        expanded = expand_polygon(polygon, expansion_factor(cell_count))
        self.surface.fill_polygon(round_half_up(expanded), fill_hex)
        return True


# =============================================================================
# 3. SETTINGS
# =============================================================================

@dataclass(slots=True, frozen=True)
class RenderSettings:
    """Per-context configuration.  ``from_state`` ignores unknown keys."""
    width: int = 600
    height: int = 600
    scale: float = 1.0
    light_id: str = NATURAL_LIGHT_ID
    cache_size: int = DEFAULT_CACHE_SIZE
    cache_policy: EvictionPolicy = "lru"
    smoothing_cutoff: int = SMOOTHING_CUTOFF
    supersample: int = 2
    neutral_fill: str = NEUTRAL_FILL
    isolation_fill: str = ISOLATION_FILL

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Canvas size must be positive, got {self.width}x{self.height}")
        object.__setattr__(self, "neutral_fill", normalize_hex(self.neutral_fill))
        object.__setattr__(self, "isolation_fill", normalize_hex(self.isolation_fill))

    @property
    def cell_count(self) -> int:
        return scale_to_cell_count(self.scale)

    @property
    def bounds(self) -> Bounds:
        return Bounds.from_size(self.width, self.height)

    def get_state(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "RenderSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in state.items() if k in known})


# =============================================================================
# 4. RENDER PASS
# =============================================================================

class RenderedCell(NamedTuple):
    """Per-cell output of a pass; rebuilt every pass, never stored."""
    index: int
    center: tuple
    polygon: Optional[Polygon]
    palette_index: int
    color_hex: str


@dataclass(slots=True)
class RenderResult:
    seed: int
    cell_count: int
    light_id: str
    smoothing: bool
    points: np.ndarray
    polygons: List[Optional[Polygon]]
    palette_indices: np.ndarray
    colors: List[Color]
    bounds: Bounds
    isolated_color_id: Optional[str] = None

    @property
    def cells(self) -> List[RenderedCell]:
        out: List[RenderedCell] = []
        for i, polygon in enumerate(self.polygons):
            if polygon is None:
                continue
            p = int(self.palette_indices[i])
            out.append(RenderedCell(i, (float(self.points[i, 0]), float(self.points[i, 1])),
                                    polygon, p, self.colors[p].hex))
        return out

    def hit_tester(self) -> CellHitTester:
        return CellHitTester(self.points, self.palette_indices, self.colors,
                             self.bounds, self.polygons)


class RenderContext:
    """
    Owns everything a sequence of renders shares: seed and point cache, light
    registry, transform cache and tessellator.

    Args:
        settings: Canvas and policy configuration.
        seed: Initial seed (random if omitted).
        tessellator: Voronoi backend (SciPy by default).
        registry: Light registry (built-ins by default).
    """

    def __init__(self, settings: Optional[RenderSettings] = None,
                 seed: Optional[int] = None,
                 tessellator: Optional[Tessellator] = None,
                 registry: Optional[LightRegistry] = None) -> None:
        self.settings = settings if settings is not None else RenderSettings()
        self.points = PointFieldGenerator(seed)
        self.tessellator: Tessellator = (
            tessellator if tessellator is not None else ScipyVoronoiTessellator()
        )
        self.engine = PhotometricTransformEngine(
            registry if registry is not None else DEFAULT_REGISTRY,
            TransformCache(self.settings.cache_size, self.settings.cache_policy),
        )

    @property
    def seed(self) -> int:
        return self.points.seed

    def regenerate(self, seed: Optional[int] = None) -> int:
        return self.points.regenerate(seed)

    def render(self, colors: Sequence[Color], surface: RasterSurface,
               scale: Optional[float] = None,
               light_id: Optional[str] = None,
               isolated_color_id: Optional[str] = None) -> RenderResult:
        """
        Run one full pass onto *surface*.

        Args:
            colors: Palette in draw order.
            surface: Target; its size defines the canvas.
            scale: Overrides ``settings.scale``.
            light_id: Overrides ``settings.light_id``.
            isolated_color_id: If set, only cells of this colour keep their
                colour; all others get the isolation fill.

        Raises:
            InvalidDensityError: a colour has a negative/NaN/infinite density.
        """
        s = self.settings
        scale = s.scale if scale is None else scale
        light_id = s.light_id if light_id is None else light_id
        cell_count = scale_to_cell_count(scale)
        bounds = Bounds.from_size(surface.width, surface.height)
        renderer = GapEliminationRenderer(surface)

        if not colors:
            smoothing = renderer.begin(cell_count, s.neutral_fill, s.smoothing_cutoff)
            return RenderResult(self.seed, cell_count, light_id, smoothing,
                                np.empty((0, 2)), [], np.empty(0, dtype=np.int64),
                                [], bounds, isolated_color_id)

        # Fail on unusable densities before any geometry is built.
        densities_of(colors)
        field = self.points.field(float(surface.width), float(surface.height), cell_count)
        lit_colors = self.engine.transform_palette(colors, light_id)
        polygons = self.tessellator.tessellate(field.points, bounds)
        if len(polygons) != cell_count:
            raise ValueError(f"Tessellator returned {len(polygons)} cells for {cell_count} sites")
        indices = assign_indices(lit_colors, field.seed, cell_count)

        smoothing = renderer.begin(cell_count, s.neutral_fill, s.smoothing_cutoff)
        drawn = 0
        for i, polygon in enumerate(polygons):
            color = lit_colors[int(indices[i])]
            fill = color.hex
            if isolated_color_id is not None and color.id != isolated_color_id:
                fill = s.isolation_fill
            if renderer.draw_cell(polygon, fill, cell_count):
                drawn += 1

        if drawn == 0 and cell_count > 0:
            warnings.warn(f"No cells were drawn for {cell_count} sites; "
                          "the tessellator returned no polygons.", stacklevel=2)
        logger.debug("Rendered %d/%d cells (seed %d, light %s, smoothing %s)",
                     drawn, cell_count, field.seed, light_id, smoothing)

        return RenderResult(field.seed, cell_count, light_id, smoothing, field.points,
                            polygons, indices, lit_colors, bounds, isolated_color_id)


# =============================================================================
# Demo
# =============================================================================
if __name__ == "__main__":
    from speckle_palette import Palette

    logging.basicConfig(level=logging.INFO)

    palette = Palette.from_pairs([("#D94F30", 3), ("#2F5D8C", 2), ("#F2E8CF", 1)])
    context = RenderContext(RenderSettings(width=400, height=400, scale=1.5), seed=42)
    canvas = PillowSurface(400, 400)

    for light in ("natural", "incandescent-a", "red-660nm"):
        result = context.render(palette.colors, canvas, light_id=light)
        canvas.save(f"speckle_{light}.png")
        hover = result.hit_tester().find(200, 200)
        logger.info("%s: %d cells, centre cell %s (p=%.2f)", light, len(result.cells),
                    hover.color.hex if hover else None, hover.probability if hover else math.nan)
