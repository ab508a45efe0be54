# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later
"""

import dataclasses

import numpy as np
import pytest

import speckle_renderer
from speckle_errors import InvalidDensityError
from speckle_palette import Color
from speckle_renderer import (
    ISOLATION_FILL, NEUTRAL_FILL, GapEliminationRenderer, PillowSurface,
    RasterSurface, RenderContext, RenderSettings, expand_polygon,
    expansion_factor, round_half_up, smoothing_enabled,
)


class RecordingSurface:
    """Surface stub that keeps every command it receives."""

    def __init__(self, width=100, height=100):
        self.width = width
        self.height = height
        self.clears = []
        self.fills = []

    def clear(self, fill_hex, smoothing):
        self.clears.append((fill_hex, smoothing))
        self.fills = []

    def fill_polygon(self, vertices, fill_hex):
        self.fills.append((np.asarray(vertices), fill_hex))


class NullTessellator:
    def tessellate(self, points, bounds):
        return [None] * len(points)


@pytest.fixture
def context():
    return RenderContext(RenderSettings(width=100, height=100, scale=0.1), seed=42)


# --- geometry policy ---------------------------------------------------------

@pytest.mark.parametrize("cells, factor", [(0, 0.0), (100, 0.002), (5000, 0.1), (10000, 0.2)])
def test_expansion_factor(cells, factor):
    assert expansion_factor(cells) == pytest.approx(factor)


def test_smoothing_cutoff():
    assert smoothing_enabled(7999)
    assert not smoothing_enabled(8000)
    assert not smoothing_enabled(10000)


def test_expand_polygon_about_vertex_mean():
    square = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]])
    np.testing.assert_allclose(expand_polygon(square, 0.5),
                               [[-0.5, -0.5], [2.5, -0.5], [2.5, 2.5], [-0.5, 2.5]])
    np.testing.assert_array_equal(expand_polygon(square, 0.0), square)


def test_round_half_up():
    assert round_half_up([0.5, 1.5, 2.5, -0.5, 2.4, -1.6]).tolist() == [1, 2, 3, 0, 2, -2]


def test_renderer_skips_missing_polygons():
    surface = RecordingSurface()
    renderer = GapEliminationRenderer(surface)
    assert renderer.begin(9000) is False
    assert surface.clears == [(NEUTRAL_FILL, False)]
    assert renderer.draw_cell(None, "#FF0000", 9000) is False
    assert renderer.draw_cell(np.array([[0.0, 0.0], [1.0, 1.0]]), "#FF0000", 9000) is False
    assert surface.fills == []


def test_renderer_rounds_expanded_vertices():
    surface = RecordingSurface()
    renderer = GapEliminationRenderer(surface)
    triangle = np.array([[10.2, 10.0], [20.0, 10.0], [15.0, 19.6]])
    assert renderer.draw_cell(triangle, "#123456", 10000)
    vertices, fill = surface.fills[0]
    assert fill == "#123456"
    assert vertices.dtype == np.int64
    np.testing.assert_array_equal(vertices, round_half_up(expand_polygon(triangle, 0.2)))


# --- settings ----------------------------------------------------------------

def test_settings_state_round_trip():
    settings = RenderSettings(width=320, height=200, scale=2.0, light_id="led-5000k",
                              cache_policy="insertion", neutral_fill="#fff")
    state = settings.get_state()
    assert state["neutral_fill"] == "#FFFFFF"
    assert RenderSettings.from_state({**state, "unknown": 1}) == settings
    assert settings.bounds.width == 320
    assert RenderSettings(scale=0.1).cell_count == 100


def test_settings_are_frozen_and_validated():
    with pytest.raises(dataclasses.FrozenInstanceError):
        RenderSettings().width = 10
    with pytest.raises(ValueError):
        RenderSettings(width=0)


# --- render pass -------------------------------------------------------------

def test_recording_surface_is_a_raster_surface():
    assert isinstance(RecordingSurface(), RasterSurface)
    assert isinstance(PillowSurface(4, 4), RasterSurface)


def test_empty_palette_renders_neutral_fill(context, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("sampler must not run for an empty palette")

    monkeypatch.setattr(speckle_renderer, "assign_indices", fail)
    surface = RecordingSurface()
    result = context.render([], surface)
    assert surface.clears == [(NEUTRAL_FILL, True)]
    assert surface.fills == []
    assert result.cells == []
    assert result.hit_tester().find(50, 50) is None


def test_render_pass(context, red_green):
    surface = RecordingSurface()
    result = context.render(red_green, surface)
    assert result.seed == 42
    assert result.cell_count == 100
    assert result.smoothing is True
    assert len(surface.fills) == 100
    assert {fill for _, fill in surface.fills} <= {"#FF0000", "#00FF00"}
    for (vertices, fill), cell in zip(surface.fills, result.cells):
        assert fill == cell.color_hex == red_green[cell.palette_index].hex


def test_rerender_reuses_point_field(context, red_green):
    first = context.render(red_green, RecordingSurface())
    edited = [red_green[0], Color("green", "#123456", 5.0)]
    second = context.render(edited, RecordingSurface())
    assert second.points is first.points
    assert second.seed == first.seed


def test_colour_edit_keeps_assignment(context, red_green):
    first = context.render(red_green, RecordingSurface())
    recoloured = [Color("red", "#ABCDEF", 1.0), red_green[1]]
    second = context.render(recoloured, RecordingSurface())
    np.testing.assert_array_equal(first.palette_indices, second.palette_indices)


def test_regenerate_changes_points(context, red_green):
    first = context.render(red_green, RecordingSurface())
    assert context.regenerate(7) == 7
    second = context.render(red_green, RecordingSurface())
    assert second.seed == 7
    assert not np.array_equal(first.points, second.points)


def test_isolation(context, red_green):
    surface = RecordingSurface()
    result = context.render(red_green, surface, isolated_color_id="red")
    fills = [fill for _, fill in surface.fills]
    assert set(fills) == {"#FF0000", ISOLATION_FILL}
    plain = context.render(red_green, RecordingSurface())
    np.testing.assert_array_equal(result.palette_indices, plain.palette_indices)
    for cell, fill in zip(result.cells, fills):
        assert (fill == "#FF0000") == (cell.palette_index == 0)


def test_lighting_recolours_palette(context, red_green):
    surface = RecordingSurface()
    result = context.render([Color("grey", "#808080")], surface, light_id="incandescent-a")
    warm = context.engine.transform("#808080", "incandescent-a")
    assert warm != "#808080"
    assert result.colors[0].hex == warm
    assert {fill for _, fill in surface.fills} == {warm}


def test_unknown_light_leaves_colours(context, red_green):
    surface = RecordingSurface()
    result = context.render(red_green, surface, light_id="moonlight")
    assert [c.hex for c in result.colors] == ["#FF0000", "#00FF00"]


def test_invalid_density_propagates(context):
    with pytest.raises(InvalidDensityError):
        context.render([Color("a", "#000", -1.0), Color("b", "#FFF")], RecordingSurface())


def test_all_cells_dropped_warns(red_green):
    context = RenderContext(RenderSettings(scale=0.1), seed=1, tessellator=NullTessellator())
    surface = RecordingSurface()
    with pytest.warns(UserWarning, match="No cells were drawn"):
        result = context.render(red_green, surface)
    assert surface.fills == []
    assert result.cells == []


def test_tessellator_length_mismatch(red_green):
    class Short:
        def tessellate(self, points, bounds):
            return []

    context = RenderContext(seed=1, tessellator=Short())
    with pytest.raises(ValueError):
        context.render(red_green, RecordingSurface())


def test_smoothing_follows_cutoff(red_green):
    context = RenderContext(RenderSettings(scale=0.1, smoothing_cutoff=50), seed=1)
    surface = RecordingSurface()
    assert context.render(red_green, surface).smoothing is False
    assert surface.clears[-1] == (NEUTRAL_FILL, False)


def test_private_cache_per_context(red_green):
    settings = RenderSettings(cache_size=3, cache_policy="insertion")
    a = RenderContext(settings, seed=1)
    b = RenderContext(settings, seed=1)
    assert a.engine.cache is not b.engine.cache
    assert a.engine.cache.maxsize == 3
    assert a.engine.cache.policy == "insertion"


# --- Pillow surface ----------------------------------------------------------

def test_pillow_surface_fill():
    surface = PillowSurface(20, 20)
    surface.clear("#FF0000", smoothing=False)
    surface.fill_polygon(np.array([[0, 0], [10, 0], [10, 10], [0, 10]]), "#0000FF")
    image = surface.image()
    assert image.size == (20, 20)
    assert image.getpixel((5, 5)) == (0, 0, 255)
    assert image.getpixel((15, 15)) == (255, 0, 0)


def test_pillow_surface_supersamples():
    surface = PillowSurface(20, 10, supersample=3)
    surface.clear("#00FF00", smoothing=True)
    assert surface.smoothing
    assert surface.image().size == (20, 10)
    assert surface.image().getpixel((10, 5)) == (0, 255, 0)


def test_pillow_surface_validation():
    with pytest.raises(ValueError):
        PillowSurface(0, 10)
    surface = PillowSurface(4, 4)
    surface.clear("#000000", smoothing=False)
    surface.fill_polygon(np.array([[0, 0], [3, 3]]), "#FFFFFF")
    assert surface.image().getpixel((1, 1)) == (0, 0, 0)


def test_no_background_between_cells(red_green):
    settings = RenderSettings(width=120, height=90, scale=0.5, smoothing_cutoff=0)
    context = RenderContext(settings, seed=3)
    surface = PillowSurface(120, 90)
    context.render(red_green, surface)
    pixels = np.asarray(surface.image())
    background = np.all(pixels == (0xF3, 0xF4, 0xF6), axis=-1)
    assert background.mean() < 0.01
