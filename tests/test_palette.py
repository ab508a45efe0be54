# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later
"""

import logging
import math

import pytest

from speckle_errors import InvalidDensityError, InvalidHexError, SpeckleError
from speckle_palette import (
    DEFAULT_PALETTE, MAX_COLORS, Color, Palette, color_probability,
    create_color, is_valid_density, is_valid_hex, normalize_hex,
    parse_density, total_density,
)


@pytest.mark.parametrize("raw, expected", [
    ("#ff0000", "#FF0000"),
    ("FF0000", "#FF0000"),
    ("#abc", "#AABBCC"),
    ("abc", "#AABBCC"),
    ("  #12aBcD ", "#12ABCD"),
])
def test_normalize_hex(raw, expected):
    assert normalize_hex(raw) == expected


@pytest.mark.parametrize("raw", ["", "#", "#12", "#1234", "#GGGGGG", "#1234567", "red", None, 0xFF0000])
def test_normalize_hex_rejects(raw):
    with pytest.raises(InvalidHexError):
        normalize_hex(raw)
    assert not is_valid_hex(raw)


def test_invalid_hex_is_value_error():
    with pytest.raises(ValueError):
        normalize_hex("nope")
    assert issubclass(InvalidHexError, SpeckleError)


@pytest.mark.parametrize("value, ok", [
    (0, True), (0.0, True), (2.5, True), (10, True),
    (-0.1, False), (math.nan, False), (math.inf, False), (True, False), ("1", False),
])
def test_is_valid_density(value, ok):
    assert is_valid_density(value) is ok


@pytest.mark.parametrize("text, expected", [
    ("2.5", 2.5), ("0", 0.0), ("abc", 1.0), ("-2", 1.0), ("inf", 1.0), ("nan", 1.0), (None, 1.0),
])
def test_parse_density(text, expected):
    assert parse_density(text) == expected


def test_parse_density_custom_default():
    assert parse_density("x", default=3.0) == 3.0


def test_color_canonicalises_hex():
    assert Color("x", "#abc").hex == "#AABBCC"
    with pytest.raises(InvalidHexError):
        Color("x", "#nothex")


def test_color_does_not_validate_density():
    assert math.isnan(Color("x", "#000", math.nan).density)


def test_create_color_ids_are_unique():
    a = create_color("#111")
    b = create_color("#111")
    assert a.id != b.id
    assert a.hex == b.hex == "#111111"
    with pytest.raises(InvalidDensityError):
        create_color("#111", -1)


def test_total_density_and_probability():
    colors = [Color("a", "#000", 3.0), Color("b", "#FFF", 1.0)]
    total = total_density(colors)
    assert total == 4.0
    assert color_probability(colors[0], total, 2) == pytest.approx(0.75)
    assert color_probability(colors[0], 0.0, 2) == pytest.approx(0.5)
    assert color_probability(colors[0], 0.0, 0) == 0.0


def test_default_palette():
    palette = Palette.from_pairs(DEFAULT_PALETTE)
    assert [c.hex for c in palette] == ["#AAAAAA", "#BBBBBB"]
    assert [c.density for c in palette] == [1.0, 1.0]


def test_palette_cap(caplog):
    palette = Palette()
    for i in range(MAX_COLORS):
        assert palette.add(f"#{i:06X}") is not None
    assert palette.is_full
    with caplog.at_level(logging.INFO, logger="speckle_palette"):
        assert palette.add("#FFFFFF") is None
    assert len(palette) == MAX_COLORS
    assert "full" in caplog.text


def test_palette_constructor_truncates_with_warning(caplog):
    colors = [Color(str(i), "#000") for i in range(12)]
    with caplog.at_level(logging.WARNING, logger="speckle_palette"):
        palette = Palette(colors)
    assert len(palette) == MAX_COLORS
    assert "limit" in caplog.text


def test_palette_edits_keep_order():
    palette = Palette.from_pairs([("#F00", 1), ("#0F0", 2), ("#00F", 3)])
    ids = [c.id for c in palette]
    palette.set_hex(ids[1], "#123456")
    palette.set_density(ids[0], 5)
    assert [c.id for c in palette] == ids
    assert palette[1].hex == "#123456"
    assert palette[0].density == 5.0
    assert palette.probability(ids[0]) == pytest.approx(5 / 10)

    removed = palette.remove(ids[1])
    assert removed.id == ids[1]
    assert [c.id for c in palette] == [ids[0], ids[2]]


def test_palette_unknown_id():
    palette = Palette.from_pairs([("#F00", 1)])
    with pytest.raises(KeyError):
        palette.get("missing")
    with pytest.raises(InvalidDensityError):
        palette.set_density(palette[0].id, math.nan)
