# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later
"""

import logging
import math

import numpy as np
import pytest

from speckle_points import (
    MAX_CELLS, MIN_CELLS, PointFieldGenerator, generate_points, scale_to_cell_count,
)
from speckle_random import SeededRandomSource


@pytest.mark.parametrize("scale, expected", [
    (0.1, 100),
    (4.0, 10000),
    (1.0, 2385),
    (0.0, MIN_CELLS),
    (-3.0, MIN_CELLS),
    (12.0, MAX_CELLS),
])
def test_scale_to_cell_count(scale, expected):
    assert scale_to_cell_count(scale) == expected


def test_non_finite_scale_degrades(caplog):
    with caplog.at_level(logging.WARNING, logger="speckle_points"):
        assert scale_to_cell_count(math.nan) == MIN_CELLS
        assert scale_to_cell_count(math.inf) == MIN_CELLS
    assert "Non-finite scale" in caplog.text


def test_points_follow_the_shared_stream():
    points = generate_points(100, 100.0, 50.0, 42)
    rng = SeededRandomSource(42)
    assert points.shape == (100, 2)
    for x, y in points[:10]:
        assert x == rng.next() * 100.0
        assert y == rng.next() * 50.0


def test_points_are_deterministic_and_in_bounds():
    a = generate_points(500, 300.0, 200.0, 7)
    b = generate_points(500, 300.0, 200.0, 7)
    np.testing.assert_array_equal(a, b)
    assert np.all(a[:, 0] >= 0) and np.all(a[:, 0] < 300.0)
    assert np.all(a[:, 1] >= 0) and np.all(a[:, 1] < 200.0)
    assert not a.flags.writeable


def test_generate_points_edge_cases():
    assert generate_points(0, 10, 10, 1).shape == (0, 2)
    with pytest.raises(ValueError):
        generate_points(-1, 10, 10, 1)


def test_generator_caches_field():
    gen = PointFieldGenerator(seed=42)
    first = gen.field(100.0, 100.0, 100)
    assert gen.field(100.0, 100.0, 100) is first
    assert first.seed == 42


def test_resize_keeps_seed():
    gen = PointFieldGenerator(seed=5)
    small = gen.field(100.0, 100.0, 200)
    wide = gen.field(200.0, 100.0, 200)
    assert wide.seed == small.seed == 5
    np.testing.assert_allclose(wide.points[:, 0], small.points[:, 0] * 2)
    np.testing.assert_array_equal(wide.points[:, 1], small.points[:, 1])


def test_regenerate_is_the_only_seed_change():
    gen = PointFieldGenerator(seed=1)
    before = gen.field(100.0, 100.0, 100)
    assert gen.regenerate(2) == 2
    after = gen.field(100.0, 100.0, 100)
    assert after.seed == 2
    assert not np.array_equal(before.points, after.points)


def test_regenerate_without_seed_issues_one():
    gen = PointFieldGenerator(seed=1)
    seed = gen.regenerate()
    assert isinstance(seed, int)
    assert gen.seed == seed
