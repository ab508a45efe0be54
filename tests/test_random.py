# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later
"""

import itertools

import numpy as np
import pytest

from speckle_random import LCG_MODULUS, SEED_SPAN, SeededRandomSource, new_seed


def reference_stream(seed, count):
    state = seed % 2**32
    out = []
    for _ in range(count):
        state = (state * 1664525 + 1013904223) % 2**32
        out.append(state / 2**32)
    return out


def test_first_draw_from_seed_zero():
    assert SeededRandomSource(0).next() == 1013904223 / 2**32


@pytest.mark.parametrize("seed", [0, 1, 42, 123456789, 2**32 - 1])
def test_matches_reference_lcg(seed):
    rng = SeededRandomSource(seed)
    assert [rng.next() for _ in range(50)] == reference_stream(seed, 50)


def test_batch_fill_is_bit_identical_to_scalar():
    scalar = SeededRandomSource(42)
    batch = SeededRandomSource(42)
    expected = [scalar.next() for _ in range(1000)]
    got = batch.fill(1000)
    assert got.dtype == np.float64
    assert got.tolist() == expected
    assert batch.state == scalar.state


def test_fill_continues_the_stream():
    rng = SeededRandomSource(7)
    head = rng.fill(3)
    tail = rng.fill(4)
    assert np.concatenate([head, tail]).tolist() == reference_stream(7, 7)


def test_fill_zero_and_negative():
    rng = SeededRandomSource(7)
    assert rng.fill(0).shape == (0,)
    assert rng.state == 7
    with pytest.raises(ValueError):
        rng.fill(-1)


def test_reseed_restarts():
    rng = SeededRandomSource(99)
    first = [rng() for _ in range(5)]
    rng.reseed(99)
    assert [rng() for _ in range(5)] == first


def test_wide_and_negative_seeds_are_reduced():
    assert SeededRandomSource(2**32 + 5).seed == 5
    assert SeededRandomSource(-1).seed == LCG_MODULUS - 1
    wide = SeededRandomSource(2**40 + 42)
    assert wide.fill(10).tolist() == SeededRandomSource(42 + (2**40 % 2**32)).fill(10).tolist()


def test_draws_are_in_unit_interval():
    values = list(itertools.islice(iter(SeededRandomSource(3)), 5000))
    assert min(values) >= 0.0
    assert max(values) < 1.0


def test_new_seed_range_and_determinism_with_generator():
    seeds = [new_seed(np.random.default_rng(0)) for _ in range(3)]
    assert len(set(seeds)) == 1
    assert 0 <= seeds[0] < SEED_SPAN
    assert isinstance(new_seed(), int)
