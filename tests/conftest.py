# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Shared fixtures.
"""

import pytest

from speckle_colorengine import set_strict_ieee
from speckle_palette import Color


@pytest.fixture
def red_green():
    return [Color("red", "#FF0000", 1.0), Color("green", "#00FF00", 1.0)]


@pytest.fixture
def red_blue_3_1():
    return [Color("red", "#FF0000", 3.0), Color("blue", "#0000FF", 1.0)]


@pytest.fixture
def zero_greys():
    return [Color("a", "#AAAAAA", 0.0), Color("b", "#BBBBBB", 0.0)]


@pytest.fixture
def strict_ieee():
    set_strict_ieee(True)
    yield
    set_strict_ieee(False)
