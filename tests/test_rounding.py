"""
Tests for half-up rounding of displayed values.
"""
import pytest

from habit_metrics.engine.completion import progress_percent
from habit_metrics.engine.rounding import round_half_up, round_tenth


@pytest.mark.parametrize("value, expected", [
    (12.5, 13),
    (0.5, 1),
    (2.5, 3),
    (12.4999, 12),
    (42.857142857142854, 43),
    (0, 0),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize("value, expected", [
    (2.25, 2.3),
    (0.05, 0.1),
    (1.35, 1.4),
    (33.33333333333333, 33.3),
    (2.0, 2.0),
])
def test_round_tenth(value, expected):
    assert round_tenth(value) == expected


def test_progress_percent_keeps_one_decimal():
    assert progress_percent(1, 8) == 12.5
    assert progress_percent(2, 3) == 66.7
