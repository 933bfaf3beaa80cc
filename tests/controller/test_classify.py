"""
Tests the validity rule and the retry decision
"""

import pytest

from detour.controller.classify import classify, should_retry
from detour.controller.core import Outcome
from detour.low.core import Point


def _path(n: int) -> list[Point]:
    return [Point(float(i), 0.0) for i in range(n)]


@pytest.mark.parametrize("n", range(0, 7))
def test_valid_iff_more_than_two_points(n):
    expected = Outcome.valid_path if n > 2 else Outcome.no_path_found
    assert classify(_path(n), False) == expected
    assert classify(_path(n), None) == expected


@pytest.mark.parametrize("path", [None, [], _path(1), _path(2)])
def test_short_path_with_invalid_goal(path):
    assert classify(path, True) == Outcome.invalid_goal


def test_valid_path_wins_over_invalid_goal():
    assert classify(_path(3), True) == Outcome.valid_path


def test_absent_path():
    assert classify(None, None) == Outcome.no_path_found
    assert classify(None, False) == Outcome.no_path_found


@pytest.mark.parametrize(
    "outcome, fail_count, budget, listener, expected",
    [
        (Outcome.no_path_found, 0, 1, True, True),
        (Outcome.no_path_found, 1, 2, True, True),
        (Outcome.no_path_found, 2, 2, True, False),
        (Outcome.no_path_found, 0, 0, True, False),
        (Outcome.no_path_found, 0, 3, False, False),
        (Outcome.invalid_goal, 0, 3, True, False),
        (Outcome.valid_path, 0, 3, True, False),
    ],
)
def test_should_retry(outcome, fail_count, budget, listener, expected):
    assert should_retry(outcome, fail_count, budget, listener) == expected


def test_should_retry_rejects_unknown():
    with pytest.raises(TypeError):
        should_retry("bogus", 0, 1, True)  # type: ignore
