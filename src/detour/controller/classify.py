"""
Implements the classification of a finished search, and the decision whether to retry it
"""

from typing import Sequence

from detour.controller.core import Outcome
from detour.low.core import Point
from detour.low.func import assert_never

# a path of start and goal only is not a route -- the two coincide or the search degenerated
MIN_VALID_PATH_POINTS = 3


def classify(path: Sequence[Point] | None, goal_invalid: bool | None) -> Outcome:
    if path is not None and len(path) >= MIN_VALID_PATH_POINTS:
        return Outcome.valid_path
    if goal_invalid:
        return Outcome.invalid_goal
    return Outcome.no_path_found


def should_retry(outcome: Outcome, fail_count: int, retry_budget: int, has_retry_listener: bool) -> bool:
    """Only a missing path is worth another try, an invalid goal stays invalid whatever the
    constraints are"""
    if outcome == Outcome.valid_path or outcome == Outcome.invalid_goal:
        return False
    elif outcome == Outcome.no_path_found:
        return has_retry_listener and fail_count < retry_budget
    else:
        assert_never(outcome)
