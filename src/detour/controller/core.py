"""
Core data structures: Outcome, StepResult, Request, Listeners
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Sequence

import randomname

from detour.low.core import Point, SearchContext

if TYPE_CHECKING:
    from detour.controller.engine import SearchEngine


class Outcome(int, Enum):
    valid_path = 0
    no_path_found = 1
    invalid_goal = 2


class StepResult(NamedTuple):
    finished: bool
    path: Sequence[Point] | None = None
    # None means the engine does not know, which we treat as False
    goal_invalid: bool | None = None


class StartResult(NamedTuple):
    """What constructing an engine gives back: either a live engine to be stepped, or an
    already finished search (trivial goal, cached path, unresolvable goal...)"""

    engine: "SearchEngine | None"
    finished: bool
    path: Sequence[Point] | None = None
    goal_invalid: bool | None = None

    @classmethod
    def done(cls, path: Sequence[Point] | None, goal_invalid: bool | None = None) -> "StartResult":
        return cls(engine=None, finished=True, path=path, goal_invalid=goal_invalid)

    @classmethod
    def running(cls, engine: "SearchEngine") -> "StartResult":
        return cls(engine=engine, finished=False)


class DriveData(NamedTuple):
    gx: float | None = None
    gz: float | None = None
    move_forwards: bool | None = None
    max_speed: float | None = None


EntryPoint = Callable[[], StartResult]


@dataclass
class Request:
    context: SearchContext
    retry_budget: int
    entry: EntryPoint
    started_at: int
    fail_count: int = 0
    elapsed_ms: int = 0
    # set while the retry listener runs, cleared when it restarts the search
    awaiting_retry: bool = False
    # a restart from within the retry listener which finished at once, resolved by `finish`
    pending: StartResult | None = None
    name: str = field(default_factory=lambda: randomname.get_name())


# (controller, success, course, goal_invalid), preceded by the owner if registered with one
ResultCallback = Callable[..., Any]
# (controller, context, is_last_retry, attempt), preceded by the owner if registered with one
RetryCallback = Callable[..., Any]


@dataclass
class Listeners:
    owner: Any = None
    on_result: ResultCallback | None = None
    on_retry: RetryCallback | None = None

    def call(self, callback: Callable[..., Any], *args: Any) -> None:
        if self.owner is not None:
            callback(self.owner, *args)
        else:
            callback(*args)
