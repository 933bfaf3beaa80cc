"""
Implements the PathfinderController: the tick driven state machine which starts a search, steps
its engine until it finishes, and then either retries with a new context or reports to the
listeners.

Usage from the owner of a vehicle:
```
controller = PathfinderController(engines)
controller.register_listeners(strategy, Strategy.on_pathfinding_finished, Strategy.on_pathfinding_retry)
controller.find_path_to_node(SearchContext(max_fruit_percent=10), "unload_point", 0, -5, retry_budget=2)
# and then on every tick
controller.poll(dt)
```
with the retry listener relaxing the context and restarting the search itself:
```
def on_pathfinding_retry(self, controller, context, is_last_retry, attempt):
    if attempt == 1:
        context.ignore_fruit()
    else:
        context.allow_off_field()
    controller.retry(context)
```
The result listener is then called exactly once, with the course when a path was found, or with
`success=False` when the goal is invalid or all retries failed.
"""

import logging
from time import monotonic_ns
from typing import Any, Callable, Sequence

from detour.config import ControllerConfig
from detour.controller.classify import classify, should_retry
from detour.controller.core import DriveData, EntryPoint, Listeners, Outcome, Request, ResultCallback, RetryCallback, StartResult
from detour.controller.engine import CourseAdapter, EngineFactory, SearchEngine
from detour.low.core import Course, GoalPose, Point, SearchContext
from detour.low.tracing import Microtrace, SearchLifecycle, mark, timer

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return monotonic_ns() // 1_000_000


class PathfinderController:
    def __init__(
        self,
        engines: EngineFactory,
        course_adapter: CourseAdapter = Course.from_path,
        clock: Callable[[], int] = monotonic_ms,
        config: ControllerConfig | None = None,
        label: str = "",
    ) -> None:
        self.engines = engines
        self.course_adapter = course_adapter
        self.clock = clock
        self.config = config if config is not None else ControllerConfig()
        self.label = label
        self.listeners = Listeners()
        self.engine: SearchEngine | None = None
        self.request: Request | None = None
        # survives `reset` so that `retry` can repeat the last search at any time
        self.last_entry: EntryPoint | None = None

    def __repr__(self) -> str:
        fail_count = self.request.fail_count if self.request else 0
        retry_budget = self.request.retry_budget if self.request else 0
        label = f"{self.label}, " if self.label else ""
        return f"PathfinderController({label}fail_count={fail_count}, retry_budget={retry_budget}, active={self.is_active()})"

    def reset(self) -> None:
        """Drops the current request, cancelling the search if it is running. No listener is called"""
        if self.engine is not None and self.request is not None:
            logger.debug(f"{self}: cancelling search {self.request.name}")
            self._mark({"request": self.request.name, "action": SearchLifecycle.cancelled})
        self.engine = None
        self.request = None

    def poll(self, dt: float) -> None:
        """To be called on every tick: advances the running search by a single step"""
        if self.engine is None:
            return
        result = timer(self.engine.step, Microtrace.ctrl_step)()
        if result.finished:
            self.finish(result.path, result.goal_invalid)

    def is_active(self) -> bool:
        return self.engine is not None

    def get_current_context(self) -> SearchContext | None:
        return self.request.context if self.request else None

    def get_drive_data(self) -> DriveData:
        if self.is_active():
            # searching, so whoever drives the vehicle must hold still
            return DriveData(max_speed=self.config.halt_speed)
        return DriveData()

    def register_listeners(self, owner: Any, on_result: ResultCallback, on_retry: RetryCallback | None = None) -> None:
        """Replaces any previous listeners.

        on_result is called as `on_result([owner,] controller, success, course, goal_invalid)`, exactly
        once per search. on_retry is called as `on_retry([owner,] controller, context, is_last_retry, attempt)`
        every time the search failed but may be retried; it is expected to restart the search, via `retry`
        or any of the `find_path_*` methods, before returning. If it does not, the search is abandoned and
        on_result is never called for it. The owner is passed first when not None, so that unbound methods
        can be registered."""
        self.listeners = Listeners(owner=owner, on_result=on_result, on_retry=on_retry)

    def find_path_to_node(
        self, context: SearchContext, goal_node: str, x_offset: float = 0.0, z_offset: float = 0.0, retry_budget: int | None = None
    ) -> bool:
        """Finds a path to the world node `goal_node`, offset in its frame. Returns whether the search was started"""
        if not self._has_result_listener(f"node {goal_node}"):
            return False
        return self.start(
            context,
            retry_budget,
            lambda: self.engines.to_node(goal_node, x_offset, z_offset, self._context()),
        )

    def find_path_to_waypoint(
        self,
        context: SearchContext,
        course: Course,
        waypoint_index: int,
        x_offset: float = 0.0,
        z_offset: float = 0.0,
        retry_budget: int | None = None,
    ) -> bool:
        """Finds a path to a waypoint of the course, offset in its frame. Returns whether the search was started"""
        if not self._has_result_listener(f"waypoint {waypoint_index}"):
            return False
        return self.start(
            context,
            retry_budget,
            lambda: self.engines.to_waypoint(course, waypoint_index, x_offset, z_offset, self._context()),
        )

    def find_path_to_goal(self, context: SearchContext, goal: GoalPose, retry_budget: int | None = None) -> bool:
        """Finds a path to an arbitrary pose. Returns whether the search was started"""
        if not self._has_result_listener(f"goal {goal}"):
            return False
        return self.start(context, retry_budget, lambda: self.engines.to_goal(goal, self._context()))

    def retry(self, context: SearchContext, retry_budget: int | None = None) -> bool:
        """Repeats the last search, to the same target, with a new context -- so that constraints like
        the off field penalty or the max fruit percent can be relaxed. Returns whether the search was started"""
        if self.last_entry is None:
            logger.error(f"{self}: no search has been started before, can't retry")
            return False
        if not self._has_result_listener("the last target"):
            return False
        logger.debug(f"{self}: retrying with {context}")
        return self.start(context, retry_budget, self.last_entry)

    def start(self, context: SearchContext, retry_budget: int | None, entry: EntryPoint) -> bool:
        """Starts the search by calling `entry`, which sees `context` as the current one. If called from
        within the retry listener, continues the failed request, otherwise begins a new one.

        `retry_budget=None` keeps the budget of a continued request, and is the configured default for
        a new one"""
        if retry_budget is not None and retry_budget < 0:
            raise ValueError(f"retry budget must not be negative, got {retry_budget}")
        now = self.clock()
        request = self.request
        continuing = request is not None and request.awaiting_retry
        if continuing:
            request.awaiting_retry = False
            request.context = context
            request.entry = entry
            request.started_at = now
            if retry_budget is not None:
                request.retry_budget = max(retry_budget, request.fail_count)
            logger.debug(f"{self}: restarting search {request.name} with {context}, attempt {request.fail_count + 1}")
        else:
            if self.engine is not None and request is not None:
                logger.warning(f"{self}: search {request.name} still running, dropping it")
                self._mark({"request": request.name, "action": SearchLifecycle.cancelled})
            if retry_budget is None:
                retry_budget = self.config.default_num_retries
            request = Request(context=context, retry_budget=retry_budget, entry=entry, started_at=now)
            self.request = request
            logger.debug(f"{self}: started search {request.name} with {context}, {retry_budget=}")
        self.engine = None
        self.last_entry = entry
        self._mark({"request": request.name, "action": SearchLifecycle.started, "attempt": request.fail_count + 1})

        started: StartResult = timer(entry, Microtrace.ctrl_start)()
        if started.finished:
            if continuing:
                # resolved by the `finish` which dispatched the retry, so that immediate failures
                # do not nest one stack frame per attempt
                request.pending = started
            else:
                self.finish(started.path, started.goal_invalid)
        elif started.engine is None:
            raise ValueError(f"engine factory gave neither a result nor an engine for {request.name}")
        else:
            logger.debug(f"{self}: search {request.name} continues over ticks")
            self._mark({"request": request.name, "action": SearchLifecycle.stepping})
            self.engine = started.engine
        return True

    def finish(self, path: Sequence[Point] | None, goal_invalid: bool | None) -> None:
        """The engine is done: classify and then either retry or report. Retries which finish at
        once are classified here in turn, until one runs over ticks or is reported"""
        request = self.request
        if request is None:
            raise ValueError("search finished without a request")
        while True:
            self.engine = None
            request.elapsed_ms = self.clock() - request.started_at
            outcome = timer(self._classify, Microtrace.ctrl_finish)(request, path, goal_invalid)
            self._mark({"request": request.name, "action": SearchLifecycle.finished, "outcome": outcome.name})
            if not should_retry(outcome, request.fail_count, request.retry_budget, self.listeners.on_retry is not None):
                break

            logger.debug(f"{self}: failed with try {request.fail_count + 1} of {request.retry_budget + 1}")
            request.fail_count += 1
            request.awaiting_retry = True
            self._mark({"request": request.name, "action": SearchLifecycle.retried, "attempt": request.fail_count})
            try:
                self.listeners.call(
                    self.listeners.on_retry,  # type: ignore # checked by should_retry
                    self,
                    request.context,
                    request.fail_count == request.retry_budget,
                    request.fail_count,
                )
            except BaseException:
                logger.debug(f"{self}: retry listener raised, dropping search {request.name}")
                request.awaiting_retry = False
                request.pending = None
                if self.request is request:
                    self.reset()
                raise
            if request.awaiting_retry:
                request.awaiting_retry = False
                logger.debug(f"{self}: retry listener did not restart search {request.name}, abandoning it")
                return
            if request.pending is None or self.request is not request:
                return
            path, goal_invalid = request.pending.path, request.pending.goal_invalid
            request.pending = None

        if outcome == Outcome.no_path_found and request.retry_budget > 0 and self.listeners.on_retry is not None:
            logger.debug(f"{self}: max number of retries already reached for {request.name}")

        success = outcome == Outcome.valid_path
        course = self.course_adapter(path) if success and path is not None else None
        self._mark({"request": request.name, "action": SearchLifecycle.reported, "success": success})
        self.listeners.call(
            self.listeners.on_result,  # type: ignore # checked when starting
            self,
            success,
            course,
            goal_invalid,
        )
        # the result listener may have started the next search already, which we must keep
        if self.request is request:
            self.reset()

    def draw_nodes(self) -> Any:
        """Debug rendering of the running search, if the engine supports any"""
        if self.engine is not None and hasattr(self.engine, "draw_nodes"):
            return self.engine.draw_nodes()
        return None

    def _classify(self, request: Request, path: Sequence[Point] | None, goal_invalid: bool | None) -> Outcome:
        outcome = classify(path, goal_invalid)
        if outcome == Outcome.valid_path:
            logger.debug(f"{self}: found a path ({len(path or [])} waypoints, after {request.elapsed_ms} ms)")
        elif outcome == Outcome.invalid_goal:
            logger.info(f"{self}: no path found for {request.name}, goal is invalid")
        else:
            logger.info(f"{self}: no path found for {request.name} after {request.elapsed_ms} ms")
        return outcome

    def _has_result_listener(self, target: str) -> bool:
        if self.listeners.on_result is None:
            logger.error(f"{self}: no result listener registered, not searching to {target}")
            return False
        return True

    def _mark(self, labels: dict) -> None:
        # per call rather than via the global labels, as every vehicle has a controller of its own
        mark({"controller": self.label, **labels} if self.label else labels)

    def _context(self) -> SearchContext:
        if self.request is None:
            raise ValueError("no search request in progress")
        return self.request.context


def run_until_idle(controller: PathfinderController, dt: float = 0.0, max_ticks: int | None = None) -> int:
    """The simplest driving loop: polls until no search is running or `max_ticks` elapse. Returns
    the number of ticks taken"""
    ticks = 0
    while controller.is_active():
        if max_ticks is not None and ticks >= max_ticks:
            logger.debug(f"{controller}: still active after {ticks} ticks")
            break
        controller.poll(dt)
        ticks += 1
    return ticks
