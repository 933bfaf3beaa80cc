"""
Defines the SearchEngine and EngineFactory protocols
"""

from typing import Callable, Protocol, Sequence, runtime_checkable

from detour.controller.core import StartResult, StepResult
from detour.low.core import Course, GoalPose, Point, SearchContext


@runtime_checkable
class SearchEngine(Protocol):
    def step(self) -> StepResult:
        """Advance the search by one unit of work. Must not block, the controller calls this
        once per tick."""
        raise NotImplementedError

    def is_running(self) -> bool:
        raise NotImplementedError

    # NOTE engines may additionally implement `draw_nodes()` for debug rendering, the controller
    # forwards to it when present


@runtime_checkable
class EngineFactory(Protocol):
    def to_node(self, goal_node: str, x_offset: float, z_offset: float, context: SearchContext) -> StartResult:
        """Search to a world node, with offsets in the node's own frame"""
        raise NotImplementedError

    def to_waypoint(
        self, course: Course, waypoint_index: int, x_offset: float, z_offset: float, context: SearchContext
    ) -> StartResult:
        """Search to a waypoint of a course, with offsets in the waypoint's own frame"""
        raise NotImplementedError

    def to_goal(self, goal: GoalPose, context: SearchContext) -> StartResult:
        raise NotImplementedError


CourseAdapter = Callable[[Sequence[Point]], Course]
