"""
Scripted search engines: every search ends the way it was told to, after the number of steps it
was told to. Does not look at the goal nor the context beyond recording them.

For simulation and tests
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from detour.controller.core import StartResult, StepResult
from detour.low.core import Course, GoalPose, Point, SearchContext

logger = logging.getLogger(__name__)


@dataclass
class Script:
    """How a single search ends. `steps=0` finishes already when the engine is constructed"""

    path: Sequence[Point] | None = None
    goal_invalid: bool | None = None
    steps: int = 0

    @classmethod
    def found(cls, points: int = 4, steps: int = 0) -> "Script":
        return cls(path=[Point(float(i), float(i)) for i in range(points)], steps=steps)

    @classmethod
    def not_found(cls, steps: int = 0) -> "Script":
        return cls(path=None, goal_invalid=False, steps=steps)

    @classmethod
    def invalid_goal(cls, steps: int = 0) -> "Script":
        return cls(path=None, goal_invalid=True, steps=steps)


class ScriptedEngine:
    def __init__(self, script: Script) -> None:
        self.script = script
        self.steps_taken = 0
        self.done = False

    def step(self) -> StepResult:
        if self.done:
            raise ValueError("stepping a finished engine")
        self.steps_taken += 1
        if self.steps_taken >= self.script.steps:
            self.done = True
            return StepResult(True, self.script.path, self.script.goal_invalid)
        return StepResult(False)

    def is_running(self) -> bool:
        return not self.done

    def draw_nodes(self) -> list[Point]:
        return []


@dataclass
class Construction:
    kind: str
    target: Any
    context: SearchContext
    # a snapshot, as the caller is free to mutate the context afterwards
    context_dump: dict = field(default_factory=dict)


class ScriptedFactory:
    """Hands out one script per constructed engine, in order. When the scripts run out, the last one
    is repeated"""

    def __init__(self, scripts: Sequence[Script]) -> None:
        if not scripts:
            raise ValueError("at least one script is needed")
        self.scripts = list(scripts)
        self.constructions: list[Construction] = []
        self.engines: list[ScriptedEngine] = []

    def _start(self, kind: str, target: Any, context: SearchContext) -> StartResult:
        ix = min(len(self.constructions), len(self.scripts) - 1)
        script = self.scripts[ix]
        self.constructions.append(Construction(kind, target, context, context.model_dump()))
        logger.debug(f"constructing {kind} engine #{len(self.constructions)} with {script=}")
        if script.steps == 0:
            return StartResult.done(script.path, script.goal_invalid)
        engine = ScriptedEngine(script)
        self.engines.append(engine)
        return StartResult.running(engine)

    def to_node(self, goal_node: str, x_offset: float, z_offset: float, context: SearchContext) -> StartResult:
        return self._start("node", (goal_node, x_offset, z_offset), context)

    def to_waypoint(
        self, course: Course, waypoint_index: int, x_offset: float, z_offset: float, context: SearchContext
    ) -> StartResult:
        return self._start("waypoint", (waypoint_index, x_offset, z_offset), context)

    def to_goal(self, goal: GoalPose, context: SearchContext) -> StartResult:
        return self._start("goal", goal, context)
