"""
Reference search engine: A* over an occupancy grid, resumable between ticks.

The world is a grid of square cells with obstacles, fruit density and the field boundary. The
search context decides which cells are allowed and how much they cost:
 - obstacles are never allowed
 - cells with more fruit than `max_fruit_percent` are not allowed
 - cells off the field cost `off_field_penalty` times as much, and are not allowed at all with `field_only`
 - cells within `area_to_avoid` are not allowed

The search itself is a generator, suspended every `expansions_per_step` node expansions, which is
how it spreads over ticks.
"""

import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Generator

import numpy as np

from detour.controller.core import StartResult, StepResult
from detour.low.core import Course, GoalPose, Point, SearchContext

logger = logging.getLogger(__name__)

Cell = tuple[int, int]  # (ix, iz)

SQRT2 = math.sqrt(2.0)
MOVES: list[tuple[int, int, float]] = [
    (1, 0, 1.0),
    (-1, 0, 1.0),
    (0, 1, 1.0),
    (0, -1, 1.0),
    (1, 1, SQRT2),
    (1, -1, SQRT2),
    (-1, 1, SQRT2),
    (-1, -1, SQRT2),
]


@dataclass
class GridWorld:
    # all arrays are indexed [iz, ix]
    obstacles: np.ndarray
    fruit: np.ndarray
    field: np.ndarray
    cell_size: float = 1.0
    origin_x: float = 0.0
    origin_z: float = 0.0
    nodes: dict[str, GoalPose] = field(default_factory=dict)
    start: GoalPose | None = None

    def __post_init__(self) -> None:
        if not (self.obstacles.shape == self.fruit.shape == self.field.shape):
            raise ValueError(
                f"grid layers differ in shape: {self.obstacles.shape}, {self.fruit.shape}, {self.field.shape}"
            )
        self.obstacles = self.obstacles.astype(bool)
        self.field = self.field.astype(bool)
        self.fruit = self.fruit.astype(np.float32)

    @property
    def shape(self) -> tuple[int, int]:
        return self.obstacles.shape  # type: ignore

    @classmethod
    def empty(cls, nx: int, nz: int, cell_size: float = 1.0) -> "GridWorld":
        """All field, no fruit, no obstacles"""
        return cls(
            obstacles=np.zeros((nz, nx), dtype=bool),
            fruit=np.zeros((nz, nx), dtype=np.float32),
            field=np.ones((nz, nx), dtype=bool),
            cell_size=cell_size,
        )

    @classmethod
    def random(cls, size: int, seed: int, obstacle_ratio: float = 0.1, cell_size: float = 1.0) -> "GridWorld":
        """A field in the middle with fruit growing on it, scattered obstacles, and a node at each corner"""
        rng = np.random.default_rng(seed)
        obstacles = rng.random((size, size)) < obstacle_ratio
        margin = size // 5
        field_mask = np.zeros((size, size), dtype=bool)
        field_mask[margin : size - margin, margin : size - margin] = True
        fruit = np.where(field_mask, rng.uniform(20.0, 100.0, (size, size)), 0.0)
        corners = {"nw": (0, size - 1), "ne": (size - 1, size - 1), "sw": (0, 0), "se": (size - 1, 0)}
        for ix, iz in corners.values():
            obstacles[iz, ix] = False
        world = cls(obstacles=obstacles, fruit=fruit, field=field_mask, cell_size=cell_size)
        world.nodes = {name: world.cell_pose((ix, iz)) for name, (ix, iz) in corners.items()}
        return world

    def cell_of(self, x: float, z: float) -> Cell:
        return (
            math.floor((x - self.origin_x) / self.cell_size),
            math.floor((z - self.origin_z) / self.cell_size),
        )

    def center_of(self, cell: Cell) -> Point:
        return Point(
            self.origin_x + (cell[0] + 0.5) * self.cell_size,
            self.origin_z + (cell[1] + 0.5) * self.cell_size,
        )

    def cell_pose(self, cell: Cell, heading: float = 0.0) -> GoalPose:
        center = self.center_of(cell)
        return GoalPose(x=center.x, z=center.z, heading=heading)

    def in_bounds(self, cell: Cell) -> bool:
        nz, nx = self.shape
        return 0 <= cell[0] < nx and 0 <= cell[1] < nz

    def blocked(self, context: SearchContext) -> np.ndarray:
        """Cells the search must not enter under the context"""
        blocked = self.obstacles | (self.fruit > context.max_fruit_percent)
        if context.field_only:
            blocked |= ~self.field
        if (area := context.area_to_avoid) is not None:
            nz, nx = self.shape
            cx = self.origin_x + (np.arange(nx) + 0.5) * self.cell_size
            cz = self.origin_z + (np.arange(nz) + 0.5) * self.cell_size
            in_x = (cx >= area.min_x) & (cx <= area.max_x)
            in_z = (cz >= area.min_z) & (cz <= area.max_z)
            blocked |= in_z[:, None] & in_x[None, :]
        return blocked

    def costs(self, context: SearchContext) -> np.ndarray:
        """Cost multiplier of entering each cell under the context"""
        return np.where(self.field, 1.0, context.off_field_penalty)


class GridEngine:
    def __init__(self, world: GridWorld, start: GoalPose, goal: GoalPose, context: SearchContext) -> None:
        self.world = world
        self.start = start
        self.goal = goal
        self.start_cell = world.cell_of(start.x, start.z)
        self.goal_cell = world.cell_of(goal.x, goal.z)
        self.max_iterations = context.max_iterations
        self.expansions_per_step = context.expansions_per_step
        self.blocked = world.blocked(context)
        # wherever the vehicle stands, it must be able to leave
        self.blocked[self.start_cell[1], self.start_cell[0]] = False
        self.costs = world.costs(context)
        self.min_cost = min(1.0, float(context.off_field_penalty))
        self.iterations = 0
        self.expanded: list[Cell] = []
        self.done = False
        self._search = self._run()

    def step(self) -> StepResult:
        if self.done:
            raise ValueError("stepping a finished search")
        try:
            next(self._search)
            return StepResult(False)
        except StopIteration as stop:
            self.done = True
            path = stop.value
            logger.debug(
                f"search to {self.goal_cell} done after {self.iterations} iterations, "
                f"{'found' if path else 'no'} path"
            )
            return StepResult(True, path, False)

    def is_running(self) -> bool:
        return not self.done

    def draw_nodes(self) -> list[Point]:
        logger.debug(f"search to {self.goal_cell}: {len(self.expanded)} nodes expanded, {self.iterations=}")
        return [self.world.center_of(cell) for cell in self.expanded]

    def _heuristic(self, cell: Cell) -> float:
        dx = abs(cell[0] - self.goal_cell[0])
        dz = abs(cell[1] - self.goal_cell[1])
        return (max(dx, dz) + (SQRT2 - 1.0) * min(dx, dz)) * self.min_cost

    def _run(self) -> Generator[None, None, list[Point] | None]:
        g: dict[Cell, float] = {self.start_cell: 0.0}
        parent: dict[Cell, Cell] = {}
        closed: set[Cell] = set()
        counter = 0
        open_set: list[tuple[float, int, Cell]] = [(self._heuristic(self.start_cell), counter, self.start_cell)]

        while open_set:
            if self.iterations >= self.max_iterations:
                logger.debug(f"search to {self.goal_cell}: giving up after {self.iterations} iterations")
                return None
            _, _, cell = heapq.heappop(open_set)
            if cell in closed:
                continue
            closed.add(cell)
            self.expanded.append(cell)
            self.iterations += 1
            if cell == self.goal_cell:
                return self._reconstruct(parent)

            for dx, dz, length in MOVES:
                nxt = (cell[0] + dx, cell[1] + dz)
                if nxt in closed or not self.world.in_bounds(nxt) or self.blocked[nxt[1], nxt[0]]:
                    continue
                # no cutting corners of blocked cells
                if dx and dz and (self.blocked[cell[1], nxt[0]] or self.blocked[nxt[1], cell[0]]):
                    continue
                candidate = g[cell] + length * float(self.costs[nxt[1], nxt[0]])
                if candidate < g.get(nxt, math.inf):
                    g[nxt] = candidate
                    parent[nxt] = cell
                    counter += 1
                    heapq.heappush(open_set, (candidate + self._heuristic(nxt), counter, nxt))

            if self.iterations % self.expansions_per_step == 0:
                yield
        return None

    def _reconstruct(self, parent: dict[Cell, Cell]) -> list[Point]:
        cells = [self.goal_cell]
        while cells[-1] != self.start_cell:
            cells.append(parent[cells[-1]])
        cells.reverse()
        inner = [self.world.center_of(cell) for cell in cells[1:-1]]
        return [Point(self.start.x, self.start.z), *inner, Point(self.goal.x, self.goal.z)]


class GridEngineFactory:
    def __init__(self, world: GridWorld) -> None:
        self.world = world

    def to_node(self, goal_node: str, x_offset: float, z_offset: float, context: SearchContext) -> StartResult:
        node = self.world.nodes.get(goal_node)
        if node is None:
            logger.debug(f"unknown node {goal_node}")
            return StartResult.done(None, goal_invalid=True)
        return self.to_goal(node.offset(x_offset, z_offset), context)

    def to_waypoint(
        self, course: Course, waypoint_index: int, x_offset: float, z_offset: float, context: SearchContext
    ) -> StartResult:
        try:
            waypoint = course.get_waypoint(waypoint_index)
        except IndexError as e:
            logger.debug(f"invalid waypoint: {e}")
            return StartResult.done(None, goal_invalid=True)
        return self.to_goal(waypoint.to_pose().offset(x_offset, z_offset), context)

    def to_goal(self, goal: GoalPose, context: SearchContext) -> StartResult:
        start = context.start or self.world.start
        if start is None:
            raise ValueError("neither the context nor the world has a start pose")
        goal_cell = self.world.cell_of(goal.x, goal.z)
        if not self.world.in_bounds(goal_cell) or self.world.obstacles[goal_cell[1], goal_cell[0]]:
            logger.debug(f"goal {goal} is off the grid or within an obstacle")
            return StartResult.done(None, goal_invalid=True)
        start_cell = self.world.cell_of(start.x, start.z)
        if not self.world.in_bounds(start_cell):
            logger.debug(f"start {start} is off the grid")
            return StartResult.done(None, goal_invalid=False)
        if start_cell == goal_cell:
            return StartResult.done([Point(start.x, start.z), Point(goal.x, goal.z)], goal_invalid=False)
        return StartResult.running(GridEngine(self.world, start, goal, context))
