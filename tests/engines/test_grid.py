"""
For small hand made grids, check that the grid engine finds paths over ticks and that the controller
retries it with relaxed contexts
"""

import numpy as np
import pytest

from detour.controller.impl import PathfinderController, run_until_idle
from detour.engines.grid import GridEngine, GridEngineFactory, GridWorld
from detour.low.core import AreaToAvoid, Course, GoalPose, SearchContext, Waypoint
from search_helpers import Recorder

START = GoalPose(x=0.5, z=0.5)


def _controller(world: GridWorld, listener: Recorder) -> PathfinderController:
    controller = PathfinderController(GridEngineFactory(world))
    controller.register_listeners(None, listener.on_result, listener.on_retry)
    return controller


def _context(**kwargs) -> SearchContext:
    return SearchContext(start=START, **kwargs)


class Relaxing(Recorder):
    def __init__(self, relax) -> None:
        super().__init__()
        self.relax = relax

    def on_retry(self, controller, context, is_last_retry, attempt):
        self.retries.append((attempt, is_last_retry))
        controller.retry(self.relax(context))


def test_open_grid(recorder):
    world = GridWorld.empty(10, 10)
    controller = _controller(world, recorder)

    assert controller.find_path_to_goal(_context(), GoalPose(x=8.5, z=8.5))
    ticks = run_until_idle(controller, 0.1, max_ticks=1000)

    assert ticks >= 1
    assert len(recorder.results) == 1
    success, course, goal_invalid = recorder.results[0]
    assert success
    assert goal_invalid is False
    assert (course.waypoints[0].x, course.waypoints[0].z) == (0.5, 0.5)
    assert (course.waypoints[-1].x, course.waypoints[-1].z) == (8.5, 8.5)
    # straight diagonal
    assert len(course) == 9


def test_spreads_over_ticks(recorder):
    world = GridWorld.empty(10, 10)
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context(expansions_per_step=1), GoalPose(x=8.5, z=8.5))
    assert controller.is_active()
    assert controller.draw_nodes() == []
    controller.poll(0.1)
    assert controller.is_active()
    assert controller.draw_nodes() == [(0.5, 0.5)]

    ticks = run_until_idle(controller, 0.1, max_ticks=1000)
    assert ticks > 5
    assert recorder.results[0][0]


def test_around_obstacle(recorder):
    world = GridWorld.empty(10, 10)
    world.obstacles[0:8, 5] = True
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context(), GoalPose(x=8.5, z=0.5))
    run_until_idle(controller, 0.1, max_ticks=1000)

    success, course, _ = recorder.results[0]
    assert success
    for waypoint in course.waypoints:
        ix, iz = world.cell_of(waypoint.x, waypoint.z)
        assert not world.obstacles[iz, ix]
    assert max(waypoint.z for waypoint in course.waypoints) >= 8.0


def test_fruit_relaxed_on_retry():
    world = GridWorld.empty(10, 10)
    world.fruit[:, 5] = 80.0
    listener = Relaxing(lambda context: context.ignore_fruit())
    controller = _controller(world, listener)

    controller.find_path_to_goal(_context(max_fruit_percent=50.0), GoalPose(x=8.5, z=0.5), retry_budget=1)
    run_until_idle(controller, 0.1, max_ticks=1000)

    assert listener.retries == [(1, True)]
    assert len(listener.results) == 1
    assert listener.results[0][0]


def test_fruit_not_relaxed_fails():
    world = GridWorld.empty(10, 10)
    world.fruit[:, 5] = 80.0
    listener = Recorder()
    controller = _controller(world, listener)

    controller.find_path_to_goal(_context(max_fruit_percent=50.0), GoalPose(x=8.5, z=0.5), retry_budget=2)
    run_until_idle(controller, 0.1, max_ticks=1000)

    assert listener.retries == [(1, False), (2, True)]
    assert listener.results == [(False, None, False)]


def test_off_field_relaxed_on_retry():
    world = GridWorld.empty(10, 10)
    world.field[:, 0:3] = False
    listener = Relaxing(lambda context: context.allow_off_field())
    controller = _controller(world, listener)

    controller.find_path_to_goal(_context(field_only=True), GoalPose(x=8.5, z=8.5), retry_budget=1)
    run_until_idle(controller, 0.1, max_ticks=1000)

    assert listener.retries == [(1, True)]
    assert listener.results[0][0]


def test_area_to_avoid(recorder):
    world = GridWorld.empty(10, 3)
    area = AreaToAvoid(min_x=4.0, min_z=-1.0, max_x=6.0, max_z=5.0)
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context().avoid_area(area), GoalPose(x=8.5, z=0.5))
    run_until_idle(controller, 0.1, max_ticks=1000)

    assert recorder.results == [(False, None, False)]


def test_iteration_limit(recorder):
    world = GridWorld.empty(30, 30)
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context(max_iterations=5), GoalPose(x=28.5, z=28.5))
    run_until_idle(controller, 0.1, max_ticks=1000)

    assert recorder.results == [(False, None, False)]


def test_goal_in_start_cell(recorder):
    world = GridWorld.empty(10, 10)
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context(), GoalPose(x=0.7, z=0.2), retry_budget=1)

    # start and goal only, which is no route
    assert recorder.retries == [(1, True)]
    assert recorder.results == [(False, None, False)]
    assert not controller.is_active()


@pytest.mark.parametrize("goal", [GoalPose(x=20.0, z=20.0), GoalPose(x=-0.5, z=3.5), GoalPose(x=8.5, z=8.5)])
def test_invalid_goal(goal, recorder):
    world = GridWorld.empty(10, 10)
    world.obstacles[8, 8] = True
    controller = _controller(world, recorder)

    controller.find_path_to_goal(_context(), goal, retry_budget=2)

    assert recorder.retries == []
    assert recorder.results == [(False, None, True)]


def test_unknown_node(recorder):
    world = GridWorld.empty(10, 10)
    controller = _controller(world, recorder)

    assert controller.find_path_to_node(_context(), "nowhere", 0.0, 0.0, retry_budget=2)

    assert recorder.retries == []
    assert recorder.results == [(False, None, True)]


def test_node_with_offset(recorder):
    world = GridWorld.empty(10, 10)
    world.nodes["gate"] = GoalPose(x=5.5, z=2.5, heading=0.0)
    controller = _controller(world, recorder)

    controller.find_path_to_node(_context(), "gate", 0.0, 3.0)
    run_until_idle(controller, 0.1, max_ticks=1000)

    success, course, _ = recorder.results[0]
    assert success
    assert course.waypoints[-1].x == pytest.approx(5.5)
    assert course.waypoints[-1].z == pytest.approx(5.5)


def test_waypoint(recorder):
    world = GridWorld.empty(10, 10)
    course = Course(waypoints=[Waypoint(x=2.5, z=2.5), Waypoint(x=7.5, z=4.5, heading=0.0)])
    controller = _controller(world, recorder)

    controller.find_path_to_waypoint(_context(), course, 1, 0.0, 0.0)
    run_until_idle(controller, 0.1, max_ticks=1000)
    success, found, _ = recorder.results[0]
    assert success
    assert (found.waypoints[-1].x, found.waypoints[-1].z) == (7.5, 4.5)

    controller.find_path_to_waypoint(_context(), course, 5, 0.0, 0.0, retry_budget=1)
    assert recorder.results[-1] == (False, None, True)


def test_start_from_world(recorder):
    world = GridWorld.empty(10, 10)
    world.start = GoalPose(x=9.5, z=9.5)
    controller = _controller(world, recorder)

    controller.find_path_to_goal(SearchContext(), GoalPose(x=5.5, z=9.5))
    run_until_idle(controller, 0.1, max_ticks=1000)

    _, course, _ = recorder.results[0]
    assert (course.waypoints[0].x, course.waypoints[0].z) == (9.5, 9.5)


def test_no_start_at_all(recorder):
    world = GridWorld.empty(10, 10)
    controller = _controller(world, recorder)
    with pytest.raises(ValueError):
        controller.find_path_to_goal(SearchContext(), GoalPose(x=5.5, z=5.5))


def test_engine_cannot_step_when_done():
    world = GridWorld.empty(5, 5)
    engine = GridEngine(world, START, GoalPose(x=3.5, z=3.5), SearchContext())
    result = engine.step()
    assert result.finished
    assert not engine.is_running()
    with pytest.raises(ValueError):
        engine.step()


def test_layers_must_match():
    with pytest.raises(ValueError):
        GridWorld(obstacles=np.zeros((3, 3)), fruit=np.zeros((3, 4)), field=np.ones((3, 3)))


def test_random_world():
    world = GridWorld.random(20, seed=7)
    again = GridWorld.random(20, seed=7)
    assert world.shape == (20, 20)
    assert np.array_equal(world.obstacles, again.obstacles)
    assert set(world.nodes) == {"nw", "ne", "sw", "se"}
    for pose in world.nodes.values():
        ix, iz = world.cell_of(pose.x, pose.z)
        assert not world.obstacles[iz, ix]
