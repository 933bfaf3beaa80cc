"""
Entrypoint for running a simulated search with retries on a generated grid

Example:
```
python -m detour.simulate grid --size 60 --seed 3 --retries 3 --goal ne --report /tmp/report.json
```

The first attempt only drives through sparse fruit and stays on the field. Every retry then relaxes
the context, in this order: more fruit allowed, fruit ignored, leaving the field allowed.
"""

import logging
import logging.config
from time import perf_counter_ns

import fire
import orjson

from detour.config import logging_config
from detour.controller.impl import PathfinderController
from detour.engines.grid import GridEngineFactory, GridWorld
from detour.low.core import Course, SearchContext
from detour.low.func import pyd_replace
from detour.utility import TickLoop

logger = logging.getLogger("detour.simulate")


class Strategy:
    """What the owner of a vehicle would do: start the search, relax on retry, note the result"""

    def __init__(self, controller: PathfinderController) -> None:
        self.controller = controller
        self.attempts: list[dict] = []
        self.result: dict | None = None
        controller.register_listeners(self, Strategy.on_finished, Strategy.on_retry)

    def on_finished(self, controller: PathfinderController, success: bool, course: Course | None, goal_invalid: bool | None) -> None:
        self.result = {
            "success": success,
            "goal_invalid": goal_invalid,
            "waypoints": len(course) if course is not None else 0,
        }

    def on_retry(self, controller: PathfinderController, context: SearchContext, is_last_retry: bool, attempt: int) -> None:
        self.attempts.append({"attempt": attempt, "is_last_retry": is_last_retry, "context": str(context)})
        if attempt == 1:
            relaxed = pyd_replace(context, max_fruit_percent=context.max_fruit_percent * 2)
        elif attempt == 2:
            relaxed = pyd_replace(context).ignore_fruit()
        else:
            relaxed = pyd_replace(context).allow_off_field()
        controller.retry(relaxed)


def grid(
    size: int = 40,
    seed: int = 1,
    retries: int = 3,
    goal: str = "ne",
    obstacle_ratio: float = 0.15,
    expansions_per_step: int = 50,
    max_ticks: int = 100_000,
    report: str | None = None,
) -> None:
    logging.config.dictConfig(logging_config)
    world = GridWorld.random(size, seed, obstacle_ratio=obstacle_ratio)
    world.start = world.nodes["sw"]
    controller = PathfinderController(GridEngineFactory(world), label="simulated")
    strategy = Strategy(controller)
    context = SearchContext(max_fruit_percent=30.0, field_only=True, expansions_per_step=expansions_per_step)

    loop = TickLoop(dt=1.0)
    loop.every(controller.poll)
    start = perf_counter_ns()
    if not controller.find_path_to_node(context, goal, retry_budget=retries):
        raise ValueError(f"failed to start the search to {goal}")
    ticks = loop.run(until=lambda: not controller.is_active(), max_ticks=max_ticks)
    end = perf_counter_ns()
    if controller.is_active():
        logger.warning(f"search still running after {ticks} ticks, cancelling")
        controller.reset()

    summary = {
        "size": size,
        "seed": seed,
        "goal": goal,
        "ticks": ticks,
        "took_ms": (end - start) / 1e6,
        "retries": strategy.attempts,
        "result": strategy.result,
    }
    print(f"search took {ticks} ticks, {summary['took_ms']:.1f}ms, {len(strategy.attempts)} retries: {strategy.result}")
    if report is not None:
        with open(report, "wb") as f:
            f.write(orjson.dumps(summary, option=orjson.OPT_INDENT_2))


if __name__ == "__main__":
    fire.Fire({"grid": grid})
