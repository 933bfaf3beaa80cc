from typing import Any, Callable

from sortedcontainers import SortedDict


class TickLoop:
    """Stands in for the scheduler of a host application: calls the per-tick callbacks, eg
    `controller.poll`, on every tick, and one-off events at the tick they were added for"""

    def __init__(self, dt: float = 1.0) -> None:
        self.dt = dt
        self.tick = 0
        self.timesteps = SortedDict()
        self.per_tick: list[Callable[[float], Any]] = []

    def every(self, callback: Callable[[float], Any]) -> None:
        self.per_tick.append(callback)

    def add_event(self, tick: int, callback: Callable[..., Any], *args: Any) -> None:
        if tick < self.tick:
            raise ValueError(f"tick {tick} already passed, now at {self.tick}")
        if tick in self.timesteps:
            self.timesteps[tick].append((callback, *args))
        else:
            self.timesteps[tick] = [(callback, *args)]

    def advance(self) -> None:
        self.tick += 1
        for callback in self.per_tick:
            callback(self.dt)
        while len(self.timesteps) > 0 and self.timesteps.peekitem(0)[0] <= self.tick:
            _, callbacks = self.timesteps.popitem(0)
            while len(callbacks) > 0:
                callback = callbacks.pop(0)
                callback[0](*callback[1:])

    def run(self, until: Callable[[], bool], max_ticks: int) -> int:
        """Advances until `until` holds or `max_ticks` elapse. Returns the ticks taken"""
        start = self.tick
        while not until() and self.tick - start < max_ticks:
            self.advance()
        return self.tick - start
