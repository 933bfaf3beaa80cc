"""
Core data structures shared with callers -- prescribes most of the API
"""

import math
from typing import NamedTuple, Sequence

from pydantic import BaseModel, Field
from typing_extensions import Self

# NOTE we work in the horizontal plane only, with `x` and `z` as the axes, as the host
# application does. Heights are the concern of the engine, not ours


class Point(NamedTuple):
    x: float
    z: float


class GoalPose(BaseModel):
    x: float
    z: float
    heading: float = Field(0.0, description="radians, 0 is along +z, growing towards +x")

    def offset(self, x_offset: float, z_offset: float) -> "GoalPose":
        """The pose moved by the offsets given in its own frame, ie, `z_offset` is forward and
        `x_offset` is sideways, along +x for a zero heading"""
        sin, cos = math.sin(self.heading), math.cos(self.heading)
        return GoalPose(
            x=self.x + x_offset * cos + z_offset * sin,
            z=self.z - x_offset * sin + z_offset * cos,
            heading=self.heading,
        )


class Waypoint(BaseModel):
    x: float
    z: float
    heading: float | None = None

    def to_pose(self) -> GoalPose:
        return GoalPose(x=self.x, z=self.z, heading=self.heading or 0.0)


class Course(BaseModel):
    waypoints: list[Waypoint]
    # temporary courses are generated on the fly, eg from a pathfinder result, and are not saved
    temporary: bool = False

    def __len__(self) -> int:
        return len(self.waypoints)

    def get_waypoint(self, ix: int) -> Waypoint:
        if not 0 <= ix < len(self.waypoints):
            raise IndexError(f"waypoint {ix} not in course of {len(self.waypoints)}")
        return self.waypoints[ix]

    @classmethod
    def from_path(cls, path: Sequence[Point]) -> "Course":
        """Converts a raw path into a temporary course. Every waypoint heads towards the next one,
        the last one keeps the heading of the one before"""
        waypoints: list[Waypoint] = []
        heading: float | None = None
        for i, point in enumerate(path):
            if i + 1 < len(path):
                nxt = path[i + 1]
                heading = math.atan2(nxt.x - point.x, nxt.z - point.z)
            waypoints.append(Waypoint(x=point.x, z=point.z, heading=heading))
        return cls(waypoints=waypoints, temporary=True)


class AreaToAvoid(BaseModel):
    min_x: float
    min_z: float
    max_x: float
    max_z: float

    def contains(self, x: float, z: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z


class SearchContext(BaseModel):
    """Constraints of a single search. Owned by the caller, who may relax them between retries --
    the controller just carries it around"""

    start: GoalPose | None = Field(None, description="where the vehicle is, None means the engine decides")
    max_fruit_percent: float = Field(
        50.0, description="cells with more fruit than this are not driven through"
    )
    off_field_penalty: float = Field(
        7.5, description="cost multiplier for every cell outside of the field"
    )
    field_only: bool = Field(False, description="never leave the field")
    area_to_avoid: AreaToAvoid | None = None
    max_iterations: int = Field(40_000, gt=0, description="node expansions before giving up")
    expansions_per_step: int = Field(200, gt=0, description="node expansions per controller tick")

    def __str__(self) -> str:
        return (
            f"SearchContext(max_fruit_percent={self.max_fruit_percent}, "
            f"off_field_penalty={self.off_field_penalty}, field_only={self.field_only}, "
            f"area_to_avoid={self.area_to_avoid is not None}, max_iterations={self.max_iterations})"
        )

    def with_start(self, start: GoalPose) -> Self:
        self.start = start
        return self

    def with_max_fruit_percent(self, percent: float) -> Self:
        self.max_fruit_percent = percent
        return self

    def ignore_fruit(self) -> Self:
        self.max_fruit_percent = math.inf
        return self

    def with_off_field_penalty(self, penalty: float) -> Self:
        self.off_field_penalty = penalty
        return self

    def allow_off_field(self) -> Self:
        self.field_only = False
        return self

    def avoid_area(self, area: AreaToAvoid) -> Self:
        self.area_to_avoid = area
        return self

    def clear_area_to_avoid(self) -> Self:
        self.area_to_avoid = None
        return self
