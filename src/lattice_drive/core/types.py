from __future__ import annotations
from dataclasses import dataclass, replace
from typing import List, Tuple
import math


Vector2 = Tuple[float, float]


@dataclass(frozen=True)
class Transform:
    """Planar pose.

    x points along the road, y to the left, yaw is counter clockwise.
    """
    x: float
    y: float
    yaw_rad: float = 0.0

    @property
    def location(self) -> Vector2:
        return (self.x, self.y)

    def forward_vector(self) -> Vector2:
        return (math.cos(self.yaw_rad), math.sin(self.yaw_rad))

    def right_vector(self) -> Vector2:
        return (math.sin(self.yaw_rad), -math.cos(self.yaw_rad))

    def offset(self, longitudinal: float, lateral: float = 0.0) -> Vector2:
        """Location ``longitudinal`` ahead and ``lateral`` to the left of this pose."""
        fx, fy = self.forward_vector()
        return (self.x + longitudinal * fx - lateral * fy,
                self.y + longitudinal * fy + lateral * fx)


@dataclass(frozen=True)
class BoundingBox:
    """Axis aligned box in the vehicle frame, given by its half sizes (m)."""
    extent_x: float
    extent_y: float

    @property
    def length(self) -> float:
        return 2.0 * self.extent_x

    @property
    def width(self) -> float:
        return 2.0 * self.extent_y


@dataclass
class Vehicle:
    """A vehicle tracked by the planner.

    Attributes:
        id: Unique vehicle id.
        bounding_box: Vehicle extent.
        transform: Pose of the bounding box center.
        speed: Longitudinal speed (m/s).
        policy_speed: Desired speed (m/s).
        acceleration: Longitudinal acceleration, braking is negative (m/s^2).
        curvature: Path curvature at the current position (1/m).
    """
    id: int
    bounding_box: BoundingBox
    transform: Transform
    speed: float = 0.0
    policy_speed: float = 0.0
    acceleration: float = 0.0
    curvature: float = 0.0

    def tuple(self) -> Tuple[int, Transform, BoundingBox]:
        return (self.id, self.transform, self.bounding_box)

    def copy(self) -> 'Vehicle':
        return replace(self)

    def corners(self) -> List[Vector2]:
        """Bounding box corners, counter clockwise from the rear right."""
        ex, ey = self.bounding_box.extent_x, self.bounding_box.extent_y
        return [
            self.transform.offset(-ex, -ey),
            self.transform.offset(ex, -ey),
            self.transform.offset(ex, ey),
            self.transform.offset(-ex, ey),
        ]

    def string(self, prefix: str = "") -> str:
        return (f"{prefix}id:{self.id} "
                f"x:{self.transform.x:.2f} y:{self.transform.y:.2f} "
                f"yaw:{math.degrees(self.transform.yaw_rad):.1f}deg "
                f"speed:{self.speed:.2f} policy:{self.policy_speed:.2f} "
                f"accel:{self.acceleration:.2f} curvature:{self.curvature:.4f}")
