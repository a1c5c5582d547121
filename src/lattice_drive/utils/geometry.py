from __future__ import annotations
from typing import Tuple
import math


def normalize_angle(angle_rad: float) -> float:
    return (angle_rad + math.pi) % (2 * math.pi) - math.pi


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def to_local_frame(point: Tuple[float, float],
                   origin: Tuple[float, float],
                   yaw_rad: float) -> Tuple[float, float]:
    """Express ``point`` in the frame at ``origin`` rotated by ``yaw_rad``."""
    dx, dy = point[0] - origin[0], point[1] - origin[1]
    c, s = math.cos(yaw_rad), math.sin(yaw_rad)
    return (c * dx + s * dy, -s * dx + c * dy)
