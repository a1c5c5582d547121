"""Geometric paths between oriented, curvature tagged poses.

``ContinuousPath`` fits a quintic lateral profile in the frame of the start
pose. ``DiscretePath`` is a resampled chain of continuous paths, which is what
the planner hands to the control stack.
"""

from __future__ import annotations
from enum import Enum
from typing import List, Tuple
import math

import numpy as np

from lattice_drive.core.exceptions import PathGenerationError
from lattice_drive.core.types import Transform
from lattice_drive.utils.geometry import normalize_angle, to_local_frame


# (pose, curvature)
PoseCurvature = Tuple[Transform, float]


class LaneChangeType(Enum):
    KEEP_LANE = "keep_lane"
    LEFT_LANE_CHANGE = "left_lane_change"
    RIGHT_LANE_CHANGE = "right_lane_change"


class QuinticPolynomial:
    """Quintic polynomial y(x) with position, slope and second derivative fixed at both ends."""

    def __init__(self, y0: float, dy0: float, ddy0: float,
                 y1: float, dy1: float, ddy1: float, length: float):
        L = length
        A = np.array([
            [0, 0, 0, 0, 0, 1],
            [L**5, L**4, L**3, L**2, L, 1],
            [0, 0, 0, 0, 1, 0],
            [5*L**4, 4*L**3, 3*L**2, 2*L, 1, 0],
            [0, 0, 0, 2, 0, 0],
            [20*L**3, 12*L**2, 6*L, 2, 0, 0]
        ])
        b = np.array([y0, y1, dy0, dy1, ddy0, ddy1])
        try:
            self.coeffs = np.linalg.solve(A, b)
        except np.linalg.LinAlgError as e:
            raise PathGenerationError(f"Cannot fit a quintic polynomial over length {length}: {e}") from e

    def value(self, x):
        return np.polyval(self.coeffs, x)

    def first_derivative(self, x):
        return np.polyval(np.polyder(self.coeffs, 1), x)

    def second_derivative(self, x):
        return np.polyval(np.polyder(self.coeffs, 2), x)


class ContinuousPath:
    """Smooth path from ``start`` to ``end``.

    Args:
        start: Start pose and curvature.
        end: End pose and curvature.
        lane_change_type: Maneuver the path implements.
        max_curvature: Paths bending harder than this are rejected (1/m).
        sample_resolution: Spacing of the arc length table along x (m).

    Raises:
        PathGenerationError: If the end is not ahead of the start, the heading
            change reaches 90 degrees, or the curvature limit is exceeded.
    """

    def __init__(self,
                 start: PoseCurvature,
                 end: PoseCurvature,
                 lane_change_type: LaneChangeType = LaneChangeType.KEEP_LANE,
                 max_curvature: float = 0.2,
                 sample_resolution: float = 0.1):
        self.start, self.start_curvature = start
        self.end, self.end_curvature = end
        self.lane_change_type = lane_change_type

        # end pose in the start frame
        length, lateral = to_local_frame(self.end.location, self.start.location, self.start.yaw_rad)
        heading = normalize_angle(self.end.yaw_rad - self.start.yaw_rad)

        if length <= 0.0:
            raise PathGenerationError(
                f"End pose ({self.end.x:.2f}, {self.end.y:.2f}) is not ahead of the start pose "
                f"({self.start.x:.2f}, {self.start.y:.2f}, yaw {self.start.yaw_rad:.2f})")
        if abs(heading) >= math.pi / 2.0:
            raise PathGenerationError(f"Heading change {math.degrees(heading):.1f}deg is too large")

        slope = math.tan(heading)
        self._poly = QuinticPolynomial(
            0.0, 0.0, self.start_curvature,
            lateral, slope, self.end_curvature * (1.0 + slope ** 2) ** 1.5,
            length)

        num = max(int(math.ceil(length / sample_resolution)), 1) + 1
        xs = np.linspace(0.0, length, num)
        ys = self._poly.value(xs)
        dys = self._poly.first_derivative(xs)
        ddys = self._poly.second_derivative(xs)
        curvatures = ddys / (1.0 + dys ** 2) ** 1.5

        max_abs = float(np.max(np.abs(curvatures)))
        if max_abs > max_curvature:
            raise PathGenerationError(
                f"Path curvature {max_abs:.3f} exceeds the limit {max_curvature:.3f} "
                f"({lane_change_type.value}, length {length:.2f}m, lateral {lateral:.2f}m)")

        ds = np.hypot(np.diff(xs), np.diff(ys))
        self._s = np.concatenate(([0.0], np.cumsum(ds)))
        self._x = xs
        self._y = ys
        self._yaw = np.arctan(dys)
        self._curvature = curvatures

    @property
    def range(self) -> float:
        return float(self._s[-1])

    def _local(self, s: float):
        s = min(max(s, 0.0), self.range)
        x = float(np.interp(s, self._s, self._x))
        y = float(np.interp(s, self._s, self._y))
        yaw = float(np.interp(s, self._s, self._yaw))
        return x, y, yaw

    def transform_at(self, s: float) -> Transform:
        """Pose at arc length ``s``, clamped to the path."""
        x, y, yaw = self._local(s)
        cos0, sin0 = math.cos(self.start.yaw_rad), math.sin(self.start.yaw_rad)
        return Transform(self.start.x + cos0 * x - sin0 * y,
                         self.start.y + sin0 * x + cos0 * y,
                         normalize_angle(self.start.yaw_rad + yaw))

    def curvature_at(self, s: float) -> float:
        s = min(max(s, 0.0), self.range)
        return float(np.interp(s, self._s, self._curvature))

    def samples(self, resolution: float = 1.0) -> List[Tuple[float, Transform, float]]:
        """(arc length, pose, curvature) every ``resolution`` metres, end included."""
        num = max(int(math.ceil(self.range / resolution)), 1) + 1
        return [(float(s), self.transform_at(float(s)), self.curvature_at(float(s)))
                for s in np.linspace(0.0, self.range, num)]

    def string(self, prefix: str = "") -> str:
        return (f"{prefix}{self.lane_change_type.value} path range:{self.range:.2f} "
                f"start:({self.start.x:.2f}, {self.start.y:.2f}) end:({self.end.x:.2f}, {self.end.y:.2f})")


class DiscretePath:
    """Resampled path, built by chaining continuous paths."""

    def __init__(self, path: ContinuousPath, resolution: float = 0.1):
        self.resolution = resolution
        self._samples: List[Tuple[float, Transform, float]] = path.samples(resolution)

    @property
    def range(self) -> float:
        return self._samples[-1][0]

    def append(self, path: ContinuousPath) -> None:
        offset = self.range
        for s, transform, curvature in path.samples(self.resolution)[1:]:
            self._samples.append((offset + s, transform, curvature))

    def _bracket(self, s: float):
        s = min(max(s, 0.0), self.range)
        idx = int(np.searchsorted([sample[0] for sample in self._samples], s))
        idx = min(max(idx, 1), len(self._samples) - 1)
        s0, t0, c0 = self._samples[idx - 1]
        s1, t1, c1 = self._samples[idx]
        ratio = 0.0 if s1 <= s0 else (s - s0) / (s1 - s0)
        return t0, t1, c0, c1, ratio

    def transform_at(self, s: float) -> Transform:
        t0, t1, _, _, r = self._bracket(s)
        return Transform(t0.x + r * (t1.x - t0.x),
                         t0.y + r * (t1.y - t0.y),
                         normalize_angle(t0.yaw_rad + r * normalize_angle(t1.yaw_rad - t0.yaw_rad)))

    def curvature_at(self, s: float) -> float:
        _, _, c0, c1, r = self._bracket(s)
        return c0 + r * (c1 - c0)

    def transforms(self) -> List[Transform]:
        return [transform for _, transform, _ in self._samples]

    def __len__(self) -> int:
        return len(self._samples)


class QuinticPathGenerator:
    """Creates ``ContinuousPath`` objects for the planners."""

    def __init__(self, max_curvature: float = 0.2, sample_resolution: float = 0.1):
        self.max_curvature = max_curvature
        self.sample_resolution = sample_resolution

    def make_path(self, start: PoseCurvature, end: PoseCurvature,
                  lane_change_type: LaneChangeType) -> ContinuousPath:
        return ContinuousPath(start, end, lane_change_type,
                              max_curvature=self.max_curvature,
                              sample_resolution=self.sample_resolution)
