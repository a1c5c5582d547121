"""Road network geometry.

``RoadMap`` is the narrow geometry interface consumed by the lattice and the
traffic simulator. ``StraightRoadMap`` is a reference implementation: a chain
of straight multi-lane roads laid out along the x axis.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence
import bisect

from lattice_drive.core.types import Transform, Vector2
from lattice_drive.utils.geometry import to_local_frame


@dataclass(frozen=True)
class Waypoint:
    """A point on a lane center line.

    Attributes:
        id: Stable id, unique per (road, lane, arc length).
        road_id: Road the waypoint is on.
        lane_id: Lane the waypoint is on.
        s: Arc length from the start of the road (m).
        transform: Pose on the lane center line.
        lane_width: Width of the lane (m).
    """
    id: int
    road_id: int
    lane_id: int
    s: float
    transform: Transform
    lane_width: float

    @property
    def location(self) -> Vector2:
        return self.transform.location


def waypoint_id(road_id: int, lane_id: int, s: float) -> int:
    """Stable waypoint id from road, lane and centimetre quantised arc length."""
    return (road_id * 100 + lane_id) * 10 ** 8 + int(round(s * 100.0))


class RoadMap(ABC):
    """Geometry provider queried by the lattice planning stack."""

    @abstractmethod
    def waypoint(self, location: Vector2) -> Optional[Waypoint]:
        """Nearest lane center waypoint, or None when off the map."""

    @abstractmethod
    def next(self, waypoint: Waypoint, distance: float) -> List[Waypoint]:
        """Candidate waypoints ``distance`` ahead along the lane."""

    @abstractmethod
    def previous(self, waypoint: Waypoint, distance: float) -> List[Waypoint]:
        """Candidate waypoints ``distance`` behind along the lane."""

    @abstractmethod
    def left_lane(self, waypoint: Waypoint) -> Optional[Waypoint]:
        pass

    @abstractmethod
    def right_lane(self, waypoint: Waypoint) -> Optional[Waypoint]:
        pass

    @abstractmethod
    def road_length(self, road_id: int) -> float:
        pass

    def curvature(self, waypoint: Waypoint) -> float:
        """Lane curvature at the waypoint (1/m)."""
        return 0.0

    def distance_to_lane_center(self, location: Vector2, waypoint: Waypoint) -> float:
        """Signed lateral distance from the lane center, positive to the right."""
        _, left = to_local_frame(location, waypoint.location, waypoint.transform.yaw_rad)
        return -left


class StraightRoadMap(RoadMap):
    """Straight roads connected end to end along the x axis.

    Lane 0 is the rightmost lane with its center on ``y = 0``; lane ``i`` is
    centered at ``y = i * lane_width``. Every road has the same lanes.
    """

    def __init__(self,
                 road_lengths: Sequence[float],
                 num_lanes: int = 3,
                 lane_width: float = 3.5,
                 road_ids: Optional[Sequence[int]] = None,
                 successors: Optional[Dict[int, List[int]]] = None,
                 origin_x: float = 0.0):
        if not road_lengths:
            raise ValueError("At least one road is required")
        if any(length <= 0.0 for length in road_lengths):
            raise ValueError(f"Road lengths must be positive, got {list(road_lengths)}")
        if num_lanes < 1:
            raise ValueError(f"num_lanes must be >= 1, got {num_lanes}")
        if lane_width <= 0.0:
            raise ValueError(f"lane_width must be positive, got {lane_width}")

        self.num_lanes = num_lanes
        self.lane_width = lane_width
        self.road_ids: List[int] = list(road_ids) if road_ids is not None else list(range(len(road_lengths)))
        if len(self.road_ids) != len(road_lengths):
            raise ValueError("road_ids and road_lengths differ in size")

        self._lengths: Dict[int, float] = dict(zip(self.road_ids, road_lengths))
        self._starts: Dict[int, float] = {}
        x = origin_x
        for road_id in self.road_ids:
            self._starts[road_id] = x
            x += self._lengths[road_id]
        self._start_list = [self._starts[road_id] for road_id in self.road_ids]
        self._end_x = x

        if successors is None:
            successors = {road_id: [] for road_id in self.road_ids}
            for prev_id, next_id in zip(self.road_ids[:-1], self.road_ids[1:]):
                successors[prev_id] = [next_id]
        self._successors = {road_id: list(successors.get(road_id, [])) for road_id in self.road_ids}
        self._predecessors: Dict[int, List[int]] = {road_id: [] for road_id in self.road_ids}
        for road_id, nexts in self._successors.items():
            for next_id in nexts:
                self._predecessors[next_id].append(road_id)

    @property
    def total_length(self) -> float:
        return self._end_x - self._start_list[0]

    def road_length(self, road_id: int) -> float:
        if road_id not in self._lengths:
            raise ValueError(f"Unknown road: {road_id}")
        return self._lengths[road_id]

    def road_start(self, road_id: int) -> float:
        return self._starts[road_id]

    def waypoint_on_lane(self, road_id: int, lane_id: int, s: float) -> Waypoint:
        """Waypoint at arc length ``s`` of the given road and lane."""
        if road_id not in self._lengths:
            raise ValueError(f"Unknown road: {road_id}")
        if not 0 <= lane_id < self.num_lanes:
            raise ValueError(f"Unknown lane {lane_id} on road {road_id}")
        transform = Transform(self._starts[road_id] + s, lane_id * self.lane_width, 0.0)
        return Waypoint(waypoint_id(road_id, lane_id, s), road_id, lane_id, s,
                        transform, self.lane_width)

    def waypoint(self, location: Vector2) -> Optional[Waypoint]:
        x, y = location
        if x < self._start_list[0] or x >= self._end_x:
            return None
        idx = bisect.bisect_right(self._start_list, x) - 1
        road_id = self.road_ids[idx]
        lane_id = int(round(y / self.lane_width))
        lane_id = min(max(lane_id, 0), self.num_lanes - 1)
        return self.waypoint_on_lane(road_id, lane_id, x - self._starts[road_id])

    def next(self, waypoint: Waypoint, distance: float) -> List[Waypoint]:
        if distance < 0.0:
            raise ValueError(f"distance must be non-negative, got {distance}")
        return self._advance(waypoint.road_id, waypoint.lane_id, waypoint.s + distance)

    def previous(self, waypoint: Waypoint, distance: float) -> List[Waypoint]:
        if distance < 0.0:
            raise ValueError(f"distance must be non-negative, got {distance}")
        return self._retreat(waypoint.road_id, waypoint.lane_id, waypoint.s - distance)

    def left_lane(self, waypoint: Waypoint) -> Optional[Waypoint]:
        if waypoint.lane_id + 1 >= self.num_lanes:
            return None
        return self.waypoint_on_lane(waypoint.road_id, waypoint.lane_id + 1, waypoint.s)

    def right_lane(self, waypoint: Waypoint) -> Optional[Waypoint]:
        if waypoint.lane_id - 1 < 0:
            return None
        return self.waypoint_on_lane(waypoint.road_id, waypoint.lane_id - 1, waypoint.s)

    def successors(self, road_id: int) -> List[int]:
        return list(self._successors[road_id])

    def lane_ids(self) -> Iterable[int]:
        return range(self.num_lanes)

    def _advance(self, road_id: int, lane_id: int, s: float) -> List[Waypoint]:
        length = self._lengths[road_id]
        if s < length:
            return [self.waypoint_on_lane(road_id, lane_id, s)]
        waypoints = []
        for next_id in self._successors[road_id]:
            waypoints.extend(self._advance(next_id, lane_id, s - length))
        return waypoints

    def _retreat(self, road_id: int, lane_id: int, s: float) -> List[Waypoint]:
        if s >= 0.0:
            return [self.waypoint_on_lane(road_id, lane_id, s)]
        waypoints = []
        for prev_id in self._predecessors[road_id]:
            waypoints.extend(self._retreat(prev_id, lane_id, s + self._lengths[prev_id]))
        return waypoints
