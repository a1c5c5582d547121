"""Route sequencing over the road network."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from lattice_drive.core.exceptions import OffRouteError
from lattice_drive.environments.road_map import RoadMap, Waypoint


class Router(ABC):
    """Maps a road on the route to its neighbours along the route."""

    @abstractmethod
    def next_road(self, road_id: int) -> Optional[int]:
        pass

    @abstractmethod
    def prev_road(self, road_id: int) -> Optional[int]:
        pass

    @abstractmethod
    def has_road(self, road_id: int) -> bool:
        pass

    @abstractmethod
    def front_waypoint(self, waypoint: Waypoint, distance: float) -> Optional[Waypoint]:
        pass


class LoopRouter(Router):
    """Router following a fixed road sequence.

    With ``loop=True`` the last road is followed by the first one and vice
    versa, otherwise the route has open ends.
    """

    def __init__(self, road_map: RoadMap, road_sequence: Sequence[int], loop: bool = True):
        if not road_sequence:
            raise ValueError("road_sequence must not be empty")
        if len(set(road_sequence)) != len(road_sequence):
            raise ValueError(f"road_sequence contains duplicates: {list(road_sequence)}")
        self.road_map = road_map
        self.road_sequence: List[int] = list(road_sequence)
        self.loop = loop
        self._index = {road_id: idx for idx, road_id in enumerate(self.road_sequence)}

    def has_road(self, road_id: int) -> bool:
        return road_id in self._index

    def _position(self, road_id: int) -> int:
        if road_id not in self._index:
            raise OffRouteError(f"Road {road_id} is not on the route {self.road_sequence}")
        return self._index[road_id]

    def next_road(self, road_id: int) -> Optional[int]:
        idx = self._position(road_id)
        if idx < len(self.road_sequence) - 1:
            return self.road_sequence[idx + 1]
        return self.road_sequence[0] if self.loop else None

    def prev_road(self, road_id: int) -> Optional[int]:
        idx = self._position(road_id)
        if idx > 0:
            return self.road_sequence[idx - 1]
        return self.road_sequence[-1] if self.loop else None

    def front_waypoint(self, waypoint: Waypoint, distance: float) -> Optional[Waypoint]:
        """Waypoint ``distance`` ahead that stays on the route.

        A candidate on the same road wins, otherwise the candidate on the next
        road of the route is returned. None when the route cannot be followed.

        Raises:
            ValueError: If ``distance`` is not positive.
            OffRouteError: If the waypoint's road is not on the route.
        """
        if distance <= 0.0:
            raise ValueError(
                f"front_waypoint() requires a positive distance, got {distance} "
                f"at waypoint {waypoint.id} road:{waypoint.road_id} lane:{waypoint.lane_id} s:{waypoint.s:.2f}")

        candidates = self.road_map.next(waypoint, distance)
        next_road = self.next_road(waypoint.road_id)
        next_waypoint = None
        for candidate in candidates:
            if candidate.road_id == waypoint.road_id:
                return candidate
            if candidate.road_id == next_road:
                next_waypoint = candidate
        return next_waypoint

    def waypoint_on_route(self, waypoint: Waypoint) -> Optional[Waypoint]:
        """The waypoint itself or a nearby successor whose road is on the route."""
        if self.has_road(waypoint.road_id):
            return waypoint
        for candidate in self.road_map.next(waypoint, 0.01):
            if self.has_road(candidate.road_id):
                return candidate
        return None
