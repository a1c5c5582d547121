"""Waypoint lattice.

A 2-D grid of road positions: longitudinal chains of nodes along each lane,
connected laterally to the nodes of the adjacent lanes at the same arc length.
Nodes live in a table owned by the lattice and refer to each other by id.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, Iterator, List, Optional, Tuple
import bisect
import copy
import math

from lattice_drive.core.exceptions import LatticeError
from lattice_drive.environments.road_map import RoadMap, Waypoint
from lattice_drive.environments.router import Router
from lattice_drive.utils import geometry


_EPS = 1e-6


@dataclass
class WaypointNode:
    """A lattice node.

    Attributes:
        id: Id of the underlying waypoint.
        waypoint: Lane center waypoint of the node.
        distance: Arc length from the start of the lattice (m).
        front, back: Ids of the longitudinal neighbours on the same lane.
        left, right: Ids of the lateral neighbours at the same arc length.
    """
    id: int
    waypoint: Waypoint
    distance: float
    front: Optional[int] = None
    back: Optional[int] = None
    left: Optional[int] = None
    right: Optional[int] = None

    def curvature(self, road_map: RoadMap) -> float:
        return road_map.curvature(self.waypoint)

    def string(self, prefix: str = "") -> str:
        return (f"{prefix}node id:{self.id} road:{self.waypoint.road_id} lane:{self.waypoint.lane_id} "
                f"s:{self.waypoint.s:.2f} distance:{self.distance:.2f} "
                f"front:{self.front} back:{self.back} left:{self.left} right:{self.right}")


class WaypointLattice:
    """Lattice of waypoints along the route.

    Args:
        start: Waypoint of the node at distance 0.
        range: Arc length the lattice covers from the start (m).
        longitudinal_resolution: Spacing of the nodes along a lane (m).
        router: Decides which road to follow at road ends.
        road_map: Geometry provider for stepping and lateral neighbours.

    Raises:
        ValueError: If ``range`` does not exceed the resolution.
    """

    node_class = WaypointNode

    def __init__(self,
                 start: Waypoint,
                 range: float,
                 longitudinal_resolution: float,
                 router: Router,
                 road_map: RoadMap):
        if longitudinal_resolution <= 0.0:
            raise ValueError(f"longitudinal_resolution must be positive, got {longitudinal_resolution}")
        if range <= longitudinal_resolution:
            raise ValueError(
                f"Lattice range [{range}] must exceed the longitudinal resolution "
                f"[{longitudinal_resolution}]")

        self._resolution = longitudinal_resolution
        self._router = router
        self._road_map = road_map
        self._nodes: Dict[int, WaypointNode] = {}
        # (road, lane) -> sorted arc lengths and the matching node ids
        self._lane_index: Dict[Tuple[int, int], Tuple[List[float], List[int]]] = {}
        self._range = 0.0
        self._seed(start, range)

    # ------------------------------------------------------------------
    # properties and lookups
    # ------------------------------------------------------------------
    @property
    def range(self) -> float:
        return self._range

    @property
    def longitudinal_resolution(self) -> float:
        return self._resolution

    @property
    def router(self) -> Router:
        return self._router

    @property
    def road_map(self) -> RoadMap:
        return self._road_map

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def nodes(self) -> Iterator[WaypointNode]:
        return iter(self._nodes.values())

    def has_node(self, node_id: Optional[int]) -> bool:
        return node_id is not None and node_id in self._nodes

    def node(self, node_id: int) -> WaypointNode:
        """Node by id.

        Raises:
            LatticeError: If the node is not on the lattice.
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise LatticeError(f"Node {node_id} is not on the lattice")
        return node

    def get(self, node_id: Optional[int]) -> Optional[WaypointNode]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def closest_node(self, waypoint: Waypoint, tolerance: float) -> Optional[WaypointNode]:
        """Node on the waypoint's lane closest to it, if within ``tolerance``."""
        entry = self._lane_index.get((waypoint.road_id, waypoint.lane_id))
        if entry is None:
            return None
        s_values, node_ids = entry
        idx = bisect.bisect_left(s_values, waypoint.s)

        best, best_dist = None, math.inf
        for i in (idx - 1, idx, idx + 1):
            if i < 0 or i >= len(node_ids):
                continue
            node = self._nodes[node_ids[i]]
            dist = geometry.distance(node.waypoint.location, waypoint.location)
            if dist < best_dist:
                best, best_dist = node, dist

        if best is None or best_dist > tolerance:
            return None
        return best

    # ------------------------------------------------------------------
    # longitudinal and lateral queries
    # ------------------------------------------------------------------
    def front(self, node: WaypointNode, distance: float) -> Optional[WaypointNode]:
        """Node on the same lane at least ``distance`` ahead of ``node``."""
        target = node.distance + distance
        current = node
        while current.distance < target - _EPS:
            current = self.get(current.front)
            if current is None:
                return None
        return current

    def back(self, node: WaypointNode, distance: float) -> Optional[WaypointNode]:
        """Node on the same lane at least ``distance`` behind ``node``."""
        target = node.distance - distance
        current = node
        while current.distance > target + _EPS:
            current = self.get(current.back)
            if current is None:
                return None
        return current

    def left(self, node: WaypointNode) -> Optional[WaypointNode]:
        return self.get(node.left)

    def right(self, node: WaypointNode) -> Optional[WaypointNode]:
        return self.get(node.right)

    def front_left(self, node: WaypointNode, distance: float) -> Optional[WaypointNode]:
        """Left neighbour of the node ``distance`` ahead."""
        front = self.front(node, distance)
        return self.left(front) if front is not None else None

    def front_right(self, node: WaypointNode, distance: float) -> Optional[WaypointNode]:
        """Right neighbour of the node ``distance`` ahead."""
        front = self.front(node, distance)
        return self.right(front) if front is not None else None

    # ------------------------------------------------------------------
    # growing and trimming
    # ------------------------------------------------------------------
    def extend(self, range: float) -> None:
        """Grow the lattice forward until it covers ``range`` of arc length.

        Stepping along the route is delegated to the router. Lanes that end
        or leave the route simply stop growing.
        """
        exits = sorted((node for node in self._nodes.values() if node.front is None),
                       key=lambda node: (node.distance, node.id))
        queue: Deque[WaypointNode] = deque(exits)

        while queue:
            node = queue.popleft()
            if node.front is not None:
                continue
            if node.distance + self._resolution > range + _EPS:
                continue

            front_waypoint = self._router.front_waypoint(node.waypoint, self._resolution)
            if front_waypoint is None:
                continue

            front = self._nodes.get(front_waypoint.id)
            if front is None:
                front = self._new_node(front_waypoint, node.distance + self._resolution)
                self._add_lateral_nodes(front, queue)
                queue.append(front)
            node.front = front.id
            front.back = node.id

        self._update_range()

    def shorten(self, range: float) -> None:
        """Drop nodes from the back so that ``range`` of arc length remains.

        Distances of the surviving nodes are re-based so the new start is at 0.

        Raises:
            ValueError: If ``range`` is negative or beyond the current range.
        """
        if range < 0.0 or range > self._range + _EPS:
            raise ValueError(
                f"Cannot shorten a lattice of range {self._range:.3f} to {range:.3f}")

        cut = self._range - range
        if cut <= _EPS:
            return

        survivors = {node_id: node for node_id, node in self._nodes.items()
                     if node.distance >= cut - _EPS}
        if not survivors:
            raise LatticeError(f"Shortening to {range:.3f} removes every node of the lattice")

        base = min(node.distance for node in survivors.values())
        for node in survivors.values():
            node.distance -= base
            if node.back not in survivors:
                node.back = None
            if node.front not in survivors:
                node.front = None
            if node.left not in survivors:
                node.left = None
            if node.right not in survivors:
                node.right = None

        self._nodes = survivors
        self._rebuild_lane_index()
        self._update_range()

    def shift(self, distance: float) -> None:
        """Move the lattice window forward by ``distance`` keeping its range."""
        if distance <= 0.0:
            return
        range = self._range
        if distance >= range:
            raise ValueError(f"Cannot shift a lattice of range {range:.3f} by {distance:.3f}")
        self.shorten(range - distance)
        self.extend(range)

    def copy(self) -> 'WaypointLattice':
        """Independent copy of the node table sharing the router and map."""
        other = copy.copy(self)
        other._nodes = {node_id: replace(node) for node_id, node in self._nodes.items()}
        other._lane_index = {key: (list(s_values), list(node_ids))
                             for key, (s_values, node_ids) in self._lane_index.items()}
        return other

    def string(self, prefix: str = "") -> str:
        lines = [f"{prefix}lattice range:{self._range:.2f} resolution:{self._resolution} nodes:{len(self._nodes)}"]
        for node in sorted(self._nodes.values(), key=lambda n: (n.distance, n.waypoint.lane_id)):
            lines.append(node.string(prefix + "  "))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _seed(self, start: Waypoint, range: float) -> None:
        """Discard every node and grow a fresh lattice from ``start``."""
        self._nodes = {}
        self._lane_index = {}
        start_node = self._new_node(start, 0.0)
        self._add_lateral_nodes(start_node, None)
        self.extend(range)

    def _new_node(self, waypoint: Waypoint, distance: float) -> WaypointNode:
        if waypoint.id in self._nodes:
            raise LatticeError(f"Node {waypoint.id} already exists on the lattice")
        node = self.node_class(id=waypoint.id, waypoint=waypoint, distance=distance)
        self._nodes[node.id] = node
        s_values, node_ids = self._lane_index.setdefault((waypoint.road_id, waypoint.lane_id), ([], []))
        idx = bisect.bisect_left(s_values, waypoint.s)
        s_values.insert(idx, waypoint.s)
        node_ids.insert(idx, node.id)
        return node

    def _add_lateral_nodes(self, node: WaypointNode, queue: Optional[Deque[WaypointNode]]) -> None:
        """Create or link the nodes of every lane to the left and right of ``node``."""
        for side, other_side, step in (('left', 'right', self._road_map.left_lane),
                                       ('right', 'left', self._road_map.right_lane)):
            current = node
            while True:
                lateral_waypoint = step(current.waypoint)
                if lateral_waypoint is None:
                    break
                lateral = self._nodes.get(lateral_waypoint.id)
                created = lateral is None
                if created:
                    lateral = self._new_node(lateral_waypoint, current.distance)
                    if queue is not None:
                        queue.append(lateral)
                setattr(current, side, lateral.id)
                setattr(lateral, other_side, current.id)
                if not created:
                    break
                current = lateral

    def _rebuild_lane_index(self) -> None:
        self._lane_index = {}
        entries: Dict[Tuple[int, int], List[Tuple[float, int]]] = {}
        for node in self._nodes.values():
            key = (node.waypoint.road_id, node.waypoint.lane_id)
            entries.setdefault(key, []).append((node.waypoint.s, node.id))
        for key, items in entries.items():
            items.sort()
            self._lane_index[key] = ([s for s, _ in items], [node_id for _, node_id in items])

    def _update_range(self) -> None:
        self._range = max(node.distance for node in self._nodes.values())
