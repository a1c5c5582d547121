"""Traffic lattice: a waypoint lattice with vehicle occupancy.

Every tracked vehicle claims the contiguous run of nodes covered by its
bounding box, ordered from its rear to its head. A node is claimed by at most
one vehicle, so two vehicles sharing a node are in collision.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from loguru import logger

from lattice_drive.algorithms.lattice.waypoint_lattice import WaypointLattice, WaypointNode
from lattice_drive.core.exceptions import (
    CollisionError,
    LatticeError,
    TrafficMismatchError,
    VehicleNotOnLatticeError,
)
from lattice_drive.core.types import Vehicle
from lattice_drive.environments.road_map import RoadMap, Waypoint
from lattice_drive.environments.router import Router


# (rear, mid, head) waypoints of a vehicle, None where off the map
VehicleWaypoints = Tuple[Optional[Waypoint], Optional[Waypoint], Optional[Waypoint]]
# (other vehicle id, gap along the lattice)
Neighbor = Optional[Tuple[int, float]]


class Registration(IntEnum):
    """Outcome of adding a vehicle to the lattice."""
    COLLISION = -1
    SKIPPED = 0   # already tracked, or not fully on the lattice
    ADDED = 1


@dataclass
class TrafficNode(WaypointNode):
    vehicle: Optional[int] = None

    def string(self, prefix: str = "") -> str:
        return super().string(prefix) + f" vehicle:{self.vehicle}"


class TrafficLattice(WaypointLattice):
    """Lattice spanning a set of vehicles, from the rearmost rear to the foremost head.

    Args:
        vehicles: Vehicles to register.
        road_map: Geometry provider.
        router: Route along which the lattice grows.
        longitudinal_resolution: Node spacing (m).
        max_road_expansions: Bound on road chaining when ordering the roads
            the vehicles are on.

    Raises:
        CollisionError: If the given vehicles overlap.
        LatticeError: If no vehicle is on the route.
    """

    node_class = TrafficNode

    def __init__(self,
                 vehicles: Sequence[Vehicle],
                 road_map: RoadMap,
                 router: Router,
                 longitudinal_resolution: float = 1.0,
                 max_road_expansions: int = 8):
        self._road_map = road_map
        self._router = router
        self._max_road_expansions = max_road_expansions
        self._vehicle_nodes: Dict[int, List[int]] = {}

        waypoints = self._vehicle_waypoints(vehicles)
        start, range = self._lattice_start_and_range(waypoints)
        super().__init__(start, range, longitudinal_resolution, router, road_map)

        valid, _ = self._register_vehicles(vehicles, waypoints)
        if not valid:
            raise CollisionError(
                "Cannot create a traffic lattice from colliding vehicles:\n" +
                "\n".join(vehicle.string("  ") for vehicle in vehicles))

    # ------------------------------------------------------------------
    # vehicle bookkeeping
    # ------------------------------------------------------------------
    def vehicles(self) -> Set[int]:
        return set(self._vehicle_nodes)

    def has_vehicle(self, vehicle: int) -> bool:
        return vehicle in self._vehicle_nodes

    def vehicle_nodes(self, vehicle: int) -> List[TrafficNode]:
        return [self._nodes[node_id] for node_id in self._require(vehicle)]

    def vehicle_head_node(self, vehicle: int) -> TrafficNode:
        return self._nodes[self._require(vehicle)[-1]]

    def vehicle_rear_node(self, vehicle: int) -> TrafficNode:
        return self._nodes[self._require(vehicle)[0]]

    def add_vehicle(self, vehicle: Vehicle) -> Registration:
        """Register a new vehicle.

        Returns:
            ``ADDED`` on success, ``SKIPPED`` if the vehicle is already tracked
            or cannot be placed on the lattice, ``COLLISION`` if it overlaps
            another vehicle. On collision the lattice is left unchanged.
        """
        return self._add_vehicle(vehicle, self._waypoints_of(vehicle))

    def delete_vehicle(self, vehicle: int) -> bool:
        """Release every node of the vehicle. False if it was not tracked."""
        node_ids = self._vehicle_nodes.pop(vehicle, None)
        if node_ids is None:
            return False
        for node_id in node_ids:
            node = self._nodes.get(node_id)
            if node is not None and node.vehicle == vehicle:
                node.vehicle = None
        return True

    def move_traffic_forward(self, vehicles: Sequence[Vehicle]) -> Tuple[bool, Set[int]]:
        """Update the vehicle positions, shifting and extending the lattice as needed.

        Args:
            vehicles: Updated vehicles, exactly the tracked set.

        Returns:
            (valid, disappeared): ``valid`` is False if a collision was found,
            in which case the lattice must not be used any more.
            ``disappeared`` holds the ids of vehicles that left the lattice
            and are no longer tracked.

        Raises:
            TrafficMismatchError: If the ids differ from the tracked vehicles.
                The lattice is not modified.
        """
        existing = set(self._vehicle_nodes)
        update = {vehicle.id for vehicle in vehicles}
        if existing != update:
            raise TrafficMismatchError(
                "Update vehicles do not match the tracked vehicles.\n"
                f"Tracked vehicles: {sorted(existing)}\n"
                f"Update vehicles: {sorted(update)}")

        waypoints = self._vehicle_waypoints(vehicles)
        start, range = self._lattice_start_and_range(waypoints)
        start_node = self.closest_node(start, self._resolution)

        for node_ids in self._vehicle_nodes.values():
            for node_id in node_ids:
                self._nodes[node_id].vehicle = None
        self._vehicle_nodes.clear()

        if start_node is None:
            # every vehicle moved past the old window
            logger.debug(f"Re-seeding the traffic lattice at waypoint {start.id}")
            self._seed(start, range)
        else:
            # the new window starts at an old node, which may lie behind the rearmost waypoint
            lag = max(start.s - start_node.waypoint.s, 0.0)
            self.shorten(self._range - start_node.distance)
            self.extend(range + lag)

        return self._register_vehicles(vehicles, waypoints)

    # ------------------------------------------------------------------
    # neighbour queries
    # ------------------------------------------------------------------
    def front(self, vehicle, distance: Optional[float] = None):
        """Leading vehicle on the lane of the vehicle's head.

        Called with a node and a distance, behaves as ``WaypointLattice.front``.
        """
        if distance is not None:
            return super().front(vehicle, distance)
        return self._front_vehicle(self.vehicle_head_node(vehicle))

    def back(self, vehicle, distance: Optional[float] = None):
        """Following vehicle on the lane of the vehicle's rear.

        Called with a node and a distance, behaves as ``WaypointLattice.back``.
        """
        if distance is not None:
            return super().back(vehicle, distance)
        return self._back_vehicle(self.vehicle_rear_node(vehicle))

    def left_front(self, vehicle: int) -> Neighbor:
        return self._lateral_front(vehicle, self.left)

    def right_front(self, vehicle: int) -> Neighbor:
        return self._lateral_front(vehicle, self.right)

    def left_back(self, vehicle: int) -> Neighbor:
        return self._lateral_back(vehicle, self.left)

    def right_back(self, vehicle: int) -> Neighbor:
        return self._lateral_back(vehicle, self.right)

    def is_changing_lane(self, vehicle: int) -> int:
        """0 if the vehicle keeps its lane, -1 if its head is on the left lane, 1 if on the right.

        Raises:
            LatticeError: If the head cannot be matched to the rear's lane.
        """
        node_ids = self._require(vehicle)
        rear = self._nodes[node_ids[0]]
        head = self._nodes[node_ids[-1]]

        # len(node_ids) - 1 steps lead from the rear to the head of a vehicle
        # keeping its lane; a walk of len(node_ids) steps would overshoot it
        front = rear
        for step in range(len(node_ids) - 1):
            front = self.get(front.front)
            if front is None:
                raise LatticeError(
                    f"Cannot find a front node {step + 1} steps ahead of the rear node of vehicle [{vehicle}].\n"
                    + rear.string("rear node: ") + "\n" + head.string("head node: "))

        if front.id == head.id:
            return 0
        if front.left is not None and front.left == head.id:
            return -1
        if front.right is not None and front.right == head.id:
            return 1
        raise LatticeError(
            f"Cannot match the front node to the head node of vehicle [{vehicle}].\n"
            + front.string("front node: ") + "\n" + head.string("head node: ")
            + "\n" + rear.string("rear node: "))

    def copy(self) -> 'TrafficLattice':
        other = super().copy()
        other._vehicle_nodes = {vehicle: list(node_ids) for vehicle, node_ids in self._vehicle_nodes.items()}
        return other

    def string(self, prefix: str = "") -> str:
        lines = [f"{prefix}traffic lattice range:{self._range:.2f} nodes:{len(self._nodes)}"]
        for vehicle in sorted(self._vehicle_nodes):
            rear = self.vehicle_rear_node(vehicle)
            head = self.vehicle_head_node(vehicle)
            lines.append(
                f"{prefix}  vehicle {vehicle}: {len(self._vehicle_nodes[vehicle])} nodes "
                f"rear distance:{rear.distance:.2f} head distance:{head.distance:.2f}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _require(self, vehicle: int) -> List[int]:
        node_ids = self._vehicle_nodes.get(vehicle)
        if node_ids is None:
            raise VehicleNotOnLatticeError(f"Vehicle [{vehicle}] is not on the lattice")
        return node_ids

    def _front_vehicle(self, start: TrafficNode) -> Neighbor:
        node = self.get(start.front)
        while node is not None:
            if node.vehicle is not None:
                return node.vehicle, node.distance - start.distance
            node = self.get(node.front)
        return None

    def _back_vehicle(self, start: TrafficNode) -> Neighbor:
        node = self.get(start.back)
        while node is not None:
            if node.vehicle is not None:
                return node.vehicle, start.distance - node.distance
            node = self.get(node.back)
        return None

    def _lateral_front(self, vehicle: int, lateral) -> Neighbor:
        start = self.vehicle_head_node(vehicle)
        side = lateral(start)
        if side is None:
            return None
        if side.vehicle is None:
            return self._front_vehicle(side)
        # the other vehicle overlaps the head, measure to its rear
        other = side.vehicle
        return other, self.vehicle_rear_node(other).distance - start.distance

    def _lateral_back(self, vehicle: int, lateral) -> Neighbor:
        start = self.vehicle_rear_node(vehicle)
        side = lateral(start)
        if side is None:
            return None
        if side.vehicle is None:
            return self._back_vehicle(side)
        other = side.vehicle
        return other, start.distance - self.vehicle_head_node(other).distance

    def _waypoints_of(self, vehicle: Vehicle) -> VehicleWaypoints:
        transform = vehicle.transform
        extent = vehicle.bounding_box.extent_x
        return (
            self._road_map.waypoint(transform.offset(-extent)),
            self._road_map.waypoint(transform.location),
            self._road_map.waypoint(transform.offset(extent)),
        )

    def _vehicle_waypoints(self, vehicles: Iterable[Vehicle]) -> Dict[int, VehicleWaypoints]:
        return {vehicle.id: self._waypoints_of(vehicle) for vehicle in vehicles}

    def _lattice_start_and_range(self, vehicle_waypoints: Dict[int, VehicleWaypoints]) -> Tuple[Waypoint, float]:
        """Rearmost on-route waypoint and the arc length up to the foremost one."""
        road_to_waypoints: Dict[int, List[Waypoint]] = {}
        for vehicle in sorted(vehicle_waypoints):
            for waypoint in vehicle_waypoints[vehicle]:
                if waypoint is None or not self._router.has_road(waypoint.road_id):
                    continue
                road_to_waypoints.setdefault(waypoint.road_id, []).append(waypoint)

        if not road_to_waypoints:
            raise LatticeError(
                f"None of the vehicles {sorted(vehicle_waypoints)} is on the route")

        for waypoints in road_to_waypoints.values():
            waypoints.sort(key=lambda waypoint: waypoint.s)

        sorted_roads = self._sort_roads(set(road_to_waypoints))
        first = road_to_waypoints[sorted_roads[0]][0]
        last = road_to_waypoints[sorted_roads[-1]][-1]

        range = sum(self._road_map.road_length(road) for road in sorted_roads)
        range -= first.s
        range -= self._road_map.road_length(sorted_roads[-1]) - last.s
        return first, range

    def _sort_roads(self, roads: Set[int]) -> List[int]:
        """Chain the given roads in route order.

        Raises:
            LatticeError: If the roads cannot be chained within the expansion bound.
        """
        remaining = set(roads)
        first = min(remaining)
        remaining.discard(first)
        chain: Deque[int] = deque([first])

        for _ in range(self._max_road_expansions):
            if not remaining:
                break
            new_first = self._router.prev_road(chain[0])
            new_last = self._router.next_road(chain[-1])
            if new_first is not None:
                chain.appendleft(new_first)
                remaining.discard(new_first)
            if new_last is not None:
                chain.append(new_last)
                remaining.discard(new_last)

        if remaining:
            raise LatticeError(
                "Some of the roads cannot be sorted, the vehicles probably do not form local traffic.\n"
                f"roads to be sorted: {sorted(roads)}\n"
                f"roads that cannot be sorted: {sorted(remaining)}")

        while chain[0] not in roads:
            chain.popleft()
        while chain[-1] not in roads:
            chain.pop()
        return list(chain)

    def _register_vehicles(self,
                           vehicles: Sequence[Vehicle],
                           vehicle_waypoints: Dict[int, VehicleWaypoints]) -> Tuple[bool, Set[int]]:
        self._vehicle_nodes.clear()
        disappeared: Set[int] = set()
        for vehicle in vehicles:
            result = self._add_vehicle(vehicle, vehicle_waypoints[vehicle.id])
            if result == Registration.SKIPPED:
                disappeared.add(vehicle.id)
            elif result == Registration.COLLISION:
                logger.debug(f"Collision when registering vehicle {vehicle.id}")
                return False, disappeared
        return True, disappeared

    def _add_vehicle(self, vehicle: Vehicle, waypoints: VehicleWaypoints) -> Registration:
        if vehicle.id in self._vehicle_nodes:
            return Registration.SKIPPED

        rear_waypoint, mid_waypoint, head_waypoint = waypoints
        if rear_waypoint is None or mid_waypoint is None or head_waypoint is None:
            return Registration.SKIPPED

        rear = self.closest_node(rear_waypoint, self._resolution)
        mid = self.closest_node(mid_waypoint, self._resolution)
        head = self.closest_node(head_waypoint, self._resolution)
        if rear is None or mid is None or head is None:
            return Registration.SKIPPED

        # The rear and head may be on a different lane than the mid node
        # while the vehicle changes lanes, so both walks also stop at the
        # lateral neighbours of the mid node.
        stops = {mid.id, mid.left, mid.right}

        rear_forward: List[int] = []
        node = rear
        while node is not None and node.id not in stops and node.distance <= mid.distance:
            rear_forward.append(node.id)
            node = self.get(node.front)

        head_backward: List[int] = []
        node = head
        while node is not None and node.id not in stops and node.distance >= mid.distance:
            head_backward.append(node.id)
            node = self.get(node.back)
        head_backward.reverse()

        node_ids: List[int] = []
        for node_id in rear_forward + [mid.id] + head_backward:
            if node_id not in node_ids:
                node_ids.append(node_id)

        claimed: List[int] = []
        for node_id in node_ids:
            node = self._nodes[node_id]
            if node.vehicle is not None:
                for claimed_id in claimed:
                    self._nodes[claimed_id].vehicle = None
                return Registration.COLLISION
            node.vehicle = vehicle.id
            claimed.append(node_id)

        self._vehicle_nodes[vehicle.id] = node_ids
        return Registration.ADDED
