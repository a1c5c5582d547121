"""Station graph planning on a waypoint lattice.

Every cycle the planner:

1. Maintains a waypoint lattice around the ego, shifting it forward once the
   ego reaches the next station of the previous plan.
2. Prunes the station graph to a new root at the ego. While the next station
   is still being approached, the root is reconnected to the nodes at that
   station's distance so the committed maneuver survives.
3. Expands the graph breadth first. Each edge is a path to a lattice node
   ``lookahead`` metres ahead on the same, the left or the right lane,
   validated by simulating the traffic forward.
4. Scores the terminal stations and backtracks the cheapest one to the root.

Subclasses decide how a station is keyed and how the traffic is simulated
along an edge.
"""

from __future__ import annotations
from abc import abstractmethod
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, NamedTuple, Optional, Tuple

from loguru import logger

from lattice_drive.algorithms.lattice.idm import IntelligentDriverModel
from lattice_drive.algorithms.lattice.path import (
    ContinuousPath,
    DiscretePath,
    LaneChangeType,
    QuinticPathGenerator,
)
from lattice_drive.algorithms.lattice.simulator import AccelerationCost, StageCostFunction
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.algorithms.lattice.station import Child, Parent, Side, Station, StationKey
from lattice_drive.algorithms.lattice.waypoint_lattice import WaypointLattice, WaypointNode
from lattice_drive.config.global_config import GlobalConfig, get_global_config
from lattice_drive.core.exceptions import LatticeError, PathGenerationError, PlanningFailure
from lattice_drive.core.planner import VehiclePathPlanner
from lattice_drive.environments.road_map import RoadMap
from lattice_drive.environments.router import Router
from lattice_drive.utils.timing import time_block


class PlannerState(Enum):
    UNINITIALIZED = "uninitialized"
    ROOTED = "rooted"
    EXPANDED = "expanded"


class Maneuver(NamedTuple):
    """One way of leaving a station."""
    child_side: Side
    parent_side: Side
    lane_change_type: LaneChangeType
    target: str            # WaypointLattice query for the target node
    lateral_front: Optional[str]
    lateral_back: Optional[str]

    @property
    def is_lane_change(self) -> bool:
        return self.lane_change_type != LaneChangeType.KEEP_LANE


KEEP_LANE = Maneuver(Side.FRONT, Side.BACK, LaneChangeType.KEEP_LANE,
                     'front', None, None)
LEFT_LANE_CHANGE = Maneuver(Side.LEFT, Side.RIGHT, LaneChangeType.LEFT_LANE_CHANGE,
                            'front_left', 'left_front', 'left_back')
RIGHT_LANE_CHANGE = Maneuver(Side.RIGHT, Side.LEFT, LaneChangeType.RIGHT_LANE_CHANGE,
                             'front_right', 'right_front', 'right_back')

MANEUVERS = (KEEP_LANE, LEFT_LANE_CHANGE, RIGHT_LANE_CHANGE)


# (acceleration option or None, ego-and-traffic snapshot at arrival, stage cost)
EdgeOutcome = Tuple[Optional[float], Snapshot, float]


class StationGraphPlanner(VehiclePathPlanner):
    """Base class of the lattice planners.

    Args:
        road_map: Geometry provider.
        router: Route the lattice follows.
        config: Global configuration, defaults to ``get_global_config()``.
        path_generator: Object with ``make_path(start, end, lane_change_type)``,
            defaults to ``QuinticPathGenerator``.
        cost_function: Stage cost of a simulation step, defaults to
            ``AccelerationCost(config.cost)``.
    """

    def __init__(self,
                 road_map: RoadMap,
                 router: Router,
                 config: Optional[GlobalConfig] = None,
                 path_generator: Optional[Any] = None,
                 cost_function: Optional[StageCostFunction] = None):
        self.config = config if config is not None else get_global_config()
        self._road_map = road_map
        self._router = router
        self.path_generator = path_generator if path_generator is not None else QuinticPathGenerator()
        self.cost_function = cost_function if cost_function is not None else AccelerationCost(self.config.cost)
        self.idm = IntelligentDriverModel(self.config.idm)

        self.state = PlannerState.UNINITIALIZED
        self._lattice: Optional[WaypointLattice] = None
        self._stations: Dict[StationKey, Station] = {}
        self._root_key: Optional[StationKey] = None
        self._next_node_id: Optional[int] = None
        self._last_cost: Optional[float] = None

    # ------------------------------------------------------------------
    # variant hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _station_key(self, node_id: int, snapshot: Snapshot) -> Optional[StationKey]:
        """Key of the station at ``node_id`` reached with ``snapshot``, None if invalid."""

    @abstractmethod
    def _key_bin(self, key: StationKey) -> int:
        """Slot bin of the station with the given key."""

    @abstractmethod
    def _edge_options(self) -> List[Optional[float]]:
        """Options simulated for every edge, e.g. constant accelerations."""

    @abstractmethod
    def _simulate_edge(self, snapshot: Snapshot, path: ContinuousPath,
                       option: Optional[float]) -> Optional[Tuple[Snapshot, float]]:
        """Simulate the traffic along ``path``.

        Returns:
            (arrival snapshot, stage cost), or None on collision.
        """

    # ------------------------------------------------------------------
    # public interface
    # ------------------------------------------------------------------
    def plan_path(self, ego_id: int, snapshot: Snapshot) -> DiscretePath:
        children = self._plan(ego_id, snapshot)
        path = DiscretePath(children[0].path)
        for child in children[1:]:
            path.append(child.path)
        return path

    def reset(self) -> None:
        self.state = PlannerState.UNINITIALIZED
        self._lattice = None
        self._stations = {}
        self._root_key = None
        self._next_node_id = None
        self._last_cost = None

    @property
    def info(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'num_stations': len(self._stations),
            'cost': self._last_cost,
            'next_node': self._next_node_id,
        }

    def root_station(self) -> Optional[Station]:
        if self._root_key is None:
            return None
        return self._stations.get(self._root_key)

    def waypoint_lattice(self) -> Optional[WaypointLattice]:
        return self._lattice

    def router(self) -> Router:
        return self._router

    def stations(self) -> List[Station]:
        return list(self._stations.values())

    def nodes(self) -> List[WaypointNode]:
        """Lattice nodes that carry at least one station."""
        node_ids = []
        for station in self._stations.values():
            if station.node_id not in node_ids:
                node_ids.append(station.node_id)
        return [self._lattice.node(node_id) for node_id in node_ids]

    def edges(self) -> List[ContinuousPath]:
        return [child.path for station in self._stations.values()
                for _, child in station.children_in_order()]

    # ------------------------------------------------------------------
    # planning cycle
    # ------------------------------------------------------------------
    def _plan(self, ego_id: int, snapshot: Snapshot) -> List[Child]:
        if ego_id != snapshot.ego.id:
            raise ValueError(
                f"The lattice planner only plans for the ego. "
                f"Target vehicle ID:{ego_id} Ego vehicle ID:{snapshot.ego.id}")

        with time_block(f"{type(self).__name__}.plan_path"):
            reached = self._update_waypoint_lattice(snapshot)
            queue = self._prune_station_graph(snapshot, reached)
            if not queue:
                raise PlanningFailure(
                    "The ego cannot reach any immediate next nodes.",
                    snapshot, self._lattice.string("waypoint lattice: "))

            self._construct_station_graph(queue)
            self.state = PlannerState.EXPANDED

            stations, children = self._select_optimal_path()
            self._next_node_id = stations[1].node_id

        logger.info(f"Planned {len(children)} edges over {len(self._stations)} stations, "
                    f"cost {self._last_cost:.3f}")
        return children

    def _ego_node(self, snapshot: Snapshot) -> Optional[WaypointNode]:
        waypoint = self._road_map.waypoint(snapshot.ego.transform.location)
        if waypoint is None:
            return None
        return self._lattice.closest_node(waypoint, self._lattice.longitudinal_resolution)

    def _next_station_reached(self, snapshot: Snapshot) -> bool:
        if self._next_node_id is None or not self._lattice.has_node(self._next_node_id):
            return True
        ego_node = self._ego_node(snapshot)
        target = self._lattice.node(self._next_node_id)
        return target.distance - ego_node.distance < self.config.planner.station_reached_tolerance

    def _update_waypoint_lattice(self, snapshot: Snapshot) -> bool:
        """Create or shift the lattice.

        Returns:
            True if the graph has to be rebuilt from scratch.
        """
        if self._lattice is not None and self._ego_node(snapshot) is None:
            logger.info("The ego left the waypoint lattice, rebuilding it")
            self._lattice = None

        if self._lattice is None:
            waypoint = self._road_map.waypoint(snapshot.ego.transform.location)
            if waypoint is None:
                raise PlanningFailure("The ego is not on the road map.", snapshot)
            self._lattice = WaypointLattice(
                waypoint, self.config.lattice_range,
                self.config.lattice.longitudinal_resolution,
                self._router, self._road_map)
            self._root_key = None
            self._next_node_id = None
            return True

        if self._root_key is None:
            return True

        if not self._next_station_reached(snapshot):
            return False

        shift = self._ego_node(snapshot).distance - self.config.lattice.shift_margin
        logger.debug(f"Next station reached, shifting the lattice by {shift:.2f}m")
        self._lattice.shift(shift)
        return True

    def _root(self, snapshot: Snapshot) -> Station:
        node = self._ego_node(snapshot)
        if node is None:
            raise PlanningFailure("The ego is not on the waypoint lattice.", snapshot)
        key = self._station_key(node.id, snapshot)
        if key is None:
            raise PlanningFailure("The ego state cannot be mapped to a station.", snapshot)
        return Station(key, node.id, snapshot)

    def _prune_station_graph(self, snapshot: Snapshot, fresh: bool) -> Deque[Station]:
        queue: Deque[Station] = deque()
        root = self._root(snapshot)

        if fresh:
            self._stations = {root.key: root}
            self._root_key = root.key
            self.state = PlannerState.ROOTED
            queue.append(root)
            return queue

        # Keep heading for the next station of the previous plan.
        root_node = self._lattice.node(root.node_id)
        next_node = self._lattice.node(self._next_node_id)
        distance = next_node.distance - root_node.distance

        self._stations = {}
        targets = [(maneuver, getattr(self._lattice, maneuver.target)(root_node, distance))
                   for maneuver in MANEUVERS]

        connected = []
        for maneuver, target in targets:
            connected.extend((station, target) for station in self._connect(root, maneuver, target))

        self._stations[root.key] = root
        self._root_key = root.key
        self.state = PlannerState.ROOTED

        for station, target in connected:
            if station.node_id == target.id and station not in queue:
                queue.append(station)
        return queue

    def _construct_station_graph(self, queue: Deque[Station]) -> None:
        lookahead = self.config.planner.lookahead
        while queue:
            station = queue.popleft()
            node = self._lattice.node(station.node_id)
            for maneuver in MANEUVERS:
                target = getattr(self._lattice, maneuver.target)(node, lookahead)
                known = set(self._stations)
                for child in self._connect(station, maneuver, target):
                    if child.key not in known and child.node_id == target.id:
                        queue.append(child)

    # ------------------------------------------------------------------
    # edges
    # ------------------------------------------------------------------
    def _lane_change_allowed(self, station: Station, maneuver: Maneuver, target: WaypointNode) -> bool:
        cfg = self.config.planner
        node = self._lattice.node(station.node_id)
        ego = station.snapshot.ego

        if target.distance - node.distance < cfg.min_lane_change_distance:
            logger.debug(f"{maneuver.lane_change_type.value} from station {station.key} rejected: "
                         f"target only {target.distance - node.distance:.2f}m ahead")
            return False

        # positive offsets are to the right of the lane center
        offset = self._road_map.distance_to_lane_center(ego.transform.location, node.waypoint)
        if maneuver.child_side == Side.LEFT and offset > cfg.lane_center_tolerance:
            logger.debug(f"Left lane change from station {station.key} rejected: "
                         f"ego {offset:.2f}m right of the lane center")
            return False
        if maneuver.child_side == Side.RIGHT and offset < -cfg.lane_center_tolerance:
            logger.debug(f"Right lane change from station {station.key} rejected: "
                         f"ego {-offset:.2f}m left of the lane center")
            return False

        traffic = station.snapshot.traffic_lattice
        for query in (maneuver.lateral_front, maneuver.lateral_back):
            neighbor = getattr(traffic, query)(ego.id)
            if neighbor is not None and neighbor[1] <= 0.0:
                logger.debug(f"{maneuver.lane_change_type.value} from station {station.key} rejected: "
                             f"vehicle {neighbor[0]} alongside ({query} gap {neighbor[1]:.2f}m)")
                return False
        return True

    def _connect(self, station: Station, maneuver: Maneuver,
                 target: Optional[WaypointNode]) -> List[Station]:
        """Try to connect ``station`` to ``target`` with the given maneuver.

        Returns:
            The child stations linked to ``station``; new ones are added to
            the station table.
        """
        if target is None:
            return []
        if maneuver.is_lane_change and not self._lane_change_allowed(station, maneuver, target):
            return []

        ego = station.snapshot.ego
        try:
            path = self.path_generator.make_path(
                (ego.transform, ego.curvature),
                (target.waypoint.transform, target.curvature(self._road_map)),
                maneuver.lane_change_type)
        except PathGenerationError as e:
            logger.debug(f"No {maneuver.lane_change_type.value} path from station {station.key}: {e}")
            return []

        parent_node = self._lattice.node(station.node_id)
        connected: List[Station] = []
        for option in self._edge_options():
            try:
                outcome = self._simulate_edge(station.snapshot, path, option)
            except LatticeError as e:
                logger.warning(f"Simulation of a {maneuver.lane_change_type.value} edge "
                               f"from station {station.key} failed: {e}")
                continue
            if outcome is None:
                logger.debug(f"{maneuver.lane_change_type.value} edge from station {station.key} "
                             f"(option {option}) collides")
                continue

            arrival, stage_cost = outcome
            child_node = self._ego_node(arrival)
            if child_node is None or child_node.distance <= parent_node.distance:
                continue
            key = self._station_key(child_node.id, arrival)
            if key is None:
                logger.debug(f"Arrival speed {arrival.ego.speed:.2f} at node {child_node.id} "
                             f"is outside every speed interval")
                continue

            if maneuver.is_lane_change:
                stage_cost += self.config.cost.lane_change_cost
            cost_to_come = stage_cost
            if station.has_parent():
                cost_to_come += station.cost_to_come()

            # one child per slot, the cheaper edge keeps it
            slot_bin = self._key_bin(key)
            existing = station.child(maneuver.child_side, slot_bin)
            if existing is not None:
                if existing.stage_cost <= stage_cost:
                    continue
                displaced = self._unlink(station, maneuver, existing.child_key)
                if displaced is not None and displaced in connected:
                    connected.remove(displaced)

            child = self._stations.get(key)
            if child is None:
                child = Station(key, child_node.id, arrival)
                self._stations[key] = child

            station.update_child(maneuver.child_side, slot_bin,
                                 Child(path, option, stage_cost, key))
            child.update_parent(maneuver.parent_side, self._key_bin(station.key),
                                Parent(arrival, cost_to_come, station.key))
            if child not in connected:
                connected.append(child)
        return connected

    def _unlink(self, station: Station, maneuver: Maneuver, child_key: StationKey) -> Optional[Station]:
        """Drop the parent link of a child displaced from one of ``station``'s slots.

        Returns:
            The child, if it was left without parents and removed from the table.
        """
        child = self._stations.get(child_key)
        if child is None:
            return None
        bin = self._key_bin(station.key)
        parent = child.parent(maneuver.parent_side, bin)
        if parent is not None and parent.parent_key == station.key:
            child.remove_parent(maneuver.parent_side, bin)
        if child.has_parent() or child.has_child() or child.key == self._root_key:
            return None
        del self._stations[child_key]
        return child

    # ------------------------------------------------------------------
    # selection
    # ------------------------------------------------------------------
    def _terminal_speed_cost(self, station: Station) -> float:
        ego = station.snapshot.ego
        if ego.speed < 0.0 or ego.policy_speed <= 0.0:
            raise LatticeError(
                f"Invalid ego speed:{ego.speed} or policy speed:{ego.policy_speed} "
                f"at station {station.key}")
        ratio = ego.speed / ego.policy_speed
        if ratio >= 1.0:
            return 0.0
        return self.config.cost.terminal_speed_costs[int(ratio * 10.0)]

    def _spatial_horizon(self) -> float:
        """Planning horizon adapted to the distance of the next station."""
        root = self.root_station()
        root_child = None
        for side in (Side.FRONT, Side.LEFT, Side.RIGHT):
            slots = [child for (child_side, _), child in root.children_in_order() if child_side == side]
            if slots:
                root_child = self._stations[slots[0].child_key]
                break
        if root_child is None:
            raise PlanningFailure("The root station has no children.", root.snapshot)

        root_distance = self._lattice.node(root.node_id).distance
        child_distance = self._lattice.node(root_child.node_id).distance
        cfg = self.config.planner
        return cfg.spatial_horizon - cfg.lookahead + child_distance - root_distance

    def _terminal_distance_cost(self, station: Station, horizon: float) -> float:
        root = self.root_station()
        distance = (self._lattice.node(station.node_id).distance -
                    self._lattice.node(root.node_id).distance)
        ratio = distance / horizon
        if ratio >= 1.0:
            return 0.0
        return self.config.cost.terminal_distance_costs[max(int(ratio * 10.0), 0)]

    def terminal_cost(self, station: Station) -> float:
        """Cost to come plus the terminal speed and distance costs.

        Raises:
            LatticeError: If the station is not a terminal.
        """
        if station.has_child():
            raise LatticeError(f"Station {station.key} is not a terminal.\n" + station.string())
        return (station.cost_to_come() +
                self._terminal_speed_cost(station) +
                self._terminal_distance_cost(station, self._spatial_horizon()))

    def _select_optimal_path(self) -> Tuple[List[Station], List[Child]]:
        root = self.root_station()
        if not root.has_child():
            raise PlanningFailure("The root station has no children.", root.snapshot)

        optimal, optimal_cost = None, 1.0e10
        for station in self._stations.values():
            if station.has_child() or not station.has_parent():
                continue
            cost = self.terminal_cost(station)
            if cost < optimal_cost:
                optimal, optimal_cost = station, cost

        if optimal is None:
            raise PlanningFailure("No terminal station in the graph.", root.snapshot)
        self._last_cost = optimal_cost

        stations = [optimal]
        children: List[Child] = []
        station = optimal
        while station.has_parent():
            parent = self._stations.get(station.optimal_parent.parent_key)
            if parent is None:
                raise LatticeError("Cannot find the parent when tracing back the optimal path.\n"
                                   + station.string())
            child = next((child for _, child in parent.children_in_order()
                          if child.child_key == station.key), None)
            if child is None:
                raise LatticeError(f"Station {station.key} is not a child of its parent.\n"
                                   + parent.string())
            stations.insert(0, parent)
            children.insert(0, child)
            station = parent

        return stations, children
