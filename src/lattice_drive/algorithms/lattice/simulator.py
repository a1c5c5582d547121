"""Forward traffic simulation along a candidate ego path.

The simulator owns a private copy of the snapshot it is given. Every step
computes the accelerations of all vehicles on the current snapshot, integrates
speeds and poses, then rebuilds the traffic lattice. A collision found while
rebuilding ends the simulation.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, NamedTuple, Optional, Set, Tuple
import math

from loguru import logger

from lattice_drive.algorithms.lattice.idm import IntelligentDriverModel
from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.config.global_config import CostConfig
from lattice_drive.core.types import Vehicle


_EPS = 1e-6

# (ego, acceleration, dt) -> cost of the step
StageCostFunction = Callable[[Vehicle, float, float], float]


class SimulationResult(NamedTuple):
    collision_free: bool
    elapsed_time: float
    stage_cost: float


class SimulationStep(NamedTuple):
    time: float
    ego_speed: float
    ego_acceleration: float
    lead_gap: Optional[float]


class AccelerationCost:
    """Default stage cost: penalizes acceleration, hard braking and driving below policy speed."""

    def __init__(self, config: Optional[CostConfig] = None):
        self.config = config if config is not None else CostConfig()

    def __call__(self, ego: Vehicle, acceleration: float, dt: float) -> float:
        cfg = self.config
        cost = cfg.acceleration_weight * acceleration ** 2
        cost += cfg.deceleration_weight * min(acceleration, 0.0) ** 2
        if ego.policy_speed > 0.0:
            cost += cfg.speed_deficit_weight * max(0.0, 1.0 - ego.speed / ego.policy_speed)
        return cost * dt


def _integrate(speed: float, acceleration: float, dt: float) -> Tuple[float, float]:
    """Distance travelled and final speed over ``dt``, never reversing."""
    final = speed + acceleration * dt
    if final >= 0.0:
        return 0.5 * (speed + final) * dt, final
    # stops within the step
    return speed * speed / (2.0 * -acceleration), 0.0


def _time_to_cover(distance: float, speed: float, acceleration: float, dt: float) -> float:
    """Time within ``dt`` to travel ``distance`` from ``speed`` with constant acceleration."""
    if abs(acceleration) < _EPS:
        return min(dt, distance / speed) if speed > _EPS else dt
    disc = speed * speed + 2.0 * acceleration * distance
    if disc < 0.0:
        return dt
    t = (-speed + math.sqrt(disc)) / acceleration
    return min(max(t, 0.0), dt)


class TrafficSimulator(ABC):
    """Base forward simulator.

    Args:
        snapshot: Starting snapshot, copied.
        cost_function: Stage cost per step, defaults to ``AccelerationCost``.
    """

    def __init__(self, snapshot: Snapshot, cost_function: Optional[StageCostFunction] = None):
        self.snapshot = snapshot.copy()
        self.cost_function = cost_function if cost_function is not None else AccelerationCost()
        self.history: List[SimulationStep] = []

    @abstractmethod
    def ego_acceleration(self) -> float:
        pass

    @abstractmethod
    def agent_acceleration(self, agent: int) -> float:
        pass

    def simulate(self, path: ContinuousPath, dt: float, max_duration: float) -> SimulationResult:
        """Simulate the traffic while the ego follows ``path``.

        Stops once the ego reaches the end of the path or ``max_duration``
        has elapsed.

        Returns:
            SimulationResult(collision_free, elapsed_time, stage_cost)
        """
        if dt <= 0.0 or max_duration <= 0.0:
            raise ValueError(f"dt and max_duration must be positive, got {dt} and {max_duration}")

        self.history = []
        elapsed = 0.0
        cost = 0.0
        progress = 0.0

        while elapsed < max_duration - _EPS and progress < path.range - _EPS:
            step = min(dt, max_duration - elapsed)
            ego = self.snapshot.ego

            # accelerations from the current snapshot
            ego_accel = self.ego_acceleration()
            agent_accels: Dict[int, float] = {
                agent: self.agent_acceleration(agent) for agent in sorted(self.snapshot.agents)}

            # the ego may finish the path within this step
            distance, speed = _integrate(ego.speed, ego_accel, step)
            remaining = path.range - progress
            if distance >= remaining:
                step = _time_to_cover(remaining, ego.speed, ego_accel, step)
                distance = remaining
                speed = max(0.0, ego.speed + ego_accel * step)
            progress += distance

            ego.transform = path.transform_at(progress)
            ego.curvature = path.curvature_at(progress)
            ego.speed = speed
            ego.acceleration = ego_accel

            for agent_id in self._advance_agents(agent_accels, step):
                self.snapshot.remove_agent(agent_id)

            elapsed += step

            if not self.snapshot.move_forward():
                logger.debug(f"Collision after {elapsed:.2f}s of simulation")
                return SimulationResult(False, elapsed, cost)
            cost += self.cost_function(ego, ego_accel, step)

            lead = self.snapshot.traffic_lattice.front(ego.id)
            self.history.append(SimulationStep(
                elapsed, ego.speed, ego_accel, lead[1] if lead is not None else None))

        return SimulationResult(True, elapsed, cost)

    def _advance_agents(self, accelerations: Dict[int, float], dt: float) -> Set[int]:
        """Move every agent along its lane. Returns the agents that left the map."""
        road_map = self.snapshot.road_map
        router = self.snapshot.router
        gone: Set[int] = set()
        for agent_id, accel in accelerations.items():
            agent = self.snapshot.agents[agent_id]
            distance, speed = _integrate(agent.speed, accel, dt)
            agent.speed = speed
            agent.acceleration = accel
            if distance <= _EPS:
                continue
            waypoint = road_map.waypoint(agent.transform.location)
            target = router.front_waypoint(waypoint, distance) if waypoint is not None else None
            if target is None:
                gone.add(agent_id)
                continue
            agent.transform = target.transform
            agent.curvature = road_map.curvature(target)
        return gone


class IDMTrafficSimulator(TrafficSimulator):
    """Every vehicle follows the vehicle in front of its head with the IDM."""

    def __init__(self,
                 snapshot: Snapshot,
                 idm: Optional[IntelligentDriverModel] = None,
                 cost_function: Optional[StageCostFunction] = None):
        super().__init__(snapshot, cost_function)
        self.idm = idm if idm is not None else IntelligentDriverModel()

    def _idm_acceleration(self, vehicle: Vehicle) -> float:
        lead = self.snapshot.traffic_lattice.front(vehicle.id)
        if lead is None:
            return self.idm.acceleration(vehicle.speed, vehicle.policy_speed)
        lead_id, gap = lead
        return self.idm.acceleration(vehicle.speed, vehicle.policy_speed,
                                     self.snapshot.vehicle(lead_id).speed, gap)

    def ego_acceleration(self) -> float:
        # only the lead on the lane of the ego's head is considered,
        # also while changing lanes
        return self._idm_acceleration(self.snapshot.ego)

    def agent_acceleration(self, agent: int) -> float:
        return self._idm_acceleration(self.snapshot.agent(agent))


class ConstAccelTrafficSimulator(TrafficSimulator):
    """Every vehicle keeps the acceleration stored in its snapshot state."""

    def ego_acceleration(self) -> float:
        return self.snapshot.ego.acceleration

    def agent_acceleration(self, agent: int) -> float:
        return self.snapshot.agent(agent).acceleration
