"""Deterministic toy scenarios on a straight multi-lane road."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.config.global_config import GlobalConfig, get_global_config
from lattice_drive.core.types import BoundingBox, Transform, Vehicle
from lattice_drive.environments.road_map import StraightRoadMap
from lattice_drive.environments.router import LoopRouter


EGO_ID = 0
CAR_BOX = BoundingBox(extent_x=2.4, extent_y=1.0)


@dataclass
class Scenario:
    """Road, route and vehicles of one scenario."""
    name: str
    road_map: StraightRoadMap
    router: LoopRouter
    ego: Vehicle
    agents: List[Vehicle] = field(default_factory=list)

    def snapshot(self, longitudinal_resolution: float = 1.0) -> Snapshot:
        return Snapshot.create(self.ego.copy(), [agent.copy() for agent in self.agents],
                               self.road_map, self.router, longitudinal_resolution)


class ScenarioManager:
    """Utility that creates deterministic toy scenarios for simulations.

    Args:
        config: Road layout and random seed, defaults to ``get_global_config()``.
        speed_noise: Standard deviation of the noise added to the agent
            speeds (m/s). Zero keeps the scenarios fully deterministic.
    """

    def __init__(self, config: Optional[GlobalConfig] = None, speed_noise: float = 0.0):
        self.config = config if config is not None else get_global_config()
        self.speed_noise = speed_noise
        self._rng = np.random.default_rng(self.config.random_seed)
        self._builders: Dict[str, Callable[[], List[Vehicle]]] = {
            'free_road': self._free_road,
            'car_following': self._car_following,
            'blocked_lane': self._blocked_lane,
        }

    def list_scenarios(self) -> List[str]:
        return list(self._builders)

    def create_road_map(self) -> StraightRoadMap:
        road = self.config.road
        return StraightRoadMap(road.road_lengths, num_lanes=road.num_lanes, lane_width=road.lane_width)

    def create_router(self, road_map: StraightRoadMap) -> LoopRouter:
        return LoopRouter(road_map, road_map.road_ids, loop=self.config.road.loop)

    def create_scenario(self, name: str) -> Scenario:
        """Create a named scenario.

        Raises:
            ValueError: If the scenario name is unknown.
        """
        if name not in self._builders:
            raise ValueError(f"Unknown scenario: {name}. Available: {self.list_scenarios()}")
        road_map = self.create_road_map()
        router = self.create_router(road_map)

        vehicles = self._builders[name]()
        ego, agents = vehicles[0], vehicles[1:]
        if self.speed_noise > 0.0:
            for agent in agents:
                agent.speed = max(0.0, agent.speed + float(self._rng.normal(0.0, self.speed_noise)))
        return Scenario(name, road_map, router, ego, agents)

    def _vehicle(self, vehicle_id: int, x: float, lane: int,
                 speed: float, policy_speed: float) -> Vehicle:
        y = lane * self.config.road.lane_width
        return Vehicle(vehicle_id, CAR_BOX, Transform(x, y, 0.0),
                       speed=speed, policy_speed=policy_speed)

    def _middle_lane(self) -> int:
        return self.config.road.num_lanes // 2

    def _free_road(self) -> List[Vehicle]:
        return [self._vehicle(EGO_ID, 20.0, self._middle_lane(), 20.0, 25.0)]

    def _car_following(self) -> List[Vehicle]:
        lane = self._middle_lane()
        return [
            self._vehicle(EGO_ID, 20.0, lane, 20.0, 25.0),
            self._vehicle(1, 50.0, lane, 10.0, 10.0),
        ]

    def _blocked_lane(self) -> List[Vehicle]:
        lane = self._middle_lane()
        return [
            self._vehicle(EGO_ID, 20.0, lane, 15.0, 20.0),
            # practically stationary, the IDM requires a positive policy speed
            self._vehicle(1, 90.0, lane, 0.0, 0.1),
        ]
