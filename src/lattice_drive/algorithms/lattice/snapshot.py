"""World snapshot: ego, agents and the traffic lattice reflecting them."""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from lattice_drive.algorithms.lattice.traffic_lattice import TrafficLattice
from lattice_drive.core.exceptions import VehicleNotOnLatticeError
from lattice_drive.core.types import Vehicle
from lattice_drive.environments.road_map import RoadMap
from lattice_drive.environments.router import Router


class Snapshot:
    """Ego vehicle, agent vehicles and their traffic lattice at one instant.

    Copies never share vehicles or lattice nodes; only the road map and the
    router are shared.
    """

    def __init__(self,
                 ego: Vehicle,
                 agents: Dict[int, Vehicle],
                 traffic_lattice: TrafficLattice,
                 road_map: RoadMap,
                 router: Router):
        self.ego = ego
        self.agents = agents
        self.traffic_lattice = traffic_lattice
        self.road_map = road_map
        self.router = router

    @classmethod
    def create(cls,
               ego: Vehicle,
               agents: Iterable[Vehicle],
               road_map: RoadMap,
               router: Router,
               longitudinal_resolution: float = 1.0) -> 'Snapshot':
        """Build a snapshot, dropping agents that cannot be placed on the lattice.

        Raises:
            CollisionError: If the given vehicles overlap.
            VehicleNotOnLatticeError: If the ego cannot be placed on the lattice.
        """
        agents = {agent.id: agent for agent in agents}
        if ego.id in agents:
            raise ValueError(f"Ego id {ego.id} is also used by an agent")

        vehicles = [ego] + [agents[agent_id] for agent_id in sorted(agents)]
        lattice = TrafficLattice(vehicles, road_map, router, longitudinal_resolution)
        if not lattice.has_vehicle(ego.id):
            raise VehicleNotOnLatticeError(
                f"Ego cannot be placed on the traffic lattice: {ego.string()}")

        tracked = lattice.vehicles()
        agents = {agent_id: agent for agent_id, agent in agents.items() if agent_id in tracked}
        return cls(ego, agents, lattice, road_map, router)

    def copy(self) -> 'Snapshot':
        return Snapshot(self.ego.copy(),
                        {agent_id: agent.copy() for agent_id, agent in self.agents.items()},
                        self.traffic_lattice.copy(),
                        self.road_map,
                        self.router)

    def vehicle(self, vehicle_id: int) -> Vehicle:
        if vehicle_id == self.ego.id:
            return self.ego
        return self.agent(vehicle_id)

    def agent(self, agent_id: int) -> Vehicle:
        agent = self.agents.get(agent_id)
        if agent is None:
            raise VehicleNotOnLatticeError(f"Agent [{agent_id}] is not in the snapshot")
        return agent

    def vehicles(self) -> List[Vehicle]:
        """Ego first, then agents ordered by id."""
        return [self.ego] + [self.agents[agent_id] for agent_id in sorted(self.agents)]

    def remove_agent(self, agent_id: int) -> Optional[Vehicle]:
        self.traffic_lattice.delete_vehicle(agent_id)
        return self.agents.pop(agent_id, None)

    def move_forward(self) -> bool:
        """Re-register every vehicle at its current pose.

        Agents that left the lattice are dropped.

        Returns:
            False if the vehicles are in collision.

        Raises:
            VehicleNotOnLatticeError: If the ego left the lattice.
        """
        valid, disappeared = self.traffic_lattice.move_traffic_forward(self.vehicles())
        if self.ego.id in disappeared:
            raise VehicleNotOnLatticeError(
                f"Ego left the traffic lattice: {self.ego.string()}")
        for agent_id in disappeared:
            self.agents.pop(agent_id, None)
        return valid

    def string(self, prefix: str = "") -> str:
        lines = [self.ego.string(prefix + "ego: ")]
        for agent in self.vehicles()[1:]:
            lines.append(agent.string(prefix + "agent: "))
        return "\n".join(lines)
