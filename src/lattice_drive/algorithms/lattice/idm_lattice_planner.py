"""Lattice planner with one station per lattice node.

Along every edge the ego and the agents follow the IDM, so the planner only
decides where to go and leaves the speed profile to the car-following model.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from lattice_drive.algorithms.lattice.lattice_planner import StationGraphPlanner
from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.algorithms.lattice.simulator import IDMTrafficSimulator
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.algorithms.lattice.station import StationKey
from lattice_drive.core.planner import register_planner


class IDMLatticePlanner(StationGraphPlanner):
    """Station graph planner keyed by lattice node id."""

    def _station_key(self, node_id: int, snapshot: Snapshot) -> Optional[StationKey]:
        return node_id

    def _key_bin(self, key: StationKey) -> int:
        return 0

    def _edge_options(self) -> List[Optional[float]]:
        return [None]

    def _simulate_edge(self, snapshot: Snapshot, path: ContinuousPath,
                       option: Optional[float]) -> Optional[Tuple[Snapshot, float]]:
        simulator = IDMTrafficSimulator(snapshot, self.idm, self.cost_function)
        result = simulator.simulate(path, self.config.time.dt, self.config.time.max_simulation_time)
        if not result.collision_free:
            return None
        return simulator.snapshot, result.stage_cost


register_planner('idm_lattice', IDMLatticePlanner)
