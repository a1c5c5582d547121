"""Speed stratified lattice planner.

Each lattice node may carry one station per speed interval. Edges are
simulated once per constant acceleration option, so besides the path the
planner also selects the acceleration to apply along it.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from lattice_drive.algorithms.lattice.lattice_planner import StationGraphPlanner
from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.algorithms.lattice.simulator import ConstAccelTrafficSimulator
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.algorithms.lattice.station import StationKey
from lattice_drive.core.planner import register_planner


class SpatiotemporalLatticePlanner(StationGraphPlanner):
    """Station graph planner keyed by ``(node id, speed interval index)``."""

    def speed_interval_index(self, speed: float) -> Optional[int]:
        """Index of the half open interval containing ``speed``, None if outside all of them."""
        if speed < 0.0:
            return None
        for idx, (low, high) in enumerate(self.config.spatiotemporal.speed_intervals):
            if low <= speed < high:
                return idx
        return None

    def _station_key(self, node_id: int, snapshot: Snapshot) -> Optional[StationKey]:
        idx = self.speed_interval_index(snapshot.ego.speed)
        if idx is None:
            return None
        return (node_id, idx)

    def _key_bin(self, key: StationKey) -> int:
        return key[1]

    def _edge_options(self) -> List[Optional[float]]:
        return list(self.config.spatiotemporal.acceleration_options)

    def _simulate_edge(self, snapshot: Snapshot, path: ContinuousPath,
                       option: Optional[float]) -> Optional[Tuple[Snapshot, float]]:
        simulator = ConstAccelTrafficSimulator(snapshot, self.cost_function)
        simulator.snapshot.ego.acceleration = option
        result = simulator.simulate(path, self.config.time.dt, self.config.time.max_simulation_time)
        if not result.collision_free:
            return None
        return simulator.snapshot, result.stage_cost

    def plan_trajectory(self, ego_id: int, snapshot: Snapshot) -> List[Tuple[ContinuousPath, float]]:
        """Optimal sequence of (path, constant acceleration) pairs from the ego."""
        return [(child.path, child.acceleration) for child in self._plan(ego_id, snapshot)]


register_planner('spatiotemporal_lattice', SpatiotemporalLatticePlanner)
