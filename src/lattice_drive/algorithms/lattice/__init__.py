"""Lattice based motion planning.

This module implements the waypoint lattice, the traffic lattice, forward
traffic simulation with the Intelligent Driver Model, and the station graph
planners built on top of them.
"""

from lattice_drive.algorithms.lattice.waypoint_lattice import WaypointLattice, WaypointNode
from lattice_drive.algorithms.lattice.traffic_lattice import TrafficLattice, TrafficNode, Registration
from lattice_drive.algorithms.lattice.idm import IntelligentDriverModel
from lattice_drive.algorithms.lattice.path import (
    ContinuousPath,
    DiscretePath,
    LaneChangeType,
    QuinticPathGenerator,
)
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.algorithms.lattice.simulator import (
    AccelerationCost,
    ConstAccelTrafficSimulator,
    IDMTrafficSimulator,
    SimulationResult,
    SimulationStep,
    TrafficSimulator,
)
from lattice_drive.algorithms.lattice.station import Child, Parent, Side, Station
from lattice_drive.algorithms.lattice.lattice_planner import PlannerState, StationGraphPlanner
from lattice_drive.algorithms.lattice.idm_lattice_planner import IDMLatticePlanner
from lattice_drive.algorithms.lattice.spatiotemporal_lattice_planner import SpatiotemporalLatticePlanner

__all__ = [
    # Lattices
    "WaypointLattice",
    "WaypointNode",
    "TrafficLattice",
    "TrafficNode",
    "Registration",
    # Traffic simulation
    "IntelligentDriverModel",
    "Snapshot",
    "TrafficSimulator",
    "IDMTrafficSimulator",
    "ConstAccelTrafficSimulator",
    "SimulationResult",
    "SimulationStep",
    "AccelerationCost",
    # Paths
    "ContinuousPath",
    "DiscretePath",
    "LaneChangeType",
    "QuinticPathGenerator",
    # Planners
    "Station",
    "Side",
    "Parent",
    "Child",
    "PlannerState",
    "StationGraphPlanner",
    "IDMLatticePlanner",
    "SpatiotemporalLatticePlanner",
]
