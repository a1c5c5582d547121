"""Road geometry and routing for the planners.

Toy scenarios live in ``lattice_drive.environments.scenario_manager``.
"""

from lattice_drive.environments.road_map import RoadMap, StraightRoadMap, Waypoint, waypoint_id
from lattice_drive.environments.router import Router, LoopRouter

__all__ = [
    "RoadMap",
    "StraightRoadMap",
    "Waypoint",
    "waypoint_id",
    "Router",
    "LoopRouter",
]
