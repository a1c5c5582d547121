"""Core types and interfaces for lattice-drive.

This module defines the fundamental data structures, the planner interface
and the exception hierarchy used throughout the package.
"""

from lattice_drive.core.types import (
    Vector2,
    Transform,
    BoundingBox,
    Vehicle,
)
from lattice_drive.core.exceptions import (
    LatticeError,
    VehicleNotOnLatticeError,
    TrafficMismatchError,
    CollisionError,
    OffRouteError,
    PathGenerationError,
    PlanningFailure,
)
from lattice_drive.core.planner import (
    VehiclePathPlanner,
    PlannerFactory,
    register_planner,
    create_planner,
    list_planners,
)

__all__ = [
    "Vector2",
    "Transform",
    "BoundingBox",
    "Vehicle",
    "LatticeError",
    "VehicleNotOnLatticeError",
    "TrafficMismatchError",
    "CollisionError",
    "OffRouteError",
    "PathGenerationError",
    "PlanningFailure",
    "VehiclePathPlanner",
    "PlannerFactory",
    "register_planner",
    "create_planner",
    "list_planners",
]
