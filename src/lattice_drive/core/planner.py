"""Unified planner interface for the vehicle path planners.

Every planner in the package plans a path for the ego vehicle of a world
snapshot, once per control cycle:
- IDM lattice planner (single state station graph)
- Spatiotemporal lattice planner (speed stratified station graph)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class VehiclePathPlanner(ABC):
    """Base interface for all path planners.

    Planners are stateful: the station graph and the lattice of one cycle
    are reused by the next one.
    """

    @abstractmethod
    def plan_path(self, ego_id: int, snapshot: Any) -> Any:
        """Plan a path for the ego vehicle.

        Args:
            ego_id: Id of the vehicle to plan for, must be the snapshot's ego.
            snapshot: Current world snapshot.

        Returns:
            path: Discrete path to hand to the control stack.

        Raises:
            ValueError: If ``ego_id`` is not the ego of the snapshot.
            PlanningFailure: If no path can be planned in this cycle.
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Drop all cross-cycle state, e.g. when the ego is teleported."""
        pass

    @property
    def info(self) -> Dict[str, Any]:
        """Summary of the last cycle, for logging."""
        return {}


class PlannerFactory:
    """Factory for creating planners by name.

    Example:
        factory = PlannerFactory()
        factory.register('idm_lattice', IDMLatticePlanner)
        planner = factory.create('idm_lattice', road_map=road_map, router=router)
    """

    def __init__(self):
        self._registry: Dict[str, type] = {}

    def register(self, name: str, planner_class: type) -> None:
        """Register a planner class.

        Args:
            name: Name to register under (e.g. 'idm_lattice')
            planner_class: The planner class to register
        """
        self._registry[name] = planner_class

    def create(self, name: str, **kwargs) -> VehiclePathPlanner:
        """Create a planner instance by name.

        Raises:
            ValueError: If planner name is not registered
        """
        if name not in self._registry:
            raise ValueError(f"Unknown planner: {name}. "
                             f"Available: {list(self._registry.keys())}")
        return self._registry[name](**kwargs)

    def list_available(self) -> List[str]:
        """List all registered planner names."""
        return list(self._registry.keys())


# Global factory instance
_factory = PlannerFactory()


def register_planner(name: str, planner_class: type) -> None:
    """Register a planner globally."""
    _factory.register(name, planner_class)


def create_planner(name: str, **kwargs) -> VehiclePathPlanner:
    """Create a planner from the global registry."""
    return _factory.create(name, **kwargs)


def list_planners() -> List[str]:
    """List all globally registered planners."""
    return _factory.list_available()
