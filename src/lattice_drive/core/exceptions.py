"""Exceptions raised by the lattice planning stack.

Three groups:
- ``LatticeError`` and subclasses: contract violations or a corrupted graph.
  These propagate to the caller.
- ``PathGenerationError``: a candidate maneuver has no feasible path. The
  planner discards the candidate edge.
- ``PlanningFailure``: nothing can be planned in the current cycle. The
  caller keeps the previous trajectory or stops.
"""

from __future__ import annotations
from typing import Any, Optional


class LatticeError(RuntimeError):
    """Inconsistent lattice, traffic or station graph state."""


class VehicleNotOnLatticeError(LatticeError, KeyError):
    """A vehicle was queried that is not tracked on the lattice."""

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return RuntimeError.__str__(self)


class TrafficMismatchError(LatticeError):
    """The vehicles given to a traffic update differ from the tracked ones."""


class CollisionError(LatticeError):
    """Vehicles overlap where a collision free configuration is required."""


class OffRouteError(LatticeError):
    """A road was queried that is not part of the configured route."""


class PathGenerationError(ValueError):
    """No feasible path exists between two poses."""


class PlanningFailure(RuntimeError):
    """The planner cannot produce a trajectory in this cycle.

    Attributes:
        snapshot: Snapshot the cycle was planned from, if any.
        context: Free form dump of the planner state at failure time.
    """

    def __init__(self, message: str, snapshot: Optional[Any] = None, context: str = ""):
        details = message
        if snapshot is not None:
            details += "\n" + snapshot.string()
        if context:
            details += "\n" + context
        super().__init__(details)
        self.snapshot = snapshot
        self.context = context
