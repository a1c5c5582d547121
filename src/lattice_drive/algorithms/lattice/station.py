"""Stations: vertices of the planner's station graph.

A station sits on a lattice node and carries the snapshot the ego arrives
with. Parents and children are referenced by station key, the station table
itself is owned by the planner.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, Hashable, List, NamedTuple, Optional, Tuple

from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.core.exceptions import LatticeError


class Side(Enum):
    LEFT = "left"
    BACK = "back"
    FRONT = "front"
    RIGHT = "right"


# (side, speed bin); the bin is always 0 for single state stations
Slot = Tuple[Side, int]
StationKey = Hashable


class Parent(NamedTuple):
    snapshot: Snapshot
    cost_to_come: float
    parent_key: StationKey


class Child(NamedTuple):
    path: ContinuousPath
    acceleration: Optional[float]
    stage_cost: float
    child_key: StationKey


PARENT_SIDES = (Side.LEFT, Side.BACK, Side.RIGHT)
CHILD_SIDES = (Side.FRONT, Side.LEFT, Side.RIGHT)


class Station:
    """Vertex of the station graph.

    Args:
        key: Key of the station in the planner's table.
        node_id: Lattice node the station sits on.
        snapshot: Snapshot at the station, replaced by the optimal parent's
            arrival snapshot whenever a parent is recorded.
    """

    def __init__(self, key: StationKey, node_id: int, snapshot: Snapshot):
        self.key = key
        self.node_id = node_id
        self.snapshot = snapshot
        self.parents: Dict[Slot, Parent] = {}
        self.children: Dict[Slot, Child] = {}
        self.optimal_parent: Optional[Parent] = None

    def has_parent(self) -> bool:
        return bool(self.parents)

    def has_child(self) -> bool:
        return bool(self.children)

    def parent(self, side: Side, bin: int = 0) -> Optional[Parent]:
        return self.parents.get((side, bin))

    def child(self, side: Side, bin: int = 0) -> Optional[Child]:
        return self.children.get((side, bin))

    def cost_to_come(self) -> float:
        """Cost to come of the optimal parent.

        Raises:
            LatticeError: If the station has no parent.
        """
        if self.optimal_parent is None:
            raise LatticeError(f"Station {self.key} has no parent, cannot compute its cost to come")
        return self.optimal_parent.cost_to_come

    def update_parent(self, side: Side, bin: int, parent: Parent) -> None:
        if side not in PARENT_SIDES:
            raise ValueError(f"{side} is not a parent side")
        self.parents[(side, bin)] = parent
        self._update_optimal_parent()

    def remove_parent(self, side: Side, bin: int = 0) -> Optional[Parent]:
        """Unlink the parent in the slot, re-selecting the optimal parent if needed."""
        parent = self.parents.pop((side, bin), None)
        if parent is not None and parent is self.optimal_parent:
            self.optimal_parent = None
            if self.parents:
                self._update_optimal_parent()
        return parent

    def update_child(self, side: Side, bin: int, child: Child) -> None:
        if side not in CHILD_SIDES:
            raise ValueError(f"{side} is not a child side")
        self.children[(side, bin)] = child

    def children_in_order(self) -> List[Tuple[Slot, Child]]:
        """Children ordered front, left, right and by bin within a side."""
        order = {side: idx for idx, side in enumerate(CHILD_SIDES)}
        return sorted(self.children.items(), key=lambda item: (order[item[0][0]], item[0][1]))

    def _slots(self, side: Side) -> List[Parent]:
        return [self.parents[slot] for slot in sorted(
            (slot for slot in self.parents if slot[0] == side), key=lambda slot: slot[1])]

    def _update_optimal_parent(self) -> None:
        left = self._slots(Side.LEFT)
        back = self._slots(Side.BACK)
        right = self._slots(Side.RIGHT)

        if self.optimal_parent is None:
            self.optimal_parent = (left or back or right)[0]

        # ties go to the parent compared last, i.e. back beats right beats left
        for parent in left + right + back:
            if parent.cost_to_come <= self.optimal_parent.cost_to_come:
                self.optimal_parent = parent

        self.snapshot = self.optimal_parent.snapshot

    def string(self, prefix: str = "") -> str:
        lines = [f"{prefix}station key:{self.key} node:{self.node_id}"]
        lines.append(self.snapshot.string(prefix + "  "))
        for (side, bin), parent in sorted(self.parents.items(), key=lambda item: (item[0][0].value, item[0][1])):
            lines.append(f"{prefix}  {side.value} parent[{bin}]: key:{parent.parent_key} "
                         f"cost to come:{parent.cost_to_come:.3f}")
        if self.optimal_parent is not None:
            lines.append(f"{prefix}  optimal parent: key:{self.optimal_parent.parent_key} "
                         f"cost to come:{self.optimal_parent.cost_to_come:.3f}")
        for (side, bin), child in self.children_in_order():
            lines.append(f"{prefix}  {side.value} child[{bin}]: key:{child.child_key} "
                         f"path length:{child.path.range:.2f} stage cost:{child.stage_cost:.3f}")
        return "\n".join(lines)
