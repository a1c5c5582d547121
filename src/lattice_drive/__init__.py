"""lattice-drive: lattice based motion planning for autonomous driving.

The package plans collision checked paths for an ego vehicle over a bounded
spatial horizon, re-planned every control cycle, by expanding a station graph
on a waypoint lattice and simulating the surrounding traffic along every edge.
"""

__version__ = "0.1.0"

# Make key components easily accessible
from lattice_drive.core.types import (
    Transform,
    BoundingBox,
    Vehicle,
)

__all__ = [
    "Transform",
    "BoundingBox",
    "Vehicle",
]
