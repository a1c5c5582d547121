from lattice_drive.utils.geometry import normalize_angle, distance, to_local_frame
from lattice_drive.utils.timing import time_block

__all__ = ["normalize_angle", "distance", "to_local_frame", "time_block"]
