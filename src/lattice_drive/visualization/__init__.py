"""Matplotlib plots of the lattice, the station graph and the traffic."""

from lattice_drive.visualization.lattice_visualizer import LatticeVisualizer

__all__ = ["LatticeVisualizer"]
