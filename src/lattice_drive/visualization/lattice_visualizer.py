from __future__ import annotations
from typing import Optional, Sequence
import os

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon

from lattice_drive.algorithms.lattice.lattice_planner import StationGraphPlanner
from lattice_drive.algorithms.lattice.path import DiscretePath
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.core.types import Vehicle


class LatticeVisualizer:
    """Plots a planning cycle: lattice nodes, station graph, selected path and vehicles.

    Args:
        output_dir: Directory the figures are written to.
        edge_resolution: Sample spacing used to draw the edge paths (m).
    """

    def __init__(self, output_dir: str, edge_resolution: float = 1.0):
        self.output_dir = output_dir
        self.edge_resolution = edge_resolution
        os.makedirs(self.output_dir, exist_ok=True)

    def plot_cycle(self,
                   planner: StationGraphPlanner,
                   snapshot: Snapshot,
                   path: Optional[DiscretePath],
                   cycle: int) -> str:
        """Save a figure of one planning cycle and return its file name."""
        fig, ax = plt.subplots(1, 1, figsize=(14, 4))

        lattice = planner.waypoint_lattice()
        if lattice is not None:
            xy = np.array([node.waypoint.location for node in lattice.nodes()])
            if len(xy):
                ax.scatter(xy[:, 0], xy[:, 1], s=1, c='lightgray', label='Lattice nodes', zorder=1)

        # station graph
        for i, edge in enumerate(planner.edges()):
            samples = np.array([t.location for _, t, _ in edge.samples(self.edge_resolution)])
            ax.plot(samples[:, 0], samples[:, 1], color='tab:blue', linewidth=0.8, alpha=0.6,
                    label='Edges' if i == 0 else None, zorder=2)
        stations = np.array([node.waypoint.location for node in planner.nodes()]) if lattice is not None else []
        if len(stations):
            ax.scatter(stations[:, 0], stations[:, 1], s=18, c='tab:blue', marker='s',
                       label='Stations', zorder=3)

        if path is not None:
            selected = np.array([t.location for t in path.transforms()])
            ax.plot(selected[:, 0], selected[:, 1], color='tab:green', linewidth=2.5,
                    label='Selected path', zorder=4)

        self._draw_vehicles(ax, snapshot.vehicles(), snapshot.ego.id)

        ax.set_title(f"Cycle {cycle} - {planner.info.get('num_stations', 0)} stations")
        ax.set_xlabel("x (m)")
        ax.set_ylabel("y (m)")
        ax.set_aspect('equal', adjustable='datalim')
        ax.legend(loc='upper right', fontsize=8)
        ax.grid(True, alpha=0.3)

        file_name = os.path.join(self.output_dir, f"cycle_{cycle:03d}.png")
        fig.tight_layout()
        fig.savefig(file_name, dpi=120)
        plt.close(fig)
        return file_name

    def plot_speed_profile(self, times: Sequence[float], speeds: Sequence[float],
                           policy_speed: float, name: str = "speed_profile.png") -> str:
        """Ego speed over a closed loop run."""
        fig, ax = plt.subplots(1, 1, figsize=(8, 4))
        ax.plot(times, speeds, color='tab:green', linewidth=2, label='Ego speed')
        ax.axhline(policy_speed, color='tab:red', linestyle='--', label='Policy speed')
        ax.set_xlabel("time (s)")
        ax.set_ylabel("speed (m/s)")
        ax.legend()
        ax.grid(True, alpha=0.3)

        file_name = os.path.join(self.output_dir, name)
        fig.tight_layout()
        fig.savefig(file_name, dpi=120)
        plt.close(fig)
        return file_name

    @staticmethod
    def _draw_vehicles(ax, vehicles: Sequence[Vehicle], ego_id: int) -> None:
        for vehicle in vehicles:
            is_ego = vehicle.id == ego_id
            box = Polygon(vehicle.corners(), closed=True,
                          facecolor='tab:green' if is_ego else 'tab:red',
                          edgecolor='black', alpha=0.8, zorder=5)
            ax.add_patch(box)
            ax.annotate('ego' if is_ego else str(vehicle.id), vehicle.transform.location,
                        ha='center', va='center', fontsize=7, color='white', zorder=6)
