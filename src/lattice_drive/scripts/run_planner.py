#!/usr/bin/env python3
"""Closed loop demo: plan, follow the plan for one control period, repeat."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger
from tqdm import tqdm

from lattice_drive.algorithms.lattice import (
    AccelerationCost,
    IDMTrafficSimulator,
    IntelligentDriverModel,
    Snapshot,
)
from lattice_drive.config.argument_parser import ConfigArgumentParser
from lattice_drive.config.global_config import GlobalConfig, set_global_config
from lattice_drive.core.exceptions import PlanningFailure
from lattice_drive.core.planner import create_planner
from lattice_drive.environments.scenario_manager import ScenarioManager


def setup_logging(log_dir: Optional[Path], level: str = "INFO") -> None:
    """Send loguru output to stderr and, with an output directory, to a log file."""
    logger.remove()
    logger.add(sys.stderr, level=level,
               format="<green>{time:HH:mm:ss}</green> [<level>{level}</level>] {name}: {message}")
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(log_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log", level="DEBUG")


def step_world(snapshot: Snapshot, path, config: GlobalConfig) -> Snapshot:
    """Advance the world by one control period with the ego following ``path``."""
    simulator = IDMTrafficSimulator(snapshot, IntelligentDriverModel(config.idm), AccelerationCost(config.cost))
    result = simulator.simulate(path, config.time.dt, config.time.control_period)
    if not result.collision_free:
        raise PlanningFailure("The ego collided while following the planned path.", snapshot)
    return simulator.snapshot


def run(planner_name: str, scenario_name: str, cycles: int,
        config: GlobalConfig, output_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Run the closed loop and return a summary of the run."""
    manager = ScenarioManager(config)
    scenario = manager.create_scenario(scenario_name)
    snapshot = scenario.snapshot(config.lattice.longitudinal_resolution)
    planner = create_planner(planner_name, road_map=scenario.road_map,
                             router=scenario.router, config=config)

    visualizer = None
    if output_dir is not None:
        from lattice_drive.visualization.lattice_visualizer import LatticeVisualizer
        visualizer = LatticeVisualizer(str(output_dir / "figures"))

    times: List[float] = [0.0]
    speeds: List[float] = [snapshot.ego.speed]
    lanes: List[int] = []
    failures = 0

    pbar = tqdm(range(cycles), desc=f"{planner_name}/{scenario_name}")
    for cycle in pbar:
        try:
            path = planner.plan_path(snapshot.ego.id, snapshot)
        except PlanningFailure as e:
            logger.error(f"Planning failed at cycle {cycle}: {e}")
            failures += 1
            break

        if visualizer is not None:
            visualizer.plot_cycle(planner, snapshot, path, cycle)

        snapshot = step_world(snapshot, path, config)
        times.append(times[-1] + config.time.control_period)
        speeds.append(snapshot.ego.speed)
        waypoint = scenario.road_map.waypoint(snapshot.ego.transform.location)
        if waypoint is not None:
            lanes.append(waypoint.lane_id)

        pbar.set_postfix(x=f"{snapshot.ego.transform.x:.1f}",
                         speed=f"{snapshot.ego.speed:.2f}",
                         stations=planner.info['num_stations'])

    if visualizer is not None:
        visualizer.plot_speed_profile(times, speeds, snapshot.ego.policy_speed)

    summary = {
        'cycles': len(times) - 1,
        'failures': failures,
        'final_x': snapshot.ego.transform.x,
        'final_speed': snapshot.ego.speed,
        'mean_speed': float(np.mean(speeds)),
        'lane_changes': int(np.count_nonzero(np.diff(lanes))) if len(lanes) > 1 else 0,
    }
    logger.info(f"Run summary: {summary}")
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = ConfigArgumentParser("Run a lattice planner in closed loop on a toy scenario")
    args = parser.parse_args(argv)
    config = parser.create_config_from_args(args)
    set_global_config(config)

    output_dir = None
    if args.output_dir is not None:
        output_dir = Path(args.output_dir) / args.planner / f"{datetime.now():%Y%m%d_%H%M%S}"

    setup_logging(output_dir, config.log_level)
    np.random.seed(config.random_seed)
    if config.debug_mode:
        config.print_summary()

    logger.info(f"Planner: {args.planner}, scenario: {args.scenario}, cycles: {args.cycles}")
    summary = run(args.planner, args.scenario, args.cycles, config, output_dir)
    return 0 if summary['failures'] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
