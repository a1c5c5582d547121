"""
Global configuration management.

Collects every tunable planner parameter in one place so that the lattice,
the traffic simulator and the station graph planners stay consistent.
"""

from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import os

import yaml
from loguru import logger


@dataclass
class TimeConfig:
    """Time related settings."""
    dt: float = 0.2                     # simulation step (s)
    max_simulation_time: float = 5.0    # upper bound of a single edge simulation (s)
    control_period: float = 0.2         # closed loop re-planning period (s)


@dataclass
class LatticeConfig:
    """Waypoint lattice settings."""
    longitudinal_resolution: float = 1.0   # node spacing along a lane (m)
    horizon_margin: float = 30.0           # lattice range beyond the spatial horizon (m)
    shift_margin: float = 5.0              # nodes kept behind the ego after a shift (m)
    max_road_expansions: int = 8           # bound on road chaining when sorting roads


@dataclass
class PlannerConfig:
    """Station graph planner settings."""
    spatial_horizon: float = 100.0          # planning horizon (m)
    lookahead: float = 50.0                 # distance between consecutive stations (m)
    min_lane_change_distance: float = 20.0  # shortest acceptable lane change (m)
    lane_center_tolerance: float = 0.5      # lateral offset blocking the opposite lane change (m)
    station_reached_tolerance: float = 0.5  # arc length to the next station counted as reached (m)


@dataclass
class IDMConfig:
    """Intelligent Driver Model parameters."""
    max_acceleration: float = 1.5          # a (m/s^2)
    comfortable_deceleration: float = 2.0  # b (m/s^2)
    desired_time_gap: float = 1.0          # T (s)
    minimum_gap: float = 2.0               # s0 (m)
    acceleration_exponent: float = 4.0     # delta
    min_policy_speed: float = 1e-3         # policy speeds below this are rejected (m/s)
    min_gap_floor: float = 1e-2            # gaps are floored to keep the interaction term finite (m)
    max_braking: float = 8.0               # accelerations are clipped to [-max_braking, a] (m/s^2)


@dataclass
class CostConfig:
    """Stage and terminal cost settings."""
    acceleration_weight: float = 0.1
    deceleration_weight: float = 0.2
    speed_deficit_weight: float = 1.0
    lane_change_cost: float = 0.0
    terminal_speed_costs: list = None      # indexed by tenths of speed/policy_speed
    terminal_distance_costs: list = None   # indexed by tenths of distance/horizon

    def __post_init__(self):
        if self.terminal_speed_costs is None:
            self.terminal_speed_costs = [4.0, 4.0, 4.0, 3.0, 3.0, 2.0, 2.0, 1.0, 1.0, 0.0]
        if self.terminal_distance_costs is None:
            self.terminal_distance_costs = [20.0] * 8 + [10.0, 5.0]
        if len(self.terminal_speed_costs) != 10 or len(self.terminal_distance_costs) != 10:
            raise ValueError("Terminal cost tables must have exactly 10 bands")


@dataclass
class SpatiotemporalConfig:
    """Speed stratified planner settings."""
    acceleration_options: list = None   # constant accelerations tried per edge (m/s^2)
    speed_intervals: list = None        # half open [low, high) speed bins (m/s)

    def __post_init__(self):
        if self.acceleration_options is None:
            self.acceleration_options = [-8.0, -4.0, -2.0, -1.0, 0.0, 1.0]
        if self.speed_intervals is None:
            self.speed_intervals = [
                (0.0, 13.4112),
                (13.4112, 26.8224),
                (26.8224, 40.2336),
            ]
        self.speed_intervals = [tuple(interval) for interval in self.speed_intervals]
        for low, high in self.speed_intervals:
            if not low < high:
                raise ValueError(f"Invalid speed interval [{low}, {high})")


@dataclass
class RoadConfig:
    """Reference road network used by the examples and tests."""
    road_lengths: list = None   # length of each straight road segment (m)
    num_lanes: int = 3
    lane_width: float = 3.5
    loop: bool = False

    def __post_init__(self):
        if self.road_lengths is None:
            self.road_lengths = [200.0, 200.0, 200.0]


@dataclass
class GlobalConfig:
    """Global configuration container."""
    time: TimeConfig = None
    lattice: LatticeConfig = None
    planner: PlannerConfig = None
    idm: IDMConfig = None
    cost: CostConfig = None
    spatiotemporal: SpatiotemporalConfig = None
    road: RoadConfig = None

    # system
    random_seed: int = 2025
    debug_mode: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        if self.time is None:
            self.time = TimeConfig()
        if self.lattice is None:
            self.lattice = LatticeConfig()
        if self.planner is None:
            self.planner = PlannerConfig()
        if self.idm is None:
            self.idm = IDMConfig()
        if self.cost is None:
            self.cost = CostConfig()
        if self.spatiotemporal is None:
            self.spatiotemporal = SpatiotemporalConfig()
        if self.road is None:
            self.road = RoadConfig()

    @property
    def lattice_range(self) -> float:
        """Range of the waypoint lattice maintained by the planners."""
        return self.planner.spatial_horizon + self.lattice.horizon_margin

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlobalConfig":
        """Build a config from a (possibly partial) nested dictionary."""
        sections = {
            'time': TimeConfig,
            'lattice': LatticeConfig,
            'planner': PlannerConfig,
            'idm': IDMConfig,
            'cost': CostConfig,
            'spatiotemporal': SpatiotemporalConfig,
            'road': RoadConfig,
        }
        kwargs = {}
        for key, value in (data or {}).items():
            if key in sections:
                section_cls = sections[key]
                known = {f.name for f in fields(section_cls)}
                unknown = set(value) - known
                if unknown:
                    raise ValueError(f"Unknown keys in config section '{key}': {sorted(unknown)}")
                kwargs[key] = section_cls(**value)
            elif key in ('random_seed', 'debug_mode', 'log_level'):
                kwargs[key] = value
            else:
                raise ValueError(f"Unknown config section: {key}")
        return cls(**kwargs)

    def print_summary(self):
        """Log a short configuration summary."""
        logger.info("=== Global configuration ===")
        logger.info(f"dt: {self.time.dt}s, max simulation time: {self.time.max_simulation_time}s")
        logger.info(f"spatial horizon: {self.planner.spatial_horizon}m, lookahead: {self.planner.lookahead}m")
        logger.info(f"lattice range: {self.lattice_range}m @ {self.lattice.longitudinal_resolution}m")
        logger.info(f"random seed: {self.random_seed}")


# global instance
_global_config = None

def get_global_config() -> GlobalConfig:
    """Return the global configuration, creating the default one on first use."""
    global _global_config
    if _global_config is None:
        _global_config = GlobalConfig()
    return _global_config

def set_global_config(config: GlobalConfig):
    """Replace the global configuration."""
    global _global_config
    _global_config = config

def load_config_from_env(config: Optional[GlobalConfig] = None) -> GlobalConfig:
    """Override configuration values from environment variables."""
    config = config if config is not None else get_global_config()

    if 'LATTICE_DT' in os.environ:
        config.time.dt = float(os.environ['LATTICE_DT'])
    if 'LATTICE_HORIZON' in os.environ:
        config.planner.spatial_horizon = float(os.environ['LATTICE_HORIZON'])
    if 'LATTICE_LOOKAHEAD' in os.environ:
        config.planner.lookahead = float(os.environ['LATTICE_LOOKAHEAD'])
    if 'LATTICE_SEED' in os.environ:
        config.random_seed = int(os.environ['LATTICE_SEED'])
    if 'LATTICE_LOG_LEVEL' in os.environ:
        config.log_level = os.environ['LATTICE_LOG_LEVEL'].upper()
    if 'LATTICE_DEBUG' in os.environ:
        config.debug_mode = os.environ['LATTICE_DEBUG'].lower() == 'true'

    return config


def load_config_from_yaml(path: Union[str, Path]) -> GlobalConfig:
    """Load a configuration from a YAML file.

    Sections missing from the file keep their defaults.

    Args:
        path: YAML file with top level keys matching the config sections

    Returns:
        config: The loaded configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file holds unknown sections or keys
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open('r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(data).__name__}")
    return GlobalConfig.from_dict(data)


def save_config_to_yaml(config: GlobalConfig, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    # tuples are not representable by safe_dump
    data['spatiotemporal']['speed_intervals'] = [
        list(interval) for interval in data['spatiotemporal']['speed_intervals']]
    with path.open('w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False)


class ConfigPresets:
    """Preset configuration templates."""

    @staticmethod
    def fast_testing() -> GlobalConfig:
        """Coarse settings for quick tests."""
        config = GlobalConfig()
        config.time.dt = 0.5
        config.lattice.longitudinal_resolution = 1.0
        config.planner.spatial_horizon = 60.0
        config.planner.lookahead = 30.0
        return config

    @staticmethod
    def high_precision() -> GlobalConfig:
        """Fine simulation step."""
        config = GlobalConfig()
        config.time.dt = 0.05
        config.lattice.longitudinal_resolution = 0.5
        return config

    @staticmethod
    def long_horizon() -> GlobalConfig:
        """Plan further ahead, e.g. for highway speeds."""
        config = GlobalConfig()
        config.planner.spatial_horizon = 150.0
        config.time.max_simulation_time = 6.0
        return config
