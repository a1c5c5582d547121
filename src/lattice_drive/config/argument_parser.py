"""
Command line argument parser bound to the global configuration.
"""

import argparse
from typing import Optional, Sequence, Tuple

from .global_config import GlobalConfig, ConfigPresets, load_config_from_yaml


class ConfigArgumentParser:
    """Argument parser that produces a ``GlobalConfig``."""

    def __init__(self, description: str = "lattice-drive planner runner"):
        self.parser = argparse.ArgumentParser(description=description)
        self._setup_arguments()

    def _setup_arguments(self):
        # run
        self.parser.add_argument("--planner",
                                 choices=["idm_lattice", "spatiotemporal_lattice"],
                                 default="idm_lattice",
                                 help="planner variant")
        self.parser.add_argument("--scenario",
                                 choices=["free_road", "car_following", "blocked_lane"],
                                 default="free_road",
                                 help="scenario to run")
        self.parser.add_argument("--cycles", type=int, default=50,
                                 help="number of planning cycles")
        self.parser.add_argument("--seed", type=int, default=2025,
                                 help="random seed")
        self.parser.add_argument("--output-dir", type=str, default=None,
                                 help="directory for figures and logs")
        self.parser.add_argument("--verbose", action="store_true",
                                 help="debug logging")

        # configuration sources
        self.parser.add_argument("--config-preset",
                                 choices=["default", "fast", "high-precision", "long-horizon"],
                                 default="default",
                                 help="preset configuration template")
        self.parser.add_argument("--config-file", type=str, default=None,
                                 help="YAML configuration file (overrides the preset)")

        # overrides
        self.parser.add_argument("--dt", type=float,
                                 help="override simulation step (s)")
        self.parser.add_argument("--horizon", type=float,
                                 help="override spatial horizon (m)")
        self.parser.add_argument("--lookahead", type=float,
                                 help="override station lookahead (m)")

    def parse_args(self, argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
        return self.parser.parse_args(argv)

    def create_config_from_args(self, args: argparse.Namespace) -> GlobalConfig:
        """Build a configuration from parsed arguments."""
        if args.config_file is not None:
            config = load_config_from_yaml(args.config_file)
        elif args.config_preset == "fast":
            config = ConfigPresets.fast_testing()
        elif args.config_preset == "high-precision":
            config = ConfigPresets.high_precision()
        elif args.config_preset == "long-horizon":
            config = ConfigPresets.long_horizon()
        else:
            config = GlobalConfig()

        # only override what was given explicitly
        if args.dt is not None:
            config.time.dt = args.dt
        if args.horizon is not None:
            config.planner.spatial_horizon = args.horizon
        if args.lookahead is not None:
            config.planner.lookahead = args.lookahead

        config.random_seed = args.seed
        if args.verbose:
            config.log_level = "DEBUG"
            config.debug_mode = True

        return config


def parse_config_from_cli(
        argv: Optional[Sequence[str]] = None,
        description: str = "lattice-drive planner runner") -> Tuple[GlobalConfig, argparse.Namespace]:
    """Parse arguments and build the configuration in one call."""
    parser = ConfigArgumentParser(description)
    args = parser.parse_args(argv)
    config = parser.create_config_from_args(args)
    return config, args
