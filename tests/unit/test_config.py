#!/usr/bin/env python3
"""
Global configuration, YAML persistence and command line parsing.
"""

import pytest

from lattice_drive.config.argument_parser import ConfigArgumentParser, parse_config_from_cli
from lattice_drive.config.global_config import (
    ConfigPresets,
    CostConfig,
    GlobalConfig,
    SpatiotemporalConfig,
    get_global_config,
    load_config_from_env,
    load_config_from_yaml,
    save_config_to_yaml,
    set_global_config,
)


def test_defaults():
    config = GlobalConfig()
    assert config.time.dt == 0.2
    assert config.time.max_simulation_time == 5.0
    assert config.planner.spatial_horizon == 100.0
    assert config.planner.lookahead == 50.0
    assert config.planner.min_lane_change_distance == 20.0
    assert config.lattice.longitudinal_resolution == 1.0
    assert config.lattice_range == 130.0
    assert config.idm.max_acceleration == 1.5
    assert config.idm.minimum_gap == 2.0
    assert config.cost.terminal_speed_costs == [4.0, 4.0, 4.0, 3.0, 3.0, 2.0, 2.0, 1.0, 1.0, 0.0]
    assert config.cost.terminal_distance_costs == [20.0] * 8 + [10.0, 5.0]


def test_sections_are_independent_between_instances():
    a = GlobalConfig()
    b = GlobalConfig()
    a.cost.terminal_speed_costs[0] = 100.0
    assert b.cost.terminal_speed_costs[0] == 4.0


def test_cost_tables_need_ten_bands():
    with pytest.raises(ValueError):
        CostConfig(terminal_speed_costs=[1.0, 2.0])


def test_speed_intervals_validated():
    with pytest.raises(ValueError):
        SpatiotemporalConfig(speed_intervals=[(5.0, 5.0)])
    config = SpatiotemporalConfig(speed_intervals=[[0.0, 10.0], [10.0, 20.0]])
    assert config.speed_intervals == [(0.0, 10.0), (10.0, 20.0)]


def test_from_dict_partial_and_unknown():
    config = GlobalConfig.from_dict({'planner': {'lookahead': 25.0}, 'random_seed': 7})
    assert config.planner.lookahead == 25.0
    assert config.planner.spatial_horizon == 100.0
    assert config.random_seed == 7

    with pytest.raises(ValueError):
        GlobalConfig.from_dict({'planner': {'no_such_key': 1.0}})
    with pytest.raises(ValueError):
        GlobalConfig.from_dict({'no_such_section': {}})


def test_yaml_round_trip(temp_dir):
    config = GlobalConfig()
    config.time.dt = 0.1
    config.planner.lookahead = 40.0
    config.cost.lane_change_cost = 2.5
    path = temp_dir / "config" / "planner.yaml"

    save_config_to_yaml(config, path)
    loaded = load_config_from_yaml(path)

    assert loaded.time.dt == 0.1
    assert loaded.planner.lookahead == 40.0
    assert loaded.cost.lane_change_cost == 2.5
    assert loaded.spatiotemporal.speed_intervals == config.spatiotemporal.speed_intervals


def test_yaml_errors(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_config_from_yaml(temp_dir / "missing.yaml")

    bad = temp_dir / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding='utf-8')
    with pytest.raises(ValueError):
        load_config_from_yaml(bad)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv('LATTICE_DT', '0.1')
    monkeypatch.setenv('LATTICE_HORIZON', '80')
    monkeypatch.setenv('LATTICE_SEED', '3')
    monkeypatch.setenv('LATTICE_DEBUG', 'true')
    config = load_config_from_env(GlobalConfig())
    assert config.time.dt == 0.1
    assert config.planner.spatial_horizon == 80.0
    assert config.random_seed == 3
    assert config.debug_mode is True


def test_global_config_accessors():
    config = GlobalConfig()
    config.planner.lookahead = 12.0
    set_global_config(config)
    assert get_global_config() is config


def test_presets():
    fast = ConfigPresets.fast_testing()
    assert fast.time.dt == 0.5
    assert fast.lattice_range == 90.0
    assert ConfigPresets.high_precision().lattice.longitudinal_resolution == 0.5
    assert ConfigPresets.long_horizon().planner.spatial_horizon == 150.0


def test_argument_parser_overrides():
    parser = ConfigArgumentParser()
    args = parser.parse_args(["--config-preset", "fast", "--lookahead", "20", "--seed", "11", "--verbose"])
    config = parser.create_config_from_args(args)
    assert config.time.dt == 0.5
    assert config.planner.lookahead == 20.0
    assert config.random_seed == 11
    assert config.log_level == "DEBUG"


def test_parse_config_from_cli_with_file(temp_dir):
    path = temp_dir / "cli.yaml"
    save_config_to_yaml(GlobalConfig.from_dict({'planner': {'spatial_horizon': 70.0}}), path)
    config, args = parse_config_from_cli(["--config-file", str(path), "--planner", "spatiotemporal_lattice"])
    assert config.planner.spatial_horizon == 70.0
    assert args.planner == "spatiotemporal_lattice"
