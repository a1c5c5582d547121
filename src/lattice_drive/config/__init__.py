"""
Configuration management.

Global configuration plus convenient accessors.
"""

from .global_config import (
    GlobalConfig, TimeConfig, LatticeConfig, PlannerConfig, IDMConfig,
    CostConfig, SpatiotemporalConfig, RoadConfig,
    get_global_config, set_global_config,
    load_config_from_env, load_config_from_yaml, save_config_to_yaml,
    ConfigPresets
)

__all__ = [
    # config sections
    'GlobalConfig', 'TimeConfig', 'LatticeConfig', 'PlannerConfig', 'IDMConfig',
    'CostConfig', 'SpatiotemporalConfig', 'RoadConfig',
    # accessors
    'get_global_config', 'set_global_config',
    'load_config_from_env', 'load_config_from_yaml', 'save_config_to_yaml',
    'ConfigPresets'
]
