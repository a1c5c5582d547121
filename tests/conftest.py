"""
Shared pytest fixtures for the lattice-drive tests.
"""

import pytest
import numpy as np
import tempfile
import shutil
from pathlib import Path

from lattice_drive.config.global_config import GlobalConfig, set_global_config
from lattice_drive.core.types import BoundingBox, Transform, Vehicle
from lattice_drive.environments.road_map import StraightRoadMap
from lattice_drive.environments.router import LoopRouter
from lattice_drive.environments.scenario_manager import ScenarioManager


CAR = BoundingBox(extent_x=2.4, extent_y=1.0)
LANE_WIDTH = 3.5


@pytest.fixture(autouse=True)
def reset_random_seeds():
    """Reset the random seed before every test."""
    np.random.seed(42)
    yield


@pytest.fixture(autouse=True)
def reset_global_config():
    """Every test starts from the default global configuration."""
    set_global_config(GlobalConfig())
    yield
    set_global_config(GlobalConfig())


@pytest.fixture
def temp_dir():
    """Temporary directory, removed after the test."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def config():
    return GlobalConfig()


@pytest.fixture
def road_map():
    """Three straight 200m roads with three 3.5m lanes each."""
    return StraightRoadMap([200.0, 200.0, 200.0], num_lanes=3, lane_width=LANE_WIDTH)


@pytest.fixture
def router(road_map):
    return LoopRouter(road_map, road_map.road_ids, loop=False)


@pytest.fixture
def make_vehicle():
    """Factory for vehicles on the reference road, placed by x and lane."""
    def _make(vehicle_id, x, lane=1, speed=20.0, policy_speed=20.0, yaw=0.0, y=None):
        y = lane * LANE_WIDTH if y is None else y
        return Vehicle(vehicle_id, CAR, Transform(x, y, yaw),
                       speed=speed, policy_speed=policy_speed)
    return _make


@pytest.fixture
def scenario_manager(config):
    return ScenarioManager(config)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "functional: Functional tests")
    config.addinivalue_line("markers", "slow: Slow tests")
