#!/usr/bin/env python3
"""
Speed stratified lattice planner.
"""

import pytest

from lattice_drive.algorithms.lattice import SpatiotemporalLatticePlanner, Snapshot
from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.core.exceptions import PlanningFailure


@pytest.fixture
def planner(road_map, router, config):
    return SpatiotemporalLatticePlanner(road_map, router, config)


def test_speed_interval_index(planner):
    assert planner.speed_interval_index(0.0) == 0
    assert planner.speed_interval_index(13.4112) == 1
    assert planner.speed_interval_index(20.0) == 1
    assert planner.speed_interval_index(30.0) == 2
    assert planner.speed_interval_index(40.2336) is None
    assert planner.speed_interval_index(-1.0) is None


@pytest.mark.slow
def test_plan_trajectory(planner, road_map, router, config, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0, policy_speed=25.0), [], road_map, router)
    trajectory = planner.plan_trajectory(0, snapshot)

    assert trajectory
    for path, acceleration in trajectory:
        assert isinstance(path, ContinuousPath)
        assert acceleration in config.spatiotemporal.acceleration_options

    root = planner.root_station()
    assert root.key == (road_map.waypoint((20.0, 3.5)).id, 1)
    for station in planner.stations():
        node_id, bin = station.key
        assert node_id == station.node_id
        assert planner.speed_interval_index(station.snapshot.ego.speed) == bin


@pytest.mark.slow
def test_plan_path_matches_trajectory(planner, road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0, policy_speed=25.0), [], road_map, router)
    path = planner.plan_path(0, snapshot)
    trajectory = planner.plan_trajectory(0, snapshot)
    assert path.range == pytest.approx(sum(edge.range for edge, _ in trajectory), abs=1e-3)


def test_root_outside_speed_intervals(planner, road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=45.0, policy_speed=50.0), [], road_map, router)
    with pytest.raises(PlanningFailure):
        planner.plan_path(0, snapshot)


def assert_graph_consistent(planner):
    table = {station.key: station for station in planner.stations()}
    for station in planner.stations():
        for parent in station.parents.values():
            assert parent.parent_key in table
            children = [child.child_key for _, child in table[parent.parent_key].children_in_order()]
            assert station.key in children
        for _, child in station.children_in_order():
            assert child.child_key in table


@pytest.mark.slow
def test_station_graph_is_consistent(planner, road_map, router, make_vehicle):
    """Several acceleration options landing in one speed interval leave no dangling links."""
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=10.0, policy_speed=15.0), [], road_map, router)
    path = planner.plan_path(0, snapshot)
    assert path.range > 0.0
    assert_graph_consistent(planner)


@pytest.mark.slow
def test_speed_weighted_stage_cost(road_map, router, config, make_vehicle):
    planner = SpatiotemporalLatticePlanner(
        road_map, router, config, cost_function=lambda ego, acceleration, dt: 1000.0 * ego.speed * dt)
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=10.0, policy_speed=15.0), [], road_map, router)
    trajectory = planner.plan_trajectory(0, snapshot)
    assert trajectory
    assert_graph_consistent(planner)
