#!/usr/bin/env python3
"""
Snapshots and forward traffic simulation.
"""

import pytest

from lattice_drive.algorithms.lattice.path import ContinuousPath
from lattice_drive.algorithms.lattice.simulator import (
    AccelerationCost,
    ConstAccelTrafficSimulator,
    IDMTrafficSimulator,
)
from lattice_drive.algorithms.lattice.snapshot import Snapshot
from lattice_drive.core.exceptions import CollisionError, LatticeError
from lattice_drive.core.types import BoundingBox, Transform, Vehicle


def straight_path(x0, x1, y=3.5):
    return ContinuousPath((Transform(x0, y, 0.0), 0.0), (Transform(x1, y, 0.0), 0.0))


def test_snapshot_create_drops_agents_off_the_map(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0), [make_vehicle(1, 700.0), make_vehicle(2, 60.0)],
                               road_map, router)
    assert set(snapshot.agents) == {2}
    assert [vehicle.id for vehicle in snapshot.vehicles()] == [0, 2]


def test_snapshot_create_errors(road_map, router, make_vehicle):
    with pytest.raises(ValueError):
        Snapshot.create(make_vehicle(0, 20.0), [make_vehicle(0, 60.0)], road_map, router)
    with pytest.raises(CollisionError):
        Snapshot.create(make_vehicle(0, 20.0), [make_vehicle(1, 22.0)], road_map, router)
    with pytest.raises(LatticeError):
        Snapshot.create(make_vehicle(0, 700.0), [], road_map, router)


def test_snapshot_copy_is_independent(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0), [make_vehicle(1, 60.0)], road_map, router)
    other = snapshot.copy()
    other.ego.speed = 0.0
    other.remove_agent(1)

    assert snapshot.ego.speed == 20.0
    assert 1 in snapshot.agents
    assert snapshot.traffic_lattice.vehicles() == {0, 1}
    assert snapshot.road_map is other.road_map


def test_acceleration_cost():
    cost = AccelerationCost()
    ego = Vehicle(0, BoundingBox(2.4, 1.0), Transform(0.0, 0.0), speed=10.0, policy_speed=20.0)
    assert cost(ego, 0.0, 1.0) == pytest.approx(0.5)
    assert cost(ego, -1.0, 1.0) == pytest.approx(0.5 + 0.1 + 0.2)
    assert cost(ego, 1.0, 0.5) == pytest.approx((0.5 + 0.1) * 0.5)


def test_free_road_reaches_path_end(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0, policy_speed=25.0), [], road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    result = simulator.simulate(straight_path(20.0, 70.0), 0.2, 5.0)

    assert result.collision_free
    assert 2.0 < result.elapsed_time < 2.6
    assert result.stage_cost > 0.0
    ego = simulator.snapshot.ego
    assert ego.transform.x == pytest.approx(70.0, abs=1e-6)
    assert ego.speed > 20.0
    assert all(step.ego_acceleration > 0.0 for step in simulator.history)
    assert all(step.lead_gap is None for step in simulator.history)

    # the given snapshot is left untouched
    assert snapshot.ego.transform.x == 20.0
    assert snapshot.ego.speed == 20.0


def test_simulation_stops_at_max_duration(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=10.0), [], road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    result = simulator.simulate(straight_path(20.0, 170.0), 0.2, 1.0)
    assert result.collision_free
    assert result.elapsed_time == pytest.approx(1.0)
    assert len(simulator.history) == 5
    assert simulator.snapshot.ego.transform.x < 40.0


def test_car_following_decelerates(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0, policy_speed=25.0),
                               [make_vehicle(1, 50.0, speed=10.0, policy_speed=10.0)],
                               road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    result = simulator.simulate(straight_path(20.0, 70.0), 0.2, 1.0)

    assert result.collision_free
    assert simulator.history[0].ego_acceleration < 0.0
    assert simulator.history[0].lead_gap is not None
    assert simulator.snapshot.ego.speed < 20.0
    # the lead drives on at its policy speed
    assert simulator.snapshot.agents[1].transform.x == pytest.approx(60.0, abs=1.0)


def test_collision_ends_simulation(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0),
                               [make_vehicle(1, 30.0, speed=0.0, policy_speed=0.1)],
                               road_map, router)
    simulator = ConstAccelTrafficSimulator(snapshot)
    simulator.snapshot.ego.acceleration = 0.0
    result = simulator.simulate(straight_path(20.0, 70.0), 0.2, 5.0)

    assert not result.collision_free
    assert result.elapsed_time <= 0.4 + 1e-9


def test_const_accel_keeps_acceleration(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=10.0), [], road_map, router)
    simulator = ConstAccelTrafficSimulator(snapshot)
    simulator.snapshot.ego.acceleration = -2.0
    simulator.simulate(straight_path(20.0, 120.0), 0.2, 2.0)

    assert all(step.ego_acceleration == -2.0 for step in simulator.history)
    assert simulator.snapshot.ego.speed == pytest.approx(6.0)
    # 10m/s braking at 2m/s^2 for 2s covers 16m
    assert simulator.snapshot.ego.transform.x == pytest.approx(36.0, abs=1e-6)


def test_agents_leaving_the_map_are_dropped(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0),
                               [make_vehicle(1, 590.0, lane=0, speed=20.0, policy_speed=20.0)],
                               road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    result = simulator.simulate(straight_path(20.0, 70.0), 0.2, 5.0)
    assert result.collision_free
    assert 1 not in simulator.snapshot.agents
    assert simulator.snapshot.traffic_lattice.vehicles() == {0}


def test_invalid_step_sizes(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0), [], road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    with pytest.raises(ValueError):
        simulator.simulate(straight_path(20.0, 70.0), 0.0, 5.0)
    with pytest.raises(ValueError):
        simulator.simulate(straight_path(20.0, 70.0), 0.2, -1.0)


def test_following_never_reports_negative_gaps(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0, policy_speed=25.0),
                               [make_vehicle(1, 50.0, speed=10.0, policy_speed=10.0)],
                               road_map, router)
    simulator = IDMTrafficSimulator(snapshot)
    result = simulator.simulate(straight_path(20.0, 120.0), 0.2, 5.0)

    assert result.collision_free
    assert simulator.history
    assert all(step.lead_gap is not None and step.lead_gap > 0.0 for step in simulator.history)


def test_colliding_step_is_not_charged(road_map, router, make_vehicle):
    snapshot = Snapshot.create(make_vehicle(0, 20.0, speed=20.0),
                               [make_vehicle(1, 30.0, speed=0.0, policy_speed=0.1)],
                               road_map, router)
    simulator = ConstAccelTrafficSimulator(snapshot, lambda ego, acceleration, dt: 1.0)
    simulator.snapshot.ego.acceleration = 0.0
    result = simulator.simulate(straight_path(20.0, 70.0), 0.2, 5.0)

    # the first step is clear, the second one runs into the stopped car
    assert not result.collision_free
    assert result.elapsed_time == pytest.approx(0.4)
    assert result.stage_cost == pytest.approx(1.0)
    assert len(simulator.history) == 1
