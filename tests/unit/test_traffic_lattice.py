#!/usr/bin/env python3
"""
Traffic lattice occupancy, neighbour queries and traffic updates.
"""

import pytest

from lattice_drive.algorithms.lattice.traffic_lattice import Registration, TrafficLattice
from lattice_drive.core.exceptions import (
    CollisionError,
    LatticeError,
    TrafficMismatchError,
    VehicleNotOnLatticeError,
)


@pytest.fixture
def two_cars(make_vehicle):
    # ego rear at 17.6, lead rear at 37.6, both on the middle lane
    return [make_vehicle(0, 20.0), make_vehicle(1, 40.0)]


@pytest.fixture
def traffic(two_cars, road_map, router):
    return TrafficLattice(two_cars, road_map, router, 1.0)


def occupied(lattice):
    return {node.id: node.vehicle for node in lattice.nodes() if node.vehicle is not None}


def test_vehicles_claim_contiguous_runs(traffic):
    assert traffic.vehicles() == {0, 1}

    nodes = traffic.vehicle_nodes(0)
    assert len(nodes) == 6
    distances = [node.distance for node in nodes]
    assert distances == sorted(distances)
    assert all(node.waypoint.lane_id == 1 for node in nodes)
    assert traffic.vehicle_rear_node(0).id == nodes[0].id
    assert traffic.vehicle_head_node(0).id == nodes[-1].id


def test_every_node_has_at_most_one_vehicle(traffic):
    claimed = occupied(traffic)
    total = sum(len(traffic.vehicle_nodes(vehicle)) for vehicle in traffic.vehicles())
    assert total == len(claimed)
    for vehicle in traffic.vehicles():
        for node in traffic.vehicle_nodes(vehicle):
            assert claimed[node.id] == vehicle


def test_front_and_back_gaps(traffic):
    assert traffic.front(0) == (1, pytest.approx(15.0))
    assert traffic.back(1) == (0, pytest.approx(15.0))
    assert traffic.front(1) is None
    assert traffic.back(0) is None


def test_node_queries_still_work(traffic):
    rear = traffic.vehicle_rear_node(0)
    assert traffic.front(rear, 3.0).distance == pytest.approx(rear.distance + 3.0)


def test_add_vehicle_outcomes(traffic, make_vehicle):
    before = occupied(traffic)

    assert traffic.add_vehicle(make_vehicle(0, 20.0)) == Registration.SKIPPED
    assert traffic.add_vehicle(make_vehicle(5, 100.0)) == Registration.SKIPPED

    # overlaps the ego, nothing is claimed
    assert traffic.add_vehicle(make_vehicle(3, 21.0)) == Registration.COLLISION
    assert occupied(traffic) == before
    assert traffic.vehicles() == {0, 1}

    assert traffic.add_vehicle(make_vehicle(2, 30.0, lane=2)) == Registration.ADDED
    assert traffic.vehicles() == {0, 1, 2}


def test_lateral_neighbours(traffic, make_vehicle):
    traffic.add_vehicle(make_vehicle(2, 30.0, lane=2))
    assert traffic.left_front(0) == (2, pytest.approx(5.0))
    assert traffic.left_back(0) is None
    assert traffic.right_front(0) is None
    assert traffic.right_back(0) is None


def test_vehicle_alongside_has_non_positive_gap(traffic, make_vehicle):
    traffic.add_vehicle(make_vehicle(2, 21.0, lane=2))
    vehicle, gap = traffic.left_front(0)
    assert vehicle == 2
    assert gap <= 0.0


def test_delete_vehicle(traffic):
    assert traffic.delete_vehicle(1)
    assert not traffic.delete_vehicle(1)
    assert traffic.front(0) is None
    with pytest.raises(VehicleNotOnLatticeError):
        traffic.vehicle_nodes(1)


def test_move_traffic_forward(traffic, make_vehicle):
    valid, disappeared = traffic.move_traffic_forward([make_vehicle(0, 30.0), make_vehicle(1, 50.0)])
    assert valid
    assert disappeared == set()
    assert traffic.front(0) == (1, pytest.approx(15.0))
    assert traffic.vehicle_rear_node(0).distance == 0.0


def test_move_traffic_forward_drops_vehicles_off_the_map(traffic, make_vehicle):
    valid, disappeared = traffic.move_traffic_forward([make_vehicle(0, 20.0), make_vehicle(1, 700.0)])
    assert valid
    assert disappeared == {1}
    assert traffic.vehicles() == {0}


def test_move_traffic_forward_detects_collision(traffic, make_vehicle):
    valid, _ = traffic.move_traffic_forward([make_vehicle(0, 38.0), make_vehicle(1, 40.0)])
    assert not valid


def test_move_traffic_forward_rejects_mismatch(traffic, make_vehicle):
    before = traffic.string()
    with pytest.raises(TrafficMismatchError):
        traffic.move_traffic_forward([make_vehicle(0, 30.0)])
    with pytest.raises(TrafficMismatchError):
        traffic.move_traffic_forward([make_vehicle(0, 30.0), make_vehicle(1, 50.0), make_vehicle(2, 80.0)])
    assert traffic.string() == before


def test_move_traffic_forward_reseeds_after_large_jump(road_map, router, make_vehicle):
    traffic = TrafficLattice([make_vehicle(0, 20.0)], road_map, router, 1.0)
    valid, disappeared = traffic.move_traffic_forward([make_vehicle(0, 60.0)])
    assert valid
    assert disappeared == set()
    assert traffic.vehicle_rear_node(0).waypoint.s == pytest.approx(57.6)


def test_move_traffic_forward_between_nodes(road_map, router, make_vehicle):
    """Steps that do not land on the node grid keep the vehicle on the lattice."""
    traffic = TrafficLattice([make_vehicle(0, 20.0)], road_map, router, 1.0)
    for x in (22.02, 24.08, 26.18, 28.32, 30.5, 33.49):
        valid, disappeared = traffic.move_traffic_forward([make_vehicle(0, x)])
        assert valid
        assert disappeared == set()
        assert traffic.vehicles() == {0}
        assert abs(traffic.vehicle_head_node(0).waypoint.s - (x + 2.4)) <= 1.0
        assert abs(traffic.vehicle_rear_node(0).waypoint.s - (x - 2.4)) <= 1.0


def test_is_changing_lane(road_map, router, make_vehicle):
    straight = TrafficLattice([make_vehicle(0, 20.0)], road_map, router, 1.0)
    assert straight.is_changing_lane(0) == 0

    # head already on the left lane
    left = TrafficLattice([make_vehicle(0, 20.0, y=5.0, yaw=0.3)], road_map, router, 1.0)
    assert left.vehicle_head_node(0).waypoint.lane_id == 2
    assert left.is_changing_lane(0) == -1


def test_copy_is_independent(traffic):
    other = traffic.copy()
    other.delete_vehicle(1)
    assert traffic.vehicles() == {0, 1}
    assert traffic.front(0) == (1, pytest.approx(15.0))


def test_construction_errors(road_map, router, make_vehicle):
    with pytest.raises(CollisionError):
        TrafficLattice([make_vehicle(0, 20.0), make_vehicle(1, 22.0)], road_map, router, 1.0)
    with pytest.raises(LatticeError):
        TrafficLattice([make_vehicle(0, 700.0)], road_map, router, 1.0)
