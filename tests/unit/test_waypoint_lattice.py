#!/usr/bin/env python3
"""
Waypoint lattice construction, queries and window maintenance.
"""

import pytest

from lattice_drive.algorithms.lattice.waypoint_lattice import WaypointLattice
from lattice_drive.core.exceptions import LatticeError


def make_lattice(road_map, router, road=0, lane=1, s=10.0, range=50.0, resolution=1.0):
    start = road_map.waypoint_on_lane(road, lane, s)
    return WaypointLattice(start, range, resolution, router, road_map)


def assert_links_consistent(lattice):
    for node in lattice.nodes():
        if node.front is not None:
            assert lattice.node(node.front).back == node.id
        if node.back is not None:
            assert lattice.node(node.back).front == node.id
        if node.left is not None:
            assert lattice.node(node.left).right == node.id
            assert lattice.node(node.left).distance == node.distance
        if node.right is not None:
            assert lattice.node(node.right).left == node.id


def test_construction(road_map, router):
    lattice = make_lattice(road_map, router)
    start = road_map.waypoint_on_lane(0, 1, 10.0)

    assert lattice.range == pytest.approx(50.0)
    assert len(lattice) == 51 * 3
    root = lattice.node(start.id)
    assert root.distance == 0.0
    assert lattice.left(root).waypoint.lane_id == 2
    assert lattice.right(root).waypoint.lane_id == 0
    assert_links_consistent(lattice)


def test_invalid_construction(road_map, router):
    with pytest.raises(ValueError):
        make_lattice(road_map, router, range=1.0, resolution=1.0)
    with pytest.raises(ValueError):
        make_lattice(road_map, router, resolution=0.0)


def test_front_back_queries(road_map, router):
    lattice = make_lattice(road_map, router)
    root = lattice.node(road_map.waypoint_on_lane(0, 1, 10.0).id)

    front = lattice.front(root, 10.0)
    assert front.distance == pytest.approx(10.0)
    assert front.waypoint.s == pytest.approx(20.0)
    assert lattice.back(front, 10.0).id == root.id

    assert lattice.front(root, 51.0) is None
    assert lattice.back(root, 1.0) is None

    assert lattice.front_left(root, 20.0).waypoint.lane_id == 2
    assert lattice.front_right(root, 20.0).waypoint.lane_id == 0
    assert lattice.front_left(lattice.left(root), 20.0) is None


def test_lattice_crosses_roads(road_map, router):
    lattice = make_lattice(road_map, router, s=180.0)
    root = lattice.node(road_map.waypoint_on_lane(0, 1, 180.0).id)
    node = lattice.front(root, 30.0)
    assert node.waypoint.road_id == 1
    assert node.waypoint.s == pytest.approx(10.0)
    assert_links_consistent(lattice)


def test_lattice_stops_at_route_end(road_map, router):
    lattice = make_lattice(road_map, router, road=2, s=180.0)
    assert lattice.range == pytest.approx(19.0)


def test_closest_node(road_map, router):
    lattice = make_lattice(road_map, router)
    near = road_map.waypoint_on_lane(0, 1, 20.4)
    assert lattice.closest_node(near, 1.0).waypoint.s == pytest.approx(20.0)
    assert lattice.closest_node(near, 0.3) is None
    # a lane of a road the lattice does not reach
    assert lattice.closest_node(road_map.waypoint_on_lane(2, 1, 20.0), 1.0) is None


def test_shorten(road_map, router):
    lattice = make_lattice(road_map, router)
    lattice.shorten(30.0)

    assert lattice.range == pytest.approx(30.0)
    assert len(lattice) == 31 * 3
    assert min(node.distance for node in lattice.nodes()) == 0.0
    new_start = lattice.node(road_map.waypoint_on_lane(0, 1, 30.0).id)
    assert new_start.distance == 0.0
    assert new_start.back is None
    assert_links_consistent(lattice)

    with pytest.raises(ValueError):
        lattice.shorten(60.0)


def test_shift_keeps_range(road_map, router):
    lattice = make_lattice(road_map, router)
    lattice.shift(10.0)

    assert lattice.range == pytest.approx(50.0)
    assert lattice.node(road_map.waypoint_on_lane(0, 1, 20.0).id).distance == 0.0
    assert lattice.node(road_map.waypoint_on_lane(0, 1, 70.0).id).distance == pytest.approx(50.0)
    assert road_map.waypoint_on_lane(0, 1, 10.0).id not in lattice
    assert_links_consistent(lattice)

    with pytest.raises(ValueError):
        lattice.shift(50.0)


def test_copy_is_independent(road_map, router):
    lattice = make_lattice(road_map, router)
    other = lattice.copy()
    other.shorten(20.0)
    assert lattice.range == pytest.approx(50.0)
    assert len(lattice) == 51 * 3


def test_missing_node_raises(road_map, router):
    lattice = make_lattice(road_map, router)
    with pytest.raises(LatticeError):
        lattice.node(-1)
    assert lattice.get(None) is None
