import math

import pytest

from vanetmesh.graph_layout import (
    ThroughputTracker,
    bezier_points,
    compute_positions,
    derive_edges,
    pick_node_type,
    stats_sums,
)


def test_bezier_points_endpoints_and_count():
    xs, ys = bezier_points(0.0, 0.0, 10.0, 0.0, 0.0, 10)
    assert len(xs) == 11
    assert len(ys) == 11
    assert abs(xs[0] - 0.0) < 1e-12
    assert abs(ys[0] - 0.0) < 1e-12
    assert abs(xs[10] - 10.0) < 1e-12
    assert abs(ys[10] - 0.0) < 1e-12


def test_bezier_points_offset_changes_midpoint():
    xs0, ys0 = bezier_points(0.0, 0.0, 10.0, 0.0, 0.0, 20)
    xs1, ys1 = bezier_points(0.0, 0.0, 10.0, 0.0, 5.0, 20)
    assert xs0[10] == xs1[10]
    assert abs(ys0[10] - ys1[10]) > 1e-6


def test_bezier_points_linear_when_offset_zero():
    xs, ys = bezier_points(-5.0, 2.0, 5.0, 2.0, 0.0, 8)
    for y in ys:
        assert abs(y - 2.0) < 1e-12
    assert all(b >= a for a, b in zip(xs, xs[1:]))


def test_bezier_points_rejects_zero_samples():
    with pytest.raises(ValueError):
        bezier_points(0.0, 0.0, 1.0, 1.0, 0.0, 0)


def test_pick_node_type_returns_expected():
    m = {
        "n1": {"node_type": "Rsu", "other": 1},
        "n2": {"node_type": "Obu"},
        "n3": {"no_type": True},
    }
    assert pick_node_type(m, "n1") == "Rsu"
    assert pick_node_type(m, "n2") == "Obu"
    assert pick_node_type(m, "n3") is None
    assert pick_node_type(m, "missing") is None


def test_compute_positions_rsus_in_a_row():
    info = {"r1": {"node_type": "Rsu"}, "r2": {"node_type": "rsu"}}
    positions = compute_positions(["r1", "r2"], info)
    assert positions == {"r1": (-1.0, 1.5), "r2": (1.0, 1.5)}


def test_compute_positions_single_obu_and_nudge():
    info = {"r": {"node_type": "Rsu"}, "a": {"node_type": "Obu"}}
    positions = compute_positions(["r", "a"], info)
    assert positions["r"] == (0.0, 1.5)
    assert positions["a"] == pytest.approx((1.5, -1.0))

    info["a"]["upstream"] = {"node_name": "r"}
    nudged = compute_positions(["r", "a"], info)
    assert nudged["a"] == pytest.approx((0.75, -1.0))


def test_compute_positions_sorted_and_covers_all_nodes():
    positions = compute_positions(["z", "b", "m"], {})
    assert list(positions) == ["b", "m", "z"]
    for x, y in positions.values():
        assert math.isfinite(x) and math.isfinite(y)
        assert y < 1.5


def test_derive_edges_from_channels():
    channels = {"a": {"b": {}, "c": {}}, "b": {"a": {}}}
    edges = derive_edges(channels, {"a": {"upstream": {"node_name": "z"}}})
    assert sorted(edges) == [("a", "b"), ("a", "c"), ("b", "a")]


def test_derive_edges_from_upstream_when_no_channels():
    info = {
        "a": {"upstream": {"node_name": "r"}},
        "b": {"upstream": None},
        "r": {"node_type": "Rsu"},
    }
    assert derive_edges({}, info) == [("a", "r")]


def test_stats_sums_shapes():
    stats = {
        "b": {"dev": {"rx": 10, "tx": 5}, "count": 3, "flag": True, "name": "x"},
        "a": [{"rx": 1, "tx": 2.5}, 7, {"s": "t"}],
        "c": "nothing",
    }
    sums = stats_sums(stats)
    assert list(sums) == ["a", "b", "c"]
    assert sums == {"a": 3.5, "b": 18.0, "c": 0.0}


def test_throughput_tracker_first_update_is_zero():
    tracker = ThroughputTracker()
    assert tracker.update({"a": 100.0}, 10.0) == {"a": 0.0}


def test_throughput_tracker_rates_and_clamping():
    tracker = ThroughputTracker()
    tracker.update({"a": 100.0, "b": 500.0}, 10.0)
    rates = tracker.update({"a": 300.0, "b": 400.0, "c": 50.0}, 12.0)
    assert rates == {"a": 100.0, "b": 0.0, "c": 25.0}


def test_throughput_tracker_keeps_unseen_nodes():
    tracker = ThroughputTracker()
    tracker.update({"a": 100.0}, 1.0)
    tracker.update({"b": 10.0}, 2.0)
    rates = tracker.update({"a": 104.0}, 4.0)
    assert rates == {"a": pytest.approx(2.0)}