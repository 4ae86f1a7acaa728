"""Node placement, edge derivation and throughput estimation for the topology graph."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any, Optional

Point = tuple[float, float]

RSU_ROW_Y = 1.5
RSU_SPACING = 2.0
OBU_CENTER_Y = -1.0
OBU_MIN_RADIUS = 1.5
OBU_ELLIPSE_RATIO = 0.25


def _get(value: Any, key: str) -> Any:
    return value.get(key) if isinstance(value, Mapping) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _upstream_name(info: Any) -> Optional[str]:
    name = _get(_get(info, "upstream"), "node_name")
    return name if isinstance(name, str) else None


def bezier_points(
    x0: float, y0: float, x1: float, y1: float, offset: float, samples: int
) -> tuple[list[float], list[float]]:
    """Sample a quadratic curve from (x0, y0) to (x1, y1) at samples + 1 points.

    The control point sits on the perpendicular through the midpoint, `offset`
    away from the straight line (positive to the left of the direction of travel).
    """
    if samples < 1:
        raise ValueError(f"samples must be at least 1, got {samples}")
    mx = (x0 + x1) / 2.0
    my = (y0 + y1) / 2.0
    dx = x1 - x0
    dy = y1 - y0
    dist = max(math.sqrt(dx * dx + dy * dy), 1.0)
    cx = mx + (-dy / dist) * offset
    cy = my + (dx / dist) * offset
    xs: list[float] = []
    ys: list[float] = []
    for i in range(samples + 1):
        t = i / samples
        omt = 1.0 - t
        xs.append(omt * omt * x0 + 2.0 * omt * t * cx + t * t * x1)
        ys.append(omt * omt * y0 + 2.0 * omt * t * cy + t * t * y1)
    return xs, ys


def pick_node_type(node_info: Mapping[str, Any], node: str) -> Optional[str]:
    """The node's "node_type" string, or None when it is unknown."""
    node_type = _get(node_info.get(node), "node_type")
    return node_type if isinstance(node_type, str) else None


def _is_rsu(node_info: Mapping[str, Any], node: str) -> bool:
    node_type = pick_node_type(node_info, node)
    return node_type is not None and node_type.lower() == "rsu"


def compute_positions(nodes: Iterable[str], node_info: Mapping[str, Any]) -> dict[str, Point]:
    """Lay out nodes: RSUs in a row on top, other nodes on an ellipse below.

    A node whose upstream is placed is moved halfway towards it horizontally.
    The result is ordered by node name.
    """
    nodes = list(nodes)
    rsus = [n for n in nodes if _is_rsu(node_info, n)]
    obus = [n for n in nodes if not _is_rsu(node_info, n)]

    positions: dict[str, Point] = {}
    rsu_count = max(1, len(rsus))
    for i, rsu in enumerate(rsus):
        positions[rsu] = ((i - (rsu_count - 1.0) / 2.0) * RSU_SPACING, RSU_ROW_Y)

    obu_count = len(obus)
    radius = max(1.0 + obu_count / 6.0, OBU_MIN_RADIUS)
    for i, obu in enumerate(obus):
        angle = 2.0 * math.pi * i / (obu_count or 1)
        positions[obu] = (
            math.cos(angle) * radius,
            OBU_CENTER_Y + math.sin(angle) * radius * OBU_ELLIPSE_RATIO,
        )

    for obu in obus:
        upstream = _upstream_name(node_info.get(obu))
        if upstream is None or obu not in positions or upstream not in positions:
            continue
        ox, oy = positions[obu]
        ux, _ = positions[upstream]
        positions[obu] = ((ox + ux) / 2.0, oy)

    return dict(sorted(positions.items()))


def derive_edges(
    channels: Mapping[str, Mapping[str, Any]], node_info: Mapping[str, Any]
) -> list[tuple[str, str]]:
    """Directed edges from the channel map, or from upstream links when there are no channels."""
    if channels:
        return [(source, target) for source, inner in channels.items() for target in inner]
    edges = []
    for node, info in node_info.items():
        upstream = _upstream_name(info)
        if upstream is not None:
            edges.append((node, upstream))
    return edges


def _sum_numbers(values: Iterable[Any]) -> float:
    return sum(float(v) for v in values if _is_number(v))


def stats_sums(stats: Mapping[str, Any]) -> dict[str, float]:
    """Sum every numeric counter in each node's stats, ordered by node name.

    Objects contribute their numbers and the numbers of nested objects;
    arrays contribute the numbers of the objects they hold.
    """
    sums: dict[str, float] = {}
    for node, value in stats.items():
        total = 0.0
        if isinstance(value, Mapping):
            for item in value.values():
                if isinstance(item, Mapping):
                    total += _sum_numbers(item.values())
                elif _is_number(item):
                    total += float(item)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Mapping):
                    total += _sum_numbers(item.values())
        sums[node] = total
    return dict(sorted(sums.items()))


class ThroughputTracker:
    """Turns successive counter sums into per-node rates."""

    def __init__(self) -> None:
        self._snapshot: dict[str, float] = {}
        self._last_time = 0.0

    def update(self, sums: Mapping[str, float], now: float) -> dict[str, float]:
        """Rates per second since the previous update; zero on the first one.

        Counters that went down count as zero traffic.
        """
        dt = now - self._last_time if self._last_time > 0.0 else 0.0
        rates: dict[str, float] = {}
        for node, current in sums.items():
            if dt > 0.0:
                delta = max(current - self._snapshot.get(node, 0.0), 0.0)
                rates[node] = delta / dt
            else:
                rates[node] = 0.0
        self._snapshot.update(sums)
        self._last_time = now
        return dict(sorted(rates.items()))