"""Builders for the node and edge objects consumed by the graph renderer."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

MIN_EDGE_WIDTH = 1
MAX_EDGE_WIDTH = 12
# Traffic of about 10**6 bps saturates the edge width.
_SCALE_LOG = 6.0

RSU_SIZE = 14
OBU_SIZE = 10
DEFAULT_SIZE = 9
RSU_COLOR = "rgba(200,30,30,0.95)"
OTHER_COLOR = "rgba(30,100,200,0.95)"
EDGE_COLOR = "rgba(120,120,120,1)"

NodeInfo = Mapping[str, Any]


def _finite(value: float, field: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{field} must be a finite number, got {value!r}")
    return number


def _get(value: Any, key: str) -> Any:
    return value.get(key) if isinstance(value, Mapping) else None


def _is_rsu(node_type: str) -> bool:
    return len(node_type) == 3 and node_type.isascii() and node_type.lower() == "rsu"


def compute_edge_width(up: float, down: float) -> int:
    """Edge width from traffic: 1 when idle, growing with log10 of the total, capped at 12."""
    total = max(up, 0.0) + max(down, 0.0)
    if total <= 0.0:
        return MIN_EDGE_WIDTH
    frac = min(max(math.log10(total) / _SCALE_LOG, 0.0), 1.0)
    # Round half away from zero; the operand is never negative here.
    width = MIN_EDGE_WIDTH + math.floor(frac * (MAX_EDGE_WIDTH - MIN_EDGE_WIDTH) + 0.5)
    return min(max(int(width), MIN_EDGE_WIDTH), MAX_EDGE_WIDTH)


def determine_route_kind(source: str, target: str, node_info: Mapping[str, NodeInfo]) -> str:
    """Classify the edge source->target as "downstream", "upstream" or "neutral".

    An explicit downstream listing on the target wins over the source's upstream.
    """
    downstream = _get(node_info.get(target), "downstream")
    if isinstance(downstream, list):
        for child in downstream:
            if _get(child, "node_name") == source:
                return "downstream"
    upstream_name = _get(_get(node_info.get(source), "upstream"), "node_name")
    if isinstance(upstream_name, str) and upstream_name == target:
        return "upstream"
    return "neutral"


def build_node_json(
    name: str, x: float, y: float, node_info: Mapping[str, NodeInfo]
) -> dict[str, Any]:
    """Node object with id, label, position, type (when known), size and color."""
    x = _finite(x, "x")
    y = _finite(y, "y")
    node: dict[str, Any] = {
        "id": name,
        "label": name,
        "x": x,
        "y": y,
        "position": {"x": x, "y": y},
    }
    size = DEFAULT_SIZE
    node_type = _get(node_info.get(name), "node_type")
    if isinstance(node_type, str):
        node["type"] = node_type
        size = RSU_SIZE if _is_rsu(node_type) else OBU_SIZE
    node["size"] = size
    node["color"] = RSU_COLOR if size == RSU_SIZE else OTHER_COLOR
    return node


def build_edge_json(
    source: str,
    target: str,
    up_bps: float,
    down_bps: float,
    node_info: Mapping[str, NodeInfo],
) -> dict[str, Any]:
    """Edge object with traffic, width, color, route kind and an id."""
    up_bps = _finite(up_bps, "up_bps")
    down_bps = _finite(down_bps, "down_bps")
    return {
        "source": source,
        "target": target,
        "up_bps": up_bps,
        "down_bps": down_bps,
        "width": compute_edge_width(up_bps, down_bps),
        "color": EDGE_COLOR,
        "route_kind": determine_route_kind(source, target, node_info),
        "id": f"{source}->{target}",
    }