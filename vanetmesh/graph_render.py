"""Plot traces, arrow annotations and renderer payloads for the topology graph."""

from __future__ import annotations

import json
import logging
import math
import time
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from vanetmesh.graph_helpers import build_edge_json, build_node_json
from vanetmesh.graph_layout import (
    Point,
    ThroughputTracker,
    compute_positions,
    derive_edges,
    pick_node_type,
    stats_sums,
)

logger = logging.getLogger(__name__)

CURVE_SAMPLES = 30
POSITION_SCALE = 120.0

UP_LINE_COLOR = "rgba(200,30,30,0.9)"
UP_MARKER_COLOR = "rgba(200,30,30,0.8)"
UP_ARROW_COLOR = "rgba(200,30,30,0.95)"
DOWN_LINE_COLOR = "rgba(30,100,200,0.9)"
DOWN_MARKER_COLOR = "rgba(30,100,200,0.8)"
DOWN_ARROW_COLOR = "rgba(30,100,200,0.95)"
IDLE_ARROW_COLOR = "rgba(120,120,120,0.6)"
BASELINE_COLOR = "#333"

RSU_NODE_COLOR = "rgba(200,30,30,0.95)"
OBU_NODE_COLOR = "rgba(30,100,200,0.95)"
UNKNOWN_NODE_COLOR = "rgba(100,100,100,0.9)"
RSU_NODE_SIZE = 14
OBU_NODE_SIZE = 10
UNKNOWN_NODE_SIZE = 9


def _offset_scale(bps: float) -> float:
    return min((abs(math.log(max(bps, 1.0))) + 1.0) * 0.02, 0.25)


def _distance(start: Point, end: Point) -> float:
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    return max(math.sqrt(dx * dx + dy * dy), 1.0)


def _curve(start: Point, end: Point, offset: float) -> tuple[list[float], list[float]]:
    from vanetmesh.graph_layout import bezier_points

    return bezier_points(start[0], start[1], end[0], end[1], offset, CURVE_SAMPLES)


def _direction_traces(
    label: str, start: Point, end: Point, offset: float, bps: float,
    line_color: str, marker_color: str,
) -> list[dict[str, Any]]:
    xs, ys = _curve(start, end, offset)
    curve = {
        "x": xs,
        "y": ys,
        "mode": "lines",
        "hoverinfo": "text",
        "text": [],
        "line": {"color": line_color, "width": 2},
        "showlegend": False,
        "type": "scatter",
    }
    mid = {
        "x": [(start[0] + end[0]) / 2.0],
        "y": [(start[1] + end[1]) / 2.0],
        "mode": "markers",
        "type": "scatter",
        "marker": {"size": 8, "color": marker_color},
        "text": [f"{label}: {int(bps)} bps"],
        "hoverinfo": "text",
        "showlegend": False,
    }
    return [curve, mid]


def edge_traces(
    source: str, target: str, start: Point, end: Point, up_bps: float, down_bps: float
) -> list[dict[str, Any]]:
    """Traces for one edge: a dotted baseline, plus a curve and marker per busy direction."""
    traces: list[dict[str, Any]] = [
        {
            "x": [start[0], end[0]],
            "y": [start[1], end[1]],
            "mode": "lines",
            "line": {"color": BASELINE_COLOR, "width": 1, "dash": "dot"},
            "hoverinfo": "none",
            "showlegend": False,
            "type": "scatter",
        }
    ]
    dist = _distance(start, end)
    if up_bps > 0.0:
        traces += _direction_traces(
            f"{source} → {target}\nup", start, end, dist * _offset_scale(up_bps),
            up_bps, UP_LINE_COLOR, UP_MARKER_COLOR,
        )
    if down_bps > 0.0:
        traces += _direction_traces(
            f"{source} → {target}\ndown", start, end, -dist * _offset_scale(down_bps),
            down_bps, DOWN_LINE_COLOR, DOWN_MARKER_COLOR,
        )
    return traces


def _annotation(
    ax: float, ay: float, x: float, y: float, color: str, width: float
) -> dict[str, Any]:
    return {
        "x": x,
        "y": y,
        "ax": ax,
        "ay": ay,
        "xref": "x",
        "yref": "y",
        "axref": "x",
        "ayref": "y",
        "arrowhead": 3,
        "arrowsize": 1.0,
        "arrowwidth": width,
        "arrowcolor": color,
        "opacity": 0.95,
    }


def _curve_arrow(start: Point, end: Point, offset: float, color: str) -> dict[str, Any]:
    xs, ys = _curve(start, end, offset)
    return _annotation(xs[-3], ys[-3], xs[-1], ys[-1], color, 2.0)


def edge_annotations(
    start: Point, end: Point, up_bps: float, down_bps: float
) -> list[dict[str, Any]]:
    """Arrow heads at the end of each busy direction's curve, or one faint arrow when idle."""
    dist = _distance(start, end)
    annotations: list[dict[str, Any]] = []
    if up_bps > 0.0:
        annotations.append(
            _curve_arrow(start, end, dist * _offset_scale(up_bps), UP_ARROW_COLOR)
        )
    if down_bps > 0.0:
        annotations.append(
            _curve_arrow(start, end, -dist * _offset_scale(down_bps), DOWN_ARROW_COLOR)
        )
    if up_bps <= 0.0 and down_bps <= 0.0:
        (sx, sy), (tx, ty) = start, end
        annotations.append(
            _annotation(
                sx * 0.55 + tx * 0.45,
                sy * 0.55 + ty * 0.45,
                sx * 0.8 + tx * 0.2,
                sy * 0.8 + ty * 0.2,
                IDLE_ARROW_COLOR,
                1.0,
            )
        )
    return annotations


def node_trace(positions: Mapping[str, Point], node_info: Mapping[str, Any]) -> dict[str, Any]:
    """One marker trace holding every node, labelled and coloured by node type."""
    xs: list[float] = []
    ys: list[float] = []
    texts: list[str] = []
    colors: list[str] = []
    sizes: list[int] = []
    for name, (x, y) in sorted(positions.items()):
        xs.append(x)
        ys.append(y)
        node_type = pick_node_type(node_info, name)
        if node_type is None:
            texts.append(name)
            colors.append(UNKNOWN_NODE_COLOR)
            sizes.append(UNKNOWN_NODE_SIZE)
        else:
            texts.append(f"{name} ({node_type})")
            is_rsu = node_type.lower() == "rsu"
            colors.append(RSU_NODE_COLOR if is_rsu else OBU_NODE_COLOR)
            sizes.append(RSU_NODE_SIZE if is_rsu else OBU_NODE_SIZE)
    return {
        "x": xs,
        "y": ys,
        "mode": "markers+text",
        "text": texts,
        "textposition": "top center",
        "hoverinfo": "text",
        "showlegend": False,
        "type": "scatter",
        "marker": {"color": colors, "size": sizes},
    }


def _bare_axis() -> dict[str, bool]:
    return {"showgrid": False, "zeroline": False, "showticklabels": False, "fixedrange": True}


def plot_layout(annotations: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Plot layout with hidden, fixed axes, no margins and the given annotations."""
    return {
        "annotations": [dict(a) for a in annotations],
        "xaxis": _bare_axis(),
        "yaxis": _bare_axis(),
        "margin": {"l": 0, "r": 0, "t": 0, "b": 0},
    }


def cytoscape_payload(
    positions: Mapping[str, Point],
    edges: Iterable[tuple[str, str]],
    node_bps: Mapping[str, float],
    node_info: Mapping[str, Any],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Node and edge objects for the network renderer, positions scaled to pixels.

    Edges with an empty endpoint are left out.
    """
    nodes = [
        build_node_json(name, x * POSITION_SCALE, y * POSITION_SCALE, node_info)
        for name, (x, y) in sorted(positions.items())
    ]
    edge_objects = [
        build_edge_json(
            source, target, node_bps.get(source, 0.0), node_bps.get(target, 0.0), node_info
        )
        for source, target in edges
        if source and target
    ]
    return nodes, edge_objects


class Graph:
    """Renders successive snapshots of the simulator state into plot and renderer data."""

    def __init__(self) -> None:
        self._tracker = ThroughputTracker()

    def render(
        self,
        nodes: Iterable[str],
        channels: Mapping[str, Mapping[str, Any]],
        node_info: Mapping[str, Any],
        stats: Mapping[str, Any],
        now: Optional[float] = None,
    ) -> dict[str, Any]:
        """Build one frame; `now` is in seconds and defaults to the current time.

        The result holds "positions", "node_bps", "data", "layout", "nodes" and "edges".
        """
        if now is None:
            now = time.time()
        positions = compute_positions(nodes, node_info)
        edges = derive_edges(channels, node_info)
        node_bps = self._tracker.update(stats_sums(stats), now)

        data: list[dict[str, Any]] = []
        annotations: list[dict[str, Any]] = []
        for source, target in edges:
            start = positions.get(source)
            end = positions.get(target)
            if start is None or end is None:
                continue
            up = node_bps.get(source, 0.0)
            down = node_bps.get(target, 0.0)
            data += edge_traces(source, target, start, end, up, down)
            annotations += edge_annotations(start, end, up, down)
        data.append(node_trace(positions, node_info))

        logger.debug("positions: %s", json.dumps(positions))
        logger.debug("node_bps: %s", json.dumps(node_bps))
        logger.debug("data_traces_count: %d", len(data))

        cy_nodes, cy_edges = cytoscape_payload(positions, edges, node_bps, node_info)
        logger.debug("nodes=%d edges=%d", len(cy_nodes), len(cy_edges))
        return {
            "positions": positions,
            "node_bps": node_bps,
            "data": data,
            "layout": plot_layout(annotations),
            "nodes": cy_nodes,
            "edges": cy_edges,
        }