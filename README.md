# vanetmesh

Building blocks for a vehicular mesh network in which road-side units (RSUs)
and on-board units (OBUs) exchange heartbeats and forward data up and down
a routing tree.

## What is inside

- `vanetmesh.payloads` – the payloads carried in a frame: `Heartbeat`,
  `HeartbeatReply`, `ToUpstream` and `ToDownstream`, each with
  `from_bytes` and `to_parts`, plus `parse_control`, `control_to_parts`,
  `parse_data` and `data_to_parts`, which handle the leading kind byte.
  Malformed input raises `ParseError` (a `ValueError`). Encoding a
  `Heartbeat` with `to_parts` writes its hop count incremented by one.
- `vanetmesh.packet` – the frame around a payload: destination MAC, source
  MAC, the `0x30 0x30` protocol marker and a class byte (control or data).
  `Message.from_bytes` decodes a frame, `Message.to_parts` and
  `Message.to_bytes` encode it; `parse_packet_type` and
  `packet_type_to_parts` work on the part after the header.
- `vanetmesh.metrics` – thread-safe, process-wide counters:
  `inc_loop_detected` / `loop_detected_count`, `inc_cache_select` /
  `cache_select_count`, `inc_cache_clear` / `cache_clear_count`.
- `vanetmesh.graph_helpers` – `compute_edge_width` (1 to 12, growing with
  log10 of the traffic), `determine_route_kind` (`"downstream"`,
  `"upstream"` or `"neutral"`), and `build_node_json` /
  `build_edge_json` for a network renderer.
- `vanetmesh.graph_layout` – `bezier_points`, `pick_node_type`,
  `compute_positions` (RSUs in a row, other nodes on an ellipse below),
  `derive_edges`, `stats_sums`, and `ThroughputTracker`, which turns
  successive counter sums into per-node rates per second.
- `vanetmesh.graph_render` – Plotly-style traces (`edge_traces`,
  `node_trace`), arrow annotations (`edge_annotations`), a layout
  (`plot_layout`) and a Cytoscape-style payload (`cytoscape_payload`),
  all bundled by `Graph.render`.
- `vanetmesh.hub` – an asyncio `Hub` that forwards every packet received on
  one socket to all others with a per-link delay matrix, and runs
  `HubCheck` objects on each packet: `UpstreamMatchCheck` and
  `DownstreamFromIdxCheck` set a `threading.Event`, while
  `UpstreamExpectation` and `DownstreamFromIdxExpectation` can be awaited
  with `wait()`. Helpers: `mk_socketpairs`, `poll_until`,
  `await_with_timeout`.

## Examples

Decoding and re-encoding a heartbeat frame:

```python
from vanetmesh.packet import Message

frame = bytes.fromhex(
    "ffffffffffff" "020000000001" "3030" "00" "00"
    + "00" * 16 + "00000000" + "00000000" + "020000000002"
)
message = Message.from_bytes(frame)
forwarded = message.to_bytes()  # hop count is now 1
```

Building graph data from a snapshot:

```python
from vanetmesh.graph_render import Graph

graph = Graph()
frame = graph.render(
    nodes=["rsu1", "obu1"],
    channels={},
    node_info={
        "rsu1": {"node_type": "Rsu"},
        "obu1": {"node_type": "Obu", "upstream": {"node_name": "rsu1"}},
    },
    stats={},
    now=1.0,
)
frame["edges"][0]["route_kind"]  # "upstream"
```

With no channels, edges come from each node's upstream link. The result
of `render` holds `positions`, `node_bps`, `data`, `layout`, `nodes` and
`edges`.

## What it does not do

The package has no node or simulator program and no command line. It does
not create network namespaces or TAP devices, does not run the routing
logic of RSU and OBU nodes, serves no HTTP API and has no browser front
end: the graph modules only produce data for a renderer. The hub works on
Unix socket pairs and so needs a POSIX system.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```

Python 3.10 or later is required; the package has no runtime dependencies.