import asyncio
import contextlib

import pytest

from vanetmesh.hub import (
    DownstreamFromIdxCheck,
    DownstreamFromIdxExpectation,
    Hub,
    HubCheck,
    UpstreamExpectation,
    UpstreamMatchCheck,
    await_with_timeout,
    mk_socketpairs,
    poll_until,
)
from vanetmesh.packet import Message
from vanetmesh.payloads import Heartbeat, ToDownstream, ToUpstream

MAC_A = bytes([2, 0, 0, 0, 0, 1])
MAC_B = bytes([2, 0, 0, 0, 0, 2])
MAC_C = bytes([2, 0, 0, 0, 0, 3])


def upstream_frame(source=MAC_A, destination=MAC_B, payload=b"\x09\x08"):
    return Message(source, destination, ToUpstream(source, payload)).to_bytes()


def downstream_frame():
    return Message(MAC_B, MAC_A, ToDownstream(MAC_B, MAC_A, b"\x01\x02\x03")).to_bytes()


@pytest.fixture
def pairs():
    created = []

    def make(n):
        node, hub = mk_socketpairs(n)
        created.extend(node + hub)
        return node, hub

    yield make
    for sock in created:
        sock.close()


def try_recv(sock):
    try:
        data = sock.recv(2048)
    except BlockingIOError:
        return None
    return data or None


def test_upstream_match_sets_flag():
    check = UpstreamMatchCheck(idx=0, source=MAC_A, destination=MAC_B)
    check.on_packet(0, upstream_frame())
    assert check.flag.is_set()


def test_upstream_match_ignores_other_index():
    check = UpstreamMatchCheck(idx=1, source=MAC_A, destination=MAC_B)
    check.on_packet(0, upstream_frame())
    assert not check.flag.is_set()


def test_upstream_match_checks_payload():
    check = UpstreamMatchCheck(
        idx=0, source=MAC_A, destination=MAC_B, expected_payload=b"\x01"
    )
    check.on_packet(0, upstream_frame(payload=b"\x09\x08"))
    assert not check.flag.is_set()
    check.on_packet(0, upstream_frame(payload=b"\x01"))
    assert check.flag.is_set()


def test_upstream_match_checks_addresses():
    check = UpstreamMatchCheck(idx=0, source=MAC_A, destination=MAC_C)
    check.on_packet(0, upstream_frame(destination=MAC_B))
    assert not check.flag.is_set()


def test_upstream_match_ignores_downstream_and_garbage():
    check = UpstreamMatchCheck(idx=0, source=MAC_A, destination=MAC_B)
    check.on_packet(0, downstream_frame())
    check.on_packet(0, b"\x00" * 14)
    check.on_packet(0, b"")
    assert not check.flag.is_set()


def test_downstream_check():
    check = DownstreamFromIdxCheck(idx=2)
    check.on_packet(2, upstream_frame())
    check.on_packet(1, downstream_frame())
    assert not check.flag.is_set()
    check.on_packet(2, downstream_frame())
    assert check.flag.is_set()


def test_downstream_check_ignores_control():
    frame = Message(MAC_A, b"\xff" * 6, Heartbeat(0, 0, MAC_A)).to_bytes()
    check = DownstreamFromIdxCheck(idx=0)
    check.on_packet(0, frame)
    assert not check.flag.is_set()


def test_hub_check_is_abstract():
    with pytest.raises(TypeError):
        HubCheck()


@pytest.mark.asyncio
async def test_upstream_expectation_completes():
    expectation = UpstreamExpectation(0, MAC_A, MAC_B, b"\x09\x08")
    expectation.on_packet(1, upstream_frame())
    assert not expectation.observed
    expectation.on_packet(0, upstream_frame())
    await await_with_timeout(expectation.wait(), 1.0)
    assert expectation.observed


@pytest.mark.asyncio
async def test_downstream_expectation_times_out_without_packet():
    expectation = DownstreamFromIdxExpectation(0)
    expectation.on_packet(0, upstream_frame())
    with pytest.raises(TimeoutError):
        await await_with_timeout(expectation.wait(), 0.05)
    expectation.on_packet(0, downstream_frame())
    assert expectation.observed


def test_mk_socketpairs(pairs):
    node, hub = pairs(3)
    assert len(node) == 3 and len(hub) == 3
    assert all(not s.getblocking() for s in node + hub)
    node[1].send(b"abc")
    assert hub[1].recv(16) == b"abc"


def test_hub_rejects_bad_delay_matrix(pairs):
    _, hub = pairs(2)
    with pytest.raises(ValueError):
        Hub(hub, [[0, 0]])
    with pytest.raises(ValueError):
        Hub(hub, [[0, -1], [0, 0]])


def test_hub_builder_returns_self(pairs):
    _, hub_socks = pairs(2)
    hub = Hub(hub_socks, [[0, 0], [0, 0]])
    check = DownstreamFromIdxCheck(idx=0)
    assert hub.add_check(check) is hub
    assert hub.with_checks([]) is hub


@pytest.mark.asyncio
async def test_hub_forwards_to_other_ports_and_runs_checks(pairs):
    node, hub_socks = pairs(3)
    flag_check = UpstreamMatchCheck(idx=0, source=MAC_A, destination=MAC_B)
    expectation = UpstreamExpectation(0, MAC_A, MAC_B)
    hub = Hub(hub_socks, [[0, 0, 20], [0, 0, 0], [0, 0, 0]]).with_checks([flag_check])
    hub.add_check(expectation)
    task = asyncio.create_task(hub.run())
    try:
        frame = upstream_frame()
        node[0].send(frame)
        got1 = await poll_until(lambda: try_recv(node[1]), 200, 5)
        got2 = await poll_until(lambda: try_recv(node[2]), 200, 5)
        await await_with_timeout(expectation.wait(), 1.0)
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    assert got1 == frame
    assert got2 == frame
    assert flag_check.flag.is_set()
    assert try_recv(node[0]) is None


@pytest.mark.asyncio
async def test_poll_until_returns_first_value():
    calls = []

    def check():
        calls.append(1)
        return "ready" if len(calls) == 3 else None

    assert await poll_until(check, 10, 1) == "ready"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_poll_until_gives_up():
    calls = []

    def check():
        calls.append(1)
        return None

    assert await poll_until(check, 4, 1) is None
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_await_with_timeout_returns_result():
    async def compute():
        await asyncio.sleep(0)
        return 42

    assert await await_with_timeout(compute(), 1.0) == 42


@pytest.mark.asyncio
async def test_await_with_timeout_raises():
    with pytest.raises(TimeoutError):
        await await_with_timeout(asyncio.sleep(1.0), 0.01)