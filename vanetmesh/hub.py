"""A broadcast hub that links nodes over socket pairs, with per-link delays and packet checks."""

from __future__ import annotations

import asyncio
import socket
import threading
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional, TypeVar

from vanetmesh.packet import Message
from vanetmesh.payloads import ToDownstream, ToUpstream

T = TypeVar("T")

RECV_SIZE = 2048
_POLL_INTERVAL = 0.0001


def _parse(data: bytes) -> Optional[Message]:
    try:
        return Message.from_bytes(data)
    except ValueError:
        return None


def _is_upstream_match(
    data: bytes, source: bytes, destination: bytes, expected_payload: Optional[bytes]
) -> bool:
    msg = _parse(data)
    if msg is None or not isinstance(msg.payload, ToUpstream):
        return False
    if msg.source != bytes(source) or msg.destination != bytes(destination):
        return False
    return expected_payload is None or msg.payload.data == bytes(expected_payload)


def _is_downstream(data: bytes) -> bool:
    msg = _parse(data)
    return msg is not None and isinstance(msg.payload, ToDownstream)


class HubCheck(ABC):
    """Inspects every packet the hub receives."""

    @abstractmethod
    def on_packet(self, from_idx: int, data: bytes) -> None:
        """Called with the index of the sending port and the raw packet."""


@dataclass
class UpstreamMatchCheck(HubCheck):
    """Sets `flag` when an upstream packet with the given addresses arrives on port `idx`.

    When `expected_payload` is given the packet's data must match it too.
    """

    idx: int
    source: bytes
    destination: bytes
    expected_payload: Optional[bytes] = None
    flag: threading.Event = field(default_factory=threading.Event)

    def on_packet(self, from_idx: int, data: bytes) -> None:
        if from_idx != self.idx:
            return
        if _is_upstream_match(data, self.source, self.destination, self.expected_payload):
            self.flag.set()


@dataclass
class DownstreamFromIdxCheck(HubCheck):
    """Sets `flag` when any downstream packet arrives on port `idx`."""

    idx: int
    flag: threading.Event = field(default_factory=threading.Event)

    def on_packet(self, from_idx: int, data: bytes) -> None:
        if from_idx == self.idx and _is_downstream(data):
            self.flag.set()


class UpstreamExpectation(HubCheck):
    """An awaitable check that completes once a matching upstream packet is seen."""

    def __init__(
        self,
        idx: int,
        source: bytes,
        destination: bytes,
        expected_payload: Optional[bytes] = None,
    ) -> None:
        self.idx = idx
        self.source = bytes(source)
        self.destination = bytes(destination)
        self.expected_payload = None if expected_payload is None else bytes(expected_payload)
        self._event = asyncio.Event()

    @property
    def observed(self) -> bool:
        """Whether the expected packet has been seen."""
        return self._event.is_set()

    def on_packet(self, from_idx: int, data: bytes) -> None:
        if from_idx != self.idx:
            return
        if _is_upstream_match(data, self.source, self.destination, self.expected_payload):
            self._event.set()

    async def wait(self) -> None:
        """Wait until the expected packet has been seen."""
        await self._event.wait()


class DownstreamFromIdxExpectation(HubCheck):
    """An awaitable check that completes once any downstream packet arrives on port `idx`."""

    def __init__(self, idx: int) -> None:
        self.idx = idx
        self._event = asyncio.Event()

    @property
    def observed(self) -> bool:
        """Whether a downstream packet has been seen."""
        return self._event.is_set()

    def on_packet(self, from_idx: int, data: bytes) -> None:
        if from_idx == self.idx and _is_downstream(data):
            self._event.set()

    async def wait(self) -> None:
        """Wait until a downstream packet has been seen."""
        await self._event.wait()


class Hub:
    """Forwards every packet received on one port to all other ports.

    `delays_ms[i][j]` is the delay applied to packets going from port i to port j.
    """

    def __init__(
        self,
        hub_socks: Sequence[socket.socket],
        delays_ms: Sequence[Sequence[int]],
        checks: Iterable[HubCheck] = (),
    ) -> None:
        self._socks = list(hub_socks)
        n = len(self._socks)
        if len(delays_ms) != n or any(len(row) != n for row in delays_ms):
            raise ValueError(f"delays must be a {n}x{n} matrix")
        if any(d < 0 for row in delays_ms for d in row):
            raise ValueError("delays must not be negative")
        self._delays = [list(row) for row in delays_ms]
        self._checks = list(checks)
        for sock in self._socks:
            sock.setblocking(False)

    def add_check(self, check: HubCheck) -> Hub:
        """Add a check invoked for every received packet."""
        self._checks.append(check)
        return self

    def with_checks(self, checks: Iterable[HubCheck]) -> Hub:
        """Replace all checks."""
        self._checks = list(checks)
        return self

    async def run(self) -> None:
        """Poll all ports and forward packets until cancelled."""
        deliveries: set[asyncio.Task[None]] = set()
        try:
            while True:
                for i, sock in enumerate(self._socks):
                    try:
                        data = sock.recv(RECV_SIZE)
                    except OSError:
                        continue
                    if not data:
                        continue
                    for check in self._checks:
                        check.on_packet(i, data)
                    for j, out in enumerate(self._socks):
                        if j == i:
                            continue
                        task = asyncio.create_task(
                            self._deliver(out, data, self._delays[i][j] / 1000.0)
                        )
                        deliveries.add(task)
                        task.add_done_callback(deliveries.discard)
                await asyncio.sleep(_POLL_INTERVAL)
        finally:
            for task in deliveries:
                task.cancel()

    @staticmethod
    async def _deliver(sock: socket.socket, data: bytes, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            sock.send(data)
        except OSError:
            pass


def mk_socketpairs(n: int) -> tuple[list[socket.socket], list[socket.socket]]:
    """Create `n` connected non-blocking Unix stream socket pairs: (node ends, hub ends)."""
    node_socks: list[socket.socket] = []
    hub_socks: list[socket.socket] = []
    try:
        for _ in range(n):
            a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
            node_socks.append(a)
            hub_socks.append(b)
            a.setblocking(False)
            b.setblocking(False)
    except OSError:
        for sock in node_socks + hub_socks:
            sock.close()
        raise
    return node_socks, hub_socks


async def poll_until(
    check: Callable[[], Optional[T]], attempts: int, delay_ms: float
) -> Optional[T]:
    """Call `check` up to `attempts` times, sleeping between calls, until it returns a value."""
    for _ in range(attempts):
        value = check()
        if value is not None:
            return value
        await asyncio.sleep(delay_ms / 1000.0)
    return None


async def await_with_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Await `awaitable`, raising TimeoutError after `timeout` seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise TimeoutError("timeout") from exc