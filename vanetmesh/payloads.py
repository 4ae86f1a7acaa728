"""Control and data payloads carried inside mesh frames."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Union

MAC_LEN = 6
_DURATION_LEN = 16
_U32_LEN = 4

HEARTBEAT_LEN = _DURATION_LEN + 2 * _U32_LEN + MAC_LEN
HEARTBEAT_REPLY_LEN = HEARTBEAT_LEN + MAC_LEN

_HEARTBEAT = 0
_HEARTBEAT_REPLY = 1
_UPSTREAM = 0
_DOWNSTREAM = 1


class ParseError(ValueError):
    """Raised when a byte buffer does not hold a valid payload."""


def _mac(value: bytes, field: str) -> bytes:
    raw = bytes(value)
    if len(raw) != MAC_LEN:
        raise ValueError(f"{field} must be {MAC_LEN} bytes, got {len(raw)}")
    return raw


def _check_uint(value: int, bits: int, field: str) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{field} does not fit in {bits} unsigned bits: {value}")


def _field(data: bytes, start: int, end: int, what: str) -> bytes:
    if len(data) < end:
        raise ParseError(f"cannot get {what} bytes")
    return data[start:end]


def _u32(value: int) -> bytes:
    return value.to_bytes(_U32_LEN, "big")


@dataclass(frozen=True)
class Heartbeat:
    """Periodic beacon flooded from a roadside unit through the mesh."""

    duration_ms: int
    id: int
    source: bytes
    hops: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _mac(self.source, "source"))
        _check_uint(self.duration_ms, 8 * _DURATION_LEN, "duration_ms")
        _check_uint(self.id, 32, "id")
        _check_uint(self.hops, 32, "hops")

    @property
    def duration(self) -> timedelta:
        """The beacon's timestamp as a time delta."""
        return timedelta(milliseconds=self.duration_ms)

    @classmethod
    def from_bytes(cls, data: bytes) -> Heartbeat:
        """Parse a heartbeat body; trailing bytes are ignored."""
        data = bytes(data)
        source = _field(data, 24, 30, "source")
        hops = _field(data, 20, 24, "hops")
        ident = _field(data, 16, 20, "id")
        duration = _field(data, 0, 16, "duration")
        return cls(
            duration_ms=int.from_bytes(duration, "big"),
            id=int.from_bytes(ident, "big"),
            source=source,
            hops=int.from_bytes(hops, "big"),
        )

    def to_parts(self) -> list[bytes]:
        """Encode for forwarding: the hop count goes out incremented by one."""
        hops = self.hops + 1
        _check_uint(hops, 32, "hops")
        return [
            self.duration_ms.to_bytes(_DURATION_LEN, "big"),
            _u32(self.id),
            _u32(hops),
            self.source,
        ]


@dataclass(frozen=True)
class HeartbeatReply:
    """Answer to a heartbeat, naming the node that sent the answer."""

    duration_ms: int
    id: int
    hops: int
    source: bytes
    sender: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _mac(self.source, "source"))
        object.__setattr__(self, "sender", _mac(self.sender, "sender"))
        _check_uint(self.duration_ms, 8 * _DURATION_LEN, "duration_ms")
        _check_uint(self.id, 32, "id")
        _check_uint(self.hops, 32, "hops")

    @property
    def duration(self) -> timedelta:
        """The original beacon's timestamp as a time delta."""
        return timedelta(milliseconds=self.duration_ms)

    @classmethod
    def from_heartbeat(cls, heartbeat: Heartbeat, sender: bytes) -> HeartbeatReply:
        """Build a reply that echoes the heartbeat's fields."""
        return cls(
            duration_ms=heartbeat.duration_ms,
            id=heartbeat.id,
            hops=heartbeat.hops,
            source=heartbeat.source,
            sender=sender,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> HeartbeatReply:
        """Parse a heartbeat-reply body; trailing bytes are ignored."""
        data = bytes(data)
        sender = _field(data, 30, 36, "sender")
        source = _field(data, 24, 30, "source")
        hops = _field(data, 20, 24, "hops")
        ident = _field(data, 16, 20, "id")
        duration = _field(data, 0, 16, "duration")
        return cls(
            duration_ms=int.from_bytes(duration, "big"),
            id=int.from_bytes(ident, "big"),
            hops=int.from_bytes(hops, "big"),
            source=source,
            sender=sender,
        )

    def to_parts(self) -> list[bytes]:
        """Encode the reply unchanged."""
        return [
            self.duration_ms.to_bytes(_DURATION_LEN, "big"),
            _u32(self.id),
            _u32(self.hops),
            self.source,
            self.sender,
        ]


@dataclass(frozen=True)
class ToUpstream:
    """Data travelling from a node towards its roadside unit."""

    source: bytes
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _mac(self.source, "source"))
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_bytes(cls, data: bytes) -> ToUpstream:
        data = bytes(data)
        if len(data) < MAC_LEN:
            raise ParseError("cannot get members")
        return cls(source=data[:MAC_LEN], data=data[MAC_LEN:])

    def to_parts(self) -> list[bytes]:
        return [self.source, self.data]


@dataclass(frozen=True)
class ToDownstream:
    """Data travelling from a roadside unit towards a destination node."""

    source: bytes
    destination: bytes
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _mac(self.source, "source"))
        object.__setattr__(self, "destination", _mac(self.destination, "destination"))
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_bytes(cls, data: bytes) -> ToDownstream:
        data = bytes(data)
        if len(data) < 2 * MAC_LEN:
            raise ParseError("cannot get members")
        return cls(
            source=data[:MAC_LEN],
            destination=data[MAC_LEN : 2 * MAC_LEN],
            data=data[2 * MAC_LEN :],
        )

    def to_parts(self) -> list[bytes]:
        return [self.source, self.destination, self.data]


Control = Union[Heartbeat, HeartbeatReply]
Data = Union[ToUpstream, ToDownstream]


def parse_control(data: bytes) -> Control:
    """Parse a control payload: one kind byte followed by its body."""
    data = bytes(data)
    if not data:
        raise ParseError("could not get next")
    kind, body = data[0], data[1:]
    if kind == _HEARTBEAT:
        return Heartbeat.from_bytes(body)
    if kind == _HEARTBEAT_REPLY:
        return HeartbeatReply.from_bytes(body)
    raise ParseError(f"is not a valid control type: {kind}")


def control_to_parts(control: Control) -> list[bytes]:
    """Encode a control payload with its leading kind byte."""
    if isinstance(control, Heartbeat):
        return [bytes([_HEARTBEAT]), *control.to_parts()]
    if isinstance(control, HeartbeatReply):
        return [bytes([_HEARTBEAT_REPLY]), *control.to_parts()]
    raise TypeError(f"not a control payload: {type(control).__name__}")


def parse_data(data: bytes) -> Data:
    """Parse a data payload: one direction byte followed by its body."""
    data = bytes(data)
    if not data:
        raise ParseError("could not get next")
    kind, body = data[0], data[1:]
    if kind == _UPSTREAM:
        return ToUpstream.from_bytes(body)
    if kind == _DOWNSTREAM:
        return ToDownstream.from_bytes(body)
    raise ParseError(f"is not a valid data type: {kind}")


def data_to_parts(data: Data) -> list[bytes]:
    """Encode a data payload with its leading direction byte."""
    if isinstance(data, ToUpstream):
        return [bytes([_UPSTREAM]), *data.to_parts()]
    if isinstance(data, ToDownstream):
        return [bytes([_DOWNSTREAM]), *data.to_parts()]
    raise TypeError(f"not a data payload: {type(data).__name__}")