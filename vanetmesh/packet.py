"""Framing of mesh messages: Ethernet-style header plus typed payload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from vanetmesh.payloads import (
    MAC_LEN,
    Heartbeat,
    HeartbeatReply,
    ParseError,
    ToDownstream,
    ToUpstream,
    control_to_parts,
    data_to_parts,
    parse_control,
    parse_data,
)

PROTOCOL_MARKER = b"\x30\x30"
HEADER_LEN = 2 * MAC_LEN + len(PROTOCOL_MARKER)

_CONTROL = 0
_DATA = 1

Payload = Union[Heartbeat, HeartbeatReply, ToUpstream, ToDownstream]


def parse_packet_type(data: bytes) -> Payload:
    """Parse a packet body: one class byte (control or data) and the payload."""
    data = bytes(data)
    if not data:
        raise ParseError("could not get next")
    kind, body = data[0], data[1:]
    if kind == _CONTROL:
        return parse_control(body)
    if kind == _DATA:
        return parse_data(body)
    raise ParseError(f"is not a valid packet type: {kind}")


def packet_type_to_parts(packet: Payload) -> list[bytes]:
    """Encode a payload with its class byte in front."""
    if isinstance(packet, (Heartbeat, HeartbeatReply)):
        return [bytes([_CONTROL]), *control_to_parts(packet)]
    if isinstance(packet, (ToUpstream, ToDownstream)):
        return [bytes([_DATA]), *data_to_parts(packet)]
    raise TypeError(f"not a packet payload: {type(packet).__name__}")


@dataclass(frozen=True)
class Message:
    """A whole frame: source and destination MAC plus its payload."""

    source: bytes
    destination: bytes
    payload: Payload

    def __post_init__(self) -> None:
        for name in ("source", "destination"):
            raw = bytes(getattr(self, name))
            if len(raw) != MAC_LEN:
                raise ValueError(f"{name} must be {MAC_LEN} bytes, got {len(raw)}")
            object.__setattr__(self, name, raw)

    @classmethod
    def from_bytes(cls, data: bytes) -> Message:
        """Parse a frame; raise ParseError if it is not of this protocol."""
        data = bytes(data)
        if data[2 * MAC_LEN : HEADER_LEN] != PROTOCOL_MARKER:
            raise ParseError("not from this protocol")
        return cls(
            source=data[MAC_LEN : 2 * MAC_LEN],
            destination=data[:MAC_LEN],
            payload=parse_packet_type(data[HEADER_LEN:]),
        )

    def to_parts(self) -> list[bytes]:
        """Encode the frame as the list of its fields."""
        return [
            self.destination,
            self.source,
            PROTOCOL_MARKER,
            *packet_type_to_parts(self.payload),
        ]

    def to_bytes(self) -> bytes:
        """Encode the frame as one byte string."""
        return b"".join(self.to_parts())