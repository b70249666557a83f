"""Packet model for the simulated transport protocol.

Packets are structured in-memory records, never serialized to bytes. A packet
is immutable once created; the transit scheduler owns it while it is in
flight and discards it after delivery or drop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Endpoint(str, Enum):
    """One of the two participants of the point-to-point protocol."""

    CLIENT = "CLIENT"
    SERVER = "SERVER"

    @property
    def peer(self) -> "Endpoint":
        """Return the endpoint on the other side of the link."""
        return Endpoint.SERVER if self is Endpoint.CLIENT else Endpoint.CLIENT


class PacketKind(str, Enum):
    """
    Control flag carried by a packet.

    ``SYN_ACK`` is its own flag, not ``SYN | ACK``; the state machine treats it
    as a separate trigger.
    """

    NONE = "NONE"
    SYN = "SYN"
    ACK = "ACK"
    SYN_ACK = "SYN-ACK"
    FIN = "FIN"
    RST = "RST"
    DATA = "DATA"

    @property
    def consumes_seq(self) -> bool:
        """Whether sending this flag advances the sender's sequence counter."""
        return self in _SEQ_CONSUMING

    def __str__(self) -> str:
        return self.value


_SEQ_CONSUMING = frozenset(
    {PacketKind.SYN, PacketKind.SYN_ACK, PacketKind.FIN, PacketKind.DATA}
)


class ConnectionState(str, Enum):
    """Connection state owned by each endpoint."""

    CLOSED = "CLOSED"
    LISTEN = "LISTEN"
    SYN_SENT = "SYN_SENT"
    SYN_RCVD = "SYN_RCVD"
    ESTABLISHED = "ESTABLISHED"
    FIN_WAIT = "FIN_WAIT"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Packet:
    """
    A unit of protocol traffic.

    ``id`` identifies this packet instance, not the logical message: a reply
    always gets a fresh id. ``created_at`` is scheduler time in milliseconds.
    ``dropped`` is only ever set on the copy handed to loss listeners.
    """

    id: str
    source: Endpoint
    destination: Endpoint
    flag: PacketKind
    seq: int
    ack: int
    payload: str = ""
    session_id: Optional[str] = None
    created_at: int = 0
    dropped: bool = False

    def brief(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "destination": self.destination.value,
            "flag": self.flag.value,
            "seq": self.seq,
            "ack": self.ack,
            "payload": self.payload,
            "sessionId": self.session_id,
            "createdAt": self.created_at,
            "dropped": self.dropped,
        }
