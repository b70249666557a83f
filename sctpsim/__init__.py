"""Simulator for a small connection-oriented transport protocol.

A three-way handshake, acknowledged data transfer and unilateral teardown,
running over a simulated network with fixed transit latency and
operator-triggered packet loss.
"""

from .config import SimConfig
from .engine import ProtocolEngine
from .packet import ConnectionState, Endpoint, Packet, PacketKind

__all__ = [
    "ConnectionState",
    "Endpoint",
    "Packet",
    "PacketKind",
    "ProtocolEngine",
    "SimConfig",
]
