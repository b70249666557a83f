"""Transition function of the connection-oriented transport protocol."""

from .handshake import Reply, Transition, on_packet

__all__ = [
    "Reply",
    "Transition",
    "on_packet",
]
