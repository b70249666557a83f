"""Handshake, data and teardown transitions for both endpoints.

The protocol is a simplified TCP-like exchange:

* Handshake: client ``SYN`` -> server ``SYN-ACK`` -> client ``ACK``.
* Data: client ``DATA`` -> server ``ACK``.
* Teardown: client ``FIN`` (unilateral, no FIN-ACK) or ``RST``.

`on_packet` is the whole state machine. It mutates the receiving
`NodeState` in place and describes, but does not send, the replies and log
notes that result. Sending is the engine's job: it stamps replies with the
receiver's counters as they are *after* the transition, which is what makes
the server's SYN-ACK carry ``seq = server.seq`` and the final ACK guard
``packet.ack == server.seq`` line up.

Any flag/state combination without a row in the tables below is ignored.
No RST is generated on a protocol violation.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from sctpsim.node import LogCategory, NodeState
from sctpsim.packet import ConnectionState, Endpoint, Packet, PacketKind


@dataclass(frozen=True)
class Reply:
    """
    Packet the receiving node must send back.

    Parameters
    ----------
    flag:
        Flag of the reply.
    ack:
        Acknowledgment value, always "next expected sequence number" of the
        peer. The reply's ``seq`` is taken from the node when it is sent.
    """

    flag: PacketKind
    ack: int


@dataclass
class Transition:
    """
    Outcome of processing one arriving packet.

    Attributes
    ----------
    handled:
        False when the flag/state combination has no defined transition. The
        node is then left untouched.
    replies:
        Replies to send, in order.
    notes:
        ``(message, category)`` log entries for the receiving node, in order.
    """

    handled: bool = True
    replies: List[Reply] = field(default_factory=list)
    notes: List[Tuple[str, LogCategory]] = field(default_factory=list)


SessionFactory = Callable[[], str]
Handler = Callable[[NodeState, Packet, SessionFactory], Transition]


def on_packet(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    """
    Apply `packet` to `node` and return what has to happen next.

    Parameters
    ----------
    node:
        The receiving endpoint, read at delivery time.
    packet:
        The arriving packet; its destination must be `node.role`.
    new_session_id:
        Called once by the server when it accepts a SYN.
    """
    if packet.destination is not node.role:
        raise ValueError(
            f"packet for {packet.destination.value} delivered to {node.role.value}"
        )
    if node.role is Endpoint.SERVER:
        # RST is accepted in every state.
        if packet.flag is PacketKind.RST:
            return _server_reset(node, packet, new_session_id)
        table = _SERVER_TRANSITIONS
    else:
        table = _CLIENT_TRANSITIONS
    handler = table.get((node.connection_state, packet.flag))
    if handler is None:
        return Transition(handled=False)
    return handler(node, packet, new_session_id)


# Server ------------------------------------------------------------------


def _server_accept_syn(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    session_id = new_session_id()
    node.connection_state = ConnectionState.SYN_RCVD
    node.session_id = session_id
    node.last_ack_received = packet.seq + 1
    return Transition(
        replies=[Reply(PacketKind.SYN_ACK, packet.seq + 1)],
        notes=[(f"SYN valid. Allocating session {session_id}.", LogCategory.SUCCESS)],
    )


def _server_complete_handshake(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    # node.seq was advanced when the SYN-ACK went out, so a correct ACK
    # acknowledges exactly that value.
    if packet.ack != node.seq:
        return Transition(handled=False)
    node.connection_state = ConnectionState.ESTABLISHED
    return Transition(notes=[("Handshake completed. Connection ESTABLISHED.", LogCategory.SUCCESS)])


def _server_receive_data(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    node.last_ack_received = packet.seq + 1
    return Transition(
        replies=[Reply(PacketKind.ACK, node.last_ack_received)],
        notes=[(f"Data processed: {packet.payload}", LogCategory.SUCCESS)],
    )


def _server_receive_fin(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    # FIN consumes a sequence number like DATA does.
    node.last_ack_received = packet.seq + 1
    node.close()
    return Transition(notes=[("FIN received. Closing connection.", LogCategory.WARNING)])


def _server_reset(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    # seq is left alone: it never decreases within a session lifetime.
    node.close()
    node.last_ack_received = 0
    return Transition(notes=[("RST received. Connection reset.", LogCategory.WARNING)])


_SERVER_TRANSITIONS: Dict[Tuple[ConnectionState, PacketKind], Handler] = {
    (ConnectionState.LISTEN, PacketKind.SYN): _server_accept_syn,
    (ConnectionState.SYN_RCVD, PacketKind.ACK): _server_complete_handshake,
    (ConnectionState.ESTABLISHED, PacketKind.DATA): _server_receive_data,
    (ConnectionState.ESTABLISHED, PacketKind.FIN): _server_receive_fin,
}


# Client ------------------------------------------------------------------


def _client_accept_syn_ack(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    node.connection_state = ConnectionState.ESTABLISHED
    node.last_ack_received = packet.seq + 1
    node.session_id = packet.session_id
    return Transition(
        replies=[Reply(PacketKind.ACK, packet.seq + 1)],
        notes=[
            (
                f"Server accepted. Session: {packet.session_id}. Sending final ACK.",
                LogCategory.SUCCESS,
            )
        ],
    )


def _client_data_acked(node: NodeState, packet: Packet, new_session_id: SessionFactory) -> Transition:
    return Transition(notes=[("Data/Packet acknowledged by server.", LogCategory.SUCCESS)])


_CLIENT_TRANSITIONS: Dict[Tuple[ConnectionState, PacketKind], Handler] = {
    (ConnectionState.SYN_SENT, PacketKind.SYN_ACK): _client_accept_syn_ack,
    (ConnectionState.ESTABLISHED, PacketKind.ACK): _client_data_acked,
}
