"""Unit tests for the transition function, without scheduler or engine."""

from typing import List

import pytest

from sctpsim.algorithms.handshake import Reply, on_packet
from sctpsim.node import LogCategory, NodeState
from sctpsim.packet import ConnectionState, Endpoint, Packet, PacketKind


class SessionIds:
    """Counts how many sessions the server allocated."""

    def __init__(self) -> None:
        self.issued: List[str] = []

    def __call__(self) -> str:
        sid = f"SES-T{len(self.issued)}"
        self.issued.append(sid)
        return sid


def _node(role: Endpoint, state: ConnectionState, seq: int) -> NodeState:
    initial = ConnectionState.CLOSED if role is Endpoint.CLIENT else ConnectionState.LISTEN
    node = NodeState(role, initial, seq)
    node.connection_state = state
    return node


def _to(role: Endpoint, flag: PacketKind, seq: int = 0, ack: int = 0, session_id=None) -> Packet:
    return Packet(
        id="pkt",
        source=role.peer,
        destination=role,
        flag=flag,
        seq=seq,
        ack=ack,
        session_id=session_id,
    )


def test_listen_server_accepts_syn():
    server = _node(Endpoint.SERVER, ConnectionState.LISTEN, 5000)
    sessions = SessionIds()
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.SYN, seq=100), sessions)

    assert t.handled
    assert server.connection_state is ConnectionState.SYN_RCVD
    assert server.last_ack_received == 101
    assert server.session_id == "SES-T0"
    assert t.replies == [Reply(PacketKind.SYN_ACK, 101)]
    # The sender stamps and advances seq, not the transition.
    assert server.seq == 5000
    assert t.notes[0][1] is LogCategory.SUCCESS


def test_ack_of_syn_ack_completes_handshake():
    server = _node(Endpoint.SERVER, ConnectionState.SYN_RCVD, 5001)
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.ACK, seq=101, ack=5001), SessionIds())
    assert t.handled
    assert t.replies == []
    assert server.connection_state is ConnectionState.ESTABLISHED


def test_ack_with_wrong_value_is_ignored():
    server = _node(Endpoint.SERVER, ConnectionState.SYN_RCVD, 5001)
    server.session_id = "SES-X"
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.ACK, seq=101, ack=5000), SessionIds())
    assert not t.handled
    assert server.connection_state is ConnectionState.SYN_RCVD
    assert server.session_id == "SES-X"
    assert t.notes == []


@pytest.mark.parametrize("seq", [101, 7, 99999])
def test_data_is_acknowledged_with_next_expected_seq(seq):
    server = _node(Endpoint.SERVER, ConnectionState.ESTABLISHED, 5001)
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.DATA, seq=seq), SessionIds())
    assert server.last_ack_received == seq + 1
    assert t.replies == [Reply(PacketKind.ACK, seq + 1)]
    assert server.connection_state is ConnectionState.ESTABLISHED


def test_fin_closes_server():
    server = _node(Endpoint.SERVER, ConnectionState.ESTABLISHED, 5001)
    server.session_id = "SES-X"
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.FIN, seq=102), SessionIds())
    assert t.handled
    assert t.replies == []
    assert server.connection_state is ConnectionState.CLOSED
    assert server.session_id is None
    assert server.last_ack_received == 103


@pytest.mark.parametrize("state", list(ConnectionState))
def test_rst_resets_server_from_any_state(state):
    server = _node(Endpoint.SERVER, state, 5001)
    server.session_id = "SES-X"
    server.last_ack_received = 102
    t = on_packet(server, _to(Endpoint.SERVER, PacketKind.RST, seq=102), SessionIds())
    assert t.handled
    assert server.connection_state is ConnectionState.CLOSED
    assert server.session_id is None
    assert server.last_ack_received == 0
    assert server.seq == 5001


@pytest.mark.parametrize(
    "state, flag",
    [
        (ConnectionState.LISTEN, PacketKind.ACK),
        (ConnectionState.LISTEN, PacketKind.DATA),
        (ConnectionState.LISTEN, PacketKind.FIN),
        (ConnectionState.SYN_RCVD, PacketKind.SYN),
        (ConnectionState.SYN_RCVD, PacketKind.DATA),
        (ConnectionState.ESTABLISHED, PacketKind.SYN),
        (ConnectionState.CLOSED, PacketKind.SYN),
        (ConnectionState.CLOSED, PacketKind.DATA),
    ],
)
def test_server_ignores_undefined_combinations(state, flag):
    server = _node(Endpoint.SERVER, state, 5000)
    sessions = SessionIds()
    t = on_packet(server, _to(Endpoint.SERVER, flag, seq=100), sessions)
    assert not t.handled
    assert t.replies == []
    assert server.connection_state is state
    assert server.last_ack_received == 0
    assert sessions.issued == []


def test_client_adopts_session_from_syn_ack():
    client = _node(Endpoint.CLIENT, ConnectionState.SYN_SENT, 101)
    t = on_packet(
        client,
        _to(Endpoint.CLIENT, PacketKind.SYN_ACK, seq=5000, ack=101, session_id="SES-42"),
        SessionIds(),
    )
    assert client.connection_state is ConnectionState.ESTABLISHED
    assert client.last_ack_received == 5001
    assert client.session_id == "SES-42"
    assert t.replies == [Reply(PacketKind.ACK, 5001)]


def test_client_notes_acknowledged_data():
    client = _node(Endpoint.CLIENT, ConnectionState.ESTABLISHED, 102)
    t = on_packet(client, _to(Endpoint.CLIENT, PacketKind.ACK, seq=5001, ack=102), SessionIds())
    assert t.handled
    assert t.replies == []
    assert client.connection_state is ConnectionState.ESTABLISHED
    assert client.last_ack_received == 0


@pytest.mark.parametrize(
    "state, flag",
    [
        (ConnectionState.CLOSED, PacketKind.SYN_ACK),
        (ConnectionState.ESTABLISHED, PacketKind.SYN_ACK),
        (ConnectionState.SYN_SENT, PacketKind.ACK),
        (ConnectionState.SYN_SENT, PacketKind.RST),
        (ConnectionState.ESTABLISHED, PacketKind.RST),
        (ConnectionState.ESTABLISHED, PacketKind.FIN),
    ],
)
def test_client_ignores_everything_else(state, flag):
    client = _node(Endpoint.CLIENT, state, 101)
    t = on_packet(client, _to(Endpoint.CLIENT, flag, seq=5000), SessionIds())
    assert not t.handled
    assert client.connection_state is state


def test_misaddressed_packet_is_rejected():
    client = _node(Endpoint.CLIENT, ConnectionState.SYN_SENT, 101)
    with pytest.raises(ValueError):
        on_packet(client, _to(Endpoint.SERVER, PacketKind.SYN_ACK), SessionIds())
