"""Protocol engine: owns both endpoints and every packet in flight.

The engine is the only writer of the two `NodeState` objects. All of its
entry points (user actions and packet arrivals) run on one thread: the
caller's thread with `SimScheduler`, or the asyncio loop thread with
`LoopScheduler`. Arrival callbacks carry only a packet id and read the
receiving node when they fire.

User actions:
- `connect()`, `disconnect()`, `abort()`: client-side session control.
- `send_data(payload)` / `send_generated_data()`: client DATA.
- `listen()`: reopen the server after teardown.
- `drop_packet(packet_id)`: lose a packet in transit.
- `reset()`: start a new session lifetime.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from sctpsim.algorithms.handshake import on_packet
from sctpsim.annotation import StubAnnotator
from sctpsim.config import SimConfig
from sctpsim.network import TransitScheduler
from sctpsim.node import LogCategory, LogEntry, NodeState
from sctpsim.packet import ConnectionState, Endpoint, Packet, PacketKind
from sctpsim.protocols import Annotator, LogSink, Scheduler

logger = logging.getLogger(__name__)

ANNOTATED_FLAGS = frozenset({PacketKind.SYN, PacketKind.SYN_ACK})


def new_packet_id() -> str:
    return uuid.uuid4().hex[:10]


def new_session_id() -> str:
    return "SES-" + uuid.uuid4().hex[:6].upper()


@dataclass(frozen=True)
class ProtocolViolation:
    """Arrival with no defined transition, recorded in strict mode."""

    role: Endpoint
    packet: Packet
    state: ConnectionState


class ProtocolEngine:
    """
    Wires the transition function to a transit scheduler and two endpoints.

    Parameters:
    - scheduler: timer source (`SimScheduler` or `LoopScheduler`).
    - config: latencies, initial sequence numbers and strict mode.
    - sinks: log observers notified of every protocol log entry.
    - annotator: packet commentary; defaults to a stub.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        config: Optional[SimConfig] = None,
        sinks: Iterable[LogSink] = (),
        annotator: Optional[Annotator] = None,
    ):
        self.config = config or SimConfig()
        self.scheduler = scheduler
        self.sinks: List[LogSink] = list(sinks)
        self.annotator: Annotator = annotator or StubAnnotator()
        self.client = NodeState(
            Endpoint.CLIENT, ConnectionState.CLOSED, self.config.client_initial_seq
        )
        self.server = NodeState(
            Endpoint.SERVER, ConnectionState.LISTEN, self.config.server_initial_seq
        )
        self.transit = TransitScheduler(scheduler, latency_ms=self.config.latency_ms)
        self.transit.register(self._on_arrival)
        self.transit.on_loss = self._on_loss
        self.violations: List[ProtocolViolation] = []
        self.analysis: Optional[str] = None
        self._annotation_tasks: Set[asyncio.Task] = set()

    def node(self, role: Endpoint) -> NodeState:
        return self.client if role is Endpoint.CLIENT else self.server

    # User actions ---------------------------------------------------------

    def connect(self) -> Optional[Packet]:
        """Open the connection: CLOSED -> SYN_SENT and send SYN."""
        if self.client.connection_state is not ConnectionState.CLOSED:
            return self._reject("connect", self.client)
        self.client.connection_state = ConnectionState.SYN_SENT
        return self._send(self.client, PacketKind.SYN)

    def disconnect(self) -> Optional[Packet]:
        """Send FIN and close at once; there is no FIN-ACK exchange."""
        if self.client.connection_state is ConnectionState.CLOSED:
            return self._reject("disconnect", self.client)
        packet = self._send(self.client, PacketKind.FIN)
        self.client.close()
        return packet

    def abort(self) -> Optional[Packet]:
        """Send RST and close at once."""
        if self.client.connection_state is ConnectionState.CLOSED:
            return self._reject("abort", self.client)
        packet = self._send(self.client, PacketKind.RST)
        self.client.close()
        self._log(self.client, "Connection aborted.", LogCategory.WARNING)
        return packet

    def send_data(self, payload: str) -> Optional[Packet]:
        if self.client.connection_state is not ConnectionState.ESTABLISHED:
            return self._reject("send_data", self.client)
        return self._send(self.client, PacketKind.DATA, payload=payload)

    async def send_generated_data(self) -> Optional[Packet]:
        """Ask the annotator for a payload, then send it as DATA.

        The client state is checked again after the await, since the
        connection may have changed meanwhile.
        """
        if self.client.connection_state is not ConnectionState.ESTABLISHED:
            return self._reject("send_data", self.client)
        payload = await self.annotator.generate_payload()
        return self.send_data(payload)

    def listen(self) -> bool:
        """Reopen a CLOSED server for a new handshake."""
        if self.server.connection_state is not ConnectionState.CLOSED:
            self._reject("listen", self.server)
            return False
        self.server.connection_state = ConnectionState.LISTEN
        self._log(self.server, "Listening for connections.", LogCategory.INFO)
        return True

    def drop_packet(self, packet_id: str) -> bool:
        return self.transit.drop(packet_id)

    def reset(self) -> None:
        """Discard traffic in flight and restore both endpoints."""
        discarded = self.transit.clear()
        for node in (self.client, self.server):
            node.reset()
            self._log(node, "Simulation reset.", LogCategory.INFO)
        for task in list(self._annotation_tasks):
            task.cancel()
        self._annotation_tasks.clear()
        self.violations.clear()
        self.analysis = None
        logger.debug("reset discarded %d in-flight packets", len(discarded))

    # Presentation ---------------------------------------------------------

    def in_flight(self) -> List[Packet]:
        return self.transit.packets()

    def brief_state(self) -> Dict[str, Any]:
        return {
            "client": self.client.brief_state(),
            "server": self.server.brief_state(),
            "inFlight": [p.brief() for p in self.in_flight()],
            "analysis": self.analysis,
            "stats": dict(self.transit.stats),
        }

    # Internals ------------------------------------------------------------

    def _send(self, node: NodeState, flag: PacketKind, payload: str = "", ack: Optional[int] = None) -> Packet:
        """Build a packet from the node's current counters and put it in flight.

        Sequence-consuming flags carry the pre-increment seq.
        """
        packet = Packet(
            id=new_packet_id(),
            source=node.role,
            destination=node.role.peer,
            flag=flag,
            seq=node.seq,
            ack=node.last_ack_received if ack is None else ack,
            payload=payload,
            session_id=node.session_id,
            created_at=self.scheduler.now_ms(),
        )
        if flag.consumes_seq:
            node.seq += 1
        self._log(node, f"Sent {flag} (Seq={packet.seq} Ack={packet.ack})", LogCategory.TRAFFIC)
        if flag in ANNOTATED_FLAGS:
            self._annotate(packet, node.connection_state)
        self.transit.enqueue(packet)
        return packet

    def _on_arrival(self, packet: Packet) -> None:
        node = self.node(packet.destination)
        self._log(node, f"Received {packet.flag} (Seq={packet.seq} Ack={packet.ack})", LogCategory.TRAFFIC)
        state = node.connection_state
        transition = on_packet(node, packet, new_session_id)
        for message, category in transition.notes:
            self._log(node, message, category)
        if not transition.handled:
            self._on_mismatch(node, packet, state)
        for reply in transition.replies:
            self._send(node, reply.flag, ack=reply.ack)

    def _on_mismatch(self, node: NodeState, packet: Packet, state: ConnectionState) -> None:
        if self.config.strict:
            self.violations.append(ProtocolViolation(node.role, packet, state))
            self._log(node, f"Protocol violation: {packet.flag} in state {state}", LogCategory.ERROR)
        else:
            self._log(node, f"Ignored {packet.flag} in state {state}", LogCategory.WARNING)

    def _on_loss(self, packet: Packet) -> None:
        self._log(self.node(packet.source), f"Packet {packet.flag} lost/dropped in transit!", LogCategory.ERROR)

    def _reject(self, action: str, node: NodeState) -> Optional[Packet]:
        logger.debug("%s rejected: %s is %s", action, node.role.value, node.connection_state)
        return None

    def _log(self, node: NodeState, message: str, category: LogCategory) -> None:
        entry = LogEntry(
            id=uuid.uuid4().hex[:8],
            timestamp=self.scheduler.now_ms(),
            message=message,
            category=category,
        )
        node.log.append(entry)
        for sink in self.sinks:
            sink.on_log_entry(node.role, entry)

    def _annotate(self, packet: Packet, state: ConnectionState) -> None:
        """Fire-and-forget analysis of `packet`; never awaited by the caller."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop; skipping analysis of %s", packet.id)
            return
        task = loop.create_task(self._run_analysis(packet, state))
        self._annotation_tasks.add(task)
        task.add_done_callback(self._annotation_tasks.discard)

    async def _run_analysis(self, packet: Packet, state: ConnectionState) -> None:
        try:
            self.analysis = await self.annotator.analyze(packet, state)
        except Exception:
            # Annotators should not raise; a broken one must not take the loop down.
            logger.exception("annotator raised while analyzing %s", packet.id)
