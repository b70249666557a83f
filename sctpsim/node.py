"""Per-endpoint connection state and its append-only protocol log."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sctpsim.packet import ConnectionState, Endpoint


class LogCategory(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    TRAFFIC = "traffic"


@dataclass(frozen=True)
class LogEntry:
    """Single protocol log record. ``timestamp`` is scheduler time in ms."""

    id: str
    timestamp: int
    message: str
    category: LogCategory = LogCategory.INFO


@dataclass
class NodeState:
    """
    Connection state of one endpoint.

    Parameters
    ----------
    role:
        Which side of the link this node is.
    initial_state / initial_seq:
        Values restored by `reset`. The client starts CLOSED, the server
        starts in LISTEN.

    Attributes
    ----------
    connection_state:
        Current `ConnectionState`.
    seq:
        Next sequence number this node will put on a sequence-consuming
        packet. Only ever increases within a session lifetime.
    last_ack_received:
        Next sequence number expected from the peer (the ack value this node
        puts on bare ACKs).
    session_id:
        Server-allocated session identifier; `None` outside a session.
    log:
        Append-only list of `LogEntry`.
    """

    role: Endpoint
    initial_state: ConnectionState
    initial_seq: int
    connection_state: ConnectionState = field(init=False)
    seq: int = field(init=False)
    last_ack_received: int = field(default=0, init=False)
    session_id: Optional[str] = field(default=None, init=False)
    log: List[LogEntry] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.connection_state = self.initial_state
        self.seq = self.initial_seq

    def close(self) -> None:
        """Move to CLOSED and forget the session."""
        self.connection_state = ConnectionState.CLOSED
        self.session_id = None

    def reset(self) -> None:
        """Restore the initial state and counters; the log is kept."""
        self.connection_state = self.initial_state
        self.seq = self.initial_seq
        self.last_ack_received = 0
        self.session_id = None

    def brief_state(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "connectionState": self.connection_state.value,
            "seq": self.seq,
            "lastAckReceived": self.last_ack_received,
            "sessionId": self.session_id,
            "logCount": len(self.log),
        }
