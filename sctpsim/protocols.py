"""Interfaces (Protocols) that decouple the protocol engine from timers and I/O.

The engine depends only on these minimal abstractions, so the deterministic
simulator, the asyncio runtime and test fakes are interchangeable.
"""

from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from sctpsim.node import LogEntry
    from sctpsim.packet import ConnectionState, Endpoint, Packet


class SchedulerCancel(Protocol):
    """Callable returned by `Scheduler.call_later` to cancel a pending event."""

    def __call__(self) -> None:
        raise NotImplementedError


class Scheduler(Protocol):
    """Timer source used by the transit scheduler and the engine."""

    def call_later(self, ms: int, cb: Callable[[], None]) -> SchedulerCancel:
        """Schedule callback `cb` to run in `ms` milliseconds."""
        raise NotImplementedError

    def now_ms(self) -> int:
        """Return current time in milliseconds for this scheduler domain."""
        raise NotImplementedError


class LogSink(Protocol):
    """Push-only observer of protocol log entries.

    Called once per entry, in the order the engine produced them. Sinks must
    not call back into the engine.
    """

    def on_log_entry(self, role: "Endpoint", entry: "LogEntry") -> None:
        raise NotImplementedError


class Annotator(Protocol):
    """Best-effort natural-language commentary on packets.

    Implementations must never raise: failures are reduced to a fallback
    string.
    """

    async def analyze(self, packet: "Packet", state: "ConnectionState") -> str:
        """Explain what `packet` does given the sender's connection `state`."""
        raise NotImplementedError

    async def generate_payload(self) -> str:
        """Produce a short payload string for a DATA packet."""
        raise NotImplementedError
