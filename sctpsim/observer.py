"""Log sinks: push-only observers of the protocol log."""

import logging
from typing import List, Optional, Tuple

from sctpsim.node import LogCategory, LogEntry
from sctpsim.packet import Endpoint

_LEVELS = {
    LogCategory.INFO: logging.INFO,
    LogCategory.SUCCESS: logging.INFO,
    LogCategory.TRAFFIC: logging.INFO,
    LogCategory.WARNING: logging.WARNING,
    LogCategory.ERROR: logging.ERROR,
}


class MemorySink:
    """Records every entry it receives, in order."""

    def __init__(self) -> None:
        self.entries: List[Tuple[Endpoint, LogEntry]] = []

    def on_log_entry(self, role: Endpoint, entry: LogEntry) -> None:
        self.entries.append((role, entry))

    def messages(self, role: Endpoint) -> List[str]:
        return [entry.message for r, entry in self.entries if r is role]


class LoggerSink:
    """Forwards protocol log entries to the standard `logging` module."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("sctpsim.protocol")

    def on_log_entry(self, role: Endpoint, entry: LogEntry) -> None:
        self.logger.log(
            _LEVELS[entry.category],
            "[%s @ %dms] %s",
            role.value,
            entry.timestamp,
            entry.message,
        )
