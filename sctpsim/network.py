"""Simulated transit: delayed, droppable, at-most-once packet delivery.

Key ideas:

- Every packet handed to `TransitScheduler.enqueue` sits in the in-flight
  table until its deadline (a fixed latency, optionally rewritten by delay
  rules such as `jitter`).
- The in-flight table is the single source of truth. Whichever of the
  scheduled delivery or an explicit `drop` removes a packet id first wins;
  the other finds it absent and does nothing.
- The delivery timer carries only the packet id, never a snapshot of node
  state; the arrival handler reads state when it runs.
"""

import logging
import random
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from sctpsim.packet import Packet
from sctpsim.protocols import Scheduler, SchedulerCancel

logger = logging.getLogger(__name__)

DelayRule = Callable[[Packet, int], int]


class TransitScheduler:
    """Holds packets in flight and delivers each of them at most once.

    - `register(handler)`: install the arrival handler packets are delivered to.
    - `add_rule(rule)`: install a delay rule, called with (packet, delay_ms)
      and returning the new delay.
    - `enqueue(packet)`: put a packet in flight.
    - `drop(packet_id)`: lose a packet that has not been delivered yet.
    - `on_loss`: optional listener called with the dropped packet (its
      `dropped` field set) after a successful drop.
    """

    def __init__(self, scheduler: Scheduler, latency_ms: int = 3000):
        if latency_ms < 0:
            raise ValueError(f"latency must be non-negative, got {latency_ms}")
        self.scheduler = scheduler
        self.latency_ms = latency_ms
        self.in_flight: Dict[str, Packet] = {}
        self.deadlines: Dict[str, int] = {}
        self.rules: List[DelayRule] = []
        self.handler: Optional[Callable[[Packet], None]] = None
        self.on_loss: Optional[Callable[[Packet], None]] = None
        self._cancels: Dict[str, SchedulerCancel] = {}
        self.stats = {
            "enqueued": 0,
            "delivered": 0,
            "dropped": 0,
        }

    def register(self, handler: Callable[[Packet], None]) -> None:
        self.handler = handler

    def add_rule(self, rule: DelayRule) -> None:
        self.rules.append(rule)

    def enqueue(self, packet: Packet) -> None:
        """Register `packet` as in flight and schedule its delivery."""
        if packet.id in self.in_flight:
            raise ValueError(f"packet {packet.id} is already in flight")
        delay_ms = self.latency_ms
        for rule in self.rules:
            delay_ms = max(0, rule(packet, delay_ms))
        self.in_flight[packet.id] = packet
        self.deadlines[packet.id] = self.scheduler.now_ms() + delay_ms
        self.stats["enqueued"] += 1

        def deliver(packet_id=packet.id):
            self.deliver(packet_id)

        self._cancels[packet.id] = self.scheduler.call_later(delay_ms, deliver)

    def drop(self, packet_id: str) -> bool:
        """Lose `packet_id` in transit.

        Returns False when the packet is unknown or already delivered; that is
        a no-op, not an error.
        """
        packet = self._take(packet_id)
        if packet is None:
            return False
        self.stats["dropped"] += 1
        logger.debug("dropped %s %s in transit", packet.flag, packet.id)
        if self.on_loss is not None:
            self.on_loss(replace(packet, dropped=True))
        return True

    def deliver(self, packet_id: str) -> bool:
        """Deliver `packet_id` to the arrival handler if it is still in flight."""
        packet = self._take(packet_id)
        if packet is None:
            return False
        self.stats["delivered"] += 1
        if self.handler is not None:
            self.handler(packet)
        else:
            logger.warning("no arrival handler registered; %s discarded", packet.id)
        return True

    def clear(self) -> List[Packet]:
        """Silently discard everything in flight and return what was discarded."""
        discarded = []
        for packet_id in list(self.in_flight):
            packet = self._take(packet_id)
            if packet is not None:
                discarded.append(packet)
        return discarded

    def packets(self) -> List[Packet]:
        """In-flight packets ordered by deadline, for presentation only."""
        return sorted(self.in_flight.values(), key=lambda p: self.deadlines[p.id])

    def _take(self, packet_id: str) -> Optional[Packet]:
        packet = self.in_flight.pop(packet_id, None)
        if packet is None:
            return None
        self.deadlines.pop(packet_id, None)
        cancel = self._cancels.pop(packet_id, None)
        if cancel is not None:
            cancel()
        return packet


def jitter(min_ms: int = 0, max_ms: int = 500, seed: Optional[int] = None) -> DelayRule:
    """Return a rule that adds a random delay in [min_ms, max_ms]."""
    rng = random.Random(seed)

    def _rule(packet: Packet, delay_ms: int) -> int:
        return delay_ms + rng.randint(min_ms, max_ms)

    return _rule
