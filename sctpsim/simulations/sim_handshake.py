"""Scripted sessions on the deterministic scheduler.

Runs connect, a few DATA packets and disconnect end to end, acting as the
operator that drops packets in transit. Run it with
``python -m sctpsim.simulations.sim_handshake``.
"""

from typing import Iterable, Optional

from sctpsim import network, scheduler
from sctpsim.config import SimConfig
from sctpsim.engine import ProtocolEngine
from sctpsim.observer import MemorySink
from sctpsim.packet import PacketKind


class SimHandshake:
    """
    Connect, send a few DATA packets, then disconnect, on the deterministic
    scheduler. Acting as the operator, the simulation drops every in-flight
    packet whose flag is in `drop_flags`.
    """

    def __init__(
        self,
        latency_ms=3000,
        num_messages=3,
        message_delay=1000,
        drop_flags: Iterable[PacketKind] = (),
        jitter_ms=0,
        random_seed: Optional[int] = None,
        strict=False,
    ):
        self.params = {
            "latency_ms": latency_ms,
            "num_messages": num_messages,
            "message_delay": message_delay,
            "drop_flags": frozenset(drop_flags),
            "jitter_ms": jitter_ms,
            "random_seed": random_seed,
        }

        self.clock = scheduler.SimClock()
        self.scheduler = scheduler.SimScheduler(self.clock)
        self.sink = MemorySink()
        self.engine = ProtocolEngine(
            self.scheduler,
            config=SimConfig(latency_ms=latency_ms, strict=strict),
            sinks=[self.sink],
        )
        if jitter_ms:
            self.engine.transit.add_rule(network.jitter(0, jitter_ms, seed=random_seed))
        self.dropped = []
        self.results = {}

    def run_for(self, ms, step=10):
        """Let `ms` of simulated time pass, playing the operator at every step."""
        for _ in range(ms // step):
            self.clock.advance(step)
            self.scheduler.run_due()
            self._drop_matching()

    def _drop_matching(self):
        for packet in self.engine.in_flight():
            if packet.flag in self.params["drop_flags"] and self.engine.drop_packet(packet.id):
                self.dropped.append(packet)

    def run_scenario(self):
        # One round trip of the handshake needs three one-way trips.
        settle = 3 * (self.params["latency_ms"] + self.params["jitter_ms"]) + 100
        self.engine.connect()
        self._drop_matching()
        self.run_for(settle)
        self.results["established"] = self.engine.client.connection_state.value

        sent = 0
        for i in range(self.params["num_messages"]):
            if self.engine.send_data(f"message-{i}") is not None:
                sent += 1
            self._drop_matching()
            self.run_for(self.params["message_delay"])
        self.run_for(settle)

        self.engine.disconnect()
        self._drop_matching()
        self.run_for(settle)

        self.results["data_sent"] = sent
        self.results["client"] = self.engine.client.brief_state()
        self.results["server"] = self.engine.server.brief_state()
        self.results["stats"] = dict(self.engine.transit.stats)


def main():
    sim = SimHandshake(num_messages=3, drop_flags={PacketKind.SYN_ACK})
    sim.run_scenario()
    print(sim.results)
    print(sim.scheduler.dump_state())


if __name__ == "__main__":
    main()
