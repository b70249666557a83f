"""Shared fixtures: an engine on the deterministic scheduler.

Time only moves when a test calls ``run_for``, which advances the simulated
clock in small steps and fires whatever became due, much like the loops in
the scenario runner.
"""

from typing import Any, Dict, Optional

import pytest

from sctpsim.config import SimConfig
from sctpsim.engine import ProtocolEngine
from sctpsim.observer import MemorySink
from sctpsim.scheduler import SimClock, SimScheduler


def make_sim(config: Optional[SimConfig] = None) -> Dict[str, Any]:
    clock = SimClock()
    scheduler = SimScheduler(clock)
    sink = MemorySink()
    engine = ProtocolEngine(scheduler, config=config or SimConfig(), sinks=[sink])

    def run_for(ms: int, step: int = 10) -> None:
        for _ in range(ms // step):
            clock.advance(step)
            scheduler.run_due()

    return {
        "engine": engine,
        "clock": clock,
        "scheduler": scheduler,
        "sink": sink,
        "run_for": run_for,
    }


@pytest.fixture
def sim() -> Dict[str, Any]:
    """Engine with default config: 3000ms latency, client seq 100, server seq 5000."""
    return make_sim()


@pytest.fixture
def established(sim: Dict[str, Any]) -> Dict[str, Any]:
    """Same as ``sim`` but with the handshake already completed."""
    sim["engine"].connect()
    sim["run_for"](9000)
    return sim
