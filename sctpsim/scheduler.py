"""Clock and scheduler implementations for the protocol engine.

- `SimClock`: monotonically increasing time in milliseconds; you call
  `advance(ms)` to move time forward.
- `SimScheduler`: schedules callbacks relative to the simulated time and
  executes them when `run_due()` is called.
- `LoopScheduler`: the same interface on top of the running asyncio loop,
  used by the HTTP runtime.

Typical deterministic loop:

    clock.advance(10)
    scheduler.run_due()

All callbacks run on the caller's thread (or the loop thread), so the engine
never sees two transitions at once.
"""

import asyncio
import heapq
from typing import Callable, List


class SimClock:
    """Monotonic simulated clock measured in milliseconds."""

    def __init__(self) -> None:
        self.t = 0

    def now_ms(self) -> int:
        """Return the current simulated time in milliseconds."""
        return self.t

    def advance(self, ms: int) -> None:
        """Advance simulated time by `ms` milliseconds (non-negative)."""
        if ms < 0:
            raise ValueError(f"cannot move the clock backwards ({ms}ms)")
        self.t += ms


class SimScheduler:
    """Scheduler backed by a min-heap of scheduled callbacks.

    Schedule callbacks using `call_later(ms, cb)`; get a cancel function back.
    Execute ready callbacks by calling `run_due()` after advancing the clock.
    A counter ensures FIFO ordering for callbacks scheduled for the same time.
    """

    def __init__(self, clock: SimClock) -> None:
        self.clock = clock
        self.heap: List[list] = []
        self._counter = 0  # tie-breaker for stable ordering

    def now_ms(self) -> int:
        return self.clock.now_ms()

    def call_later(self, ms: int, cb: Callable[[], None]):
        """Schedule `cb` to run after `ms` milliseconds of simulated time.

        Returns a zero-arg cancel function; if invoked before the callback is
        due, the callback will not run.
        """
        when = self.clock.now_ms() + ms
        self._counter += 1
        event = [when, self._counter, cb, True]
        heapq.heappush(self.heap, event)

        def cancel():
            event[3] = False

        return cancel

    def run_due(self) -> int:
        """Run all callbacks whose scheduled time is <= current time.

        Callbacks scheduled by a running callback are picked up in the same
        pass when they are already due. Returns the number of callbacks run.
        """
        ran = 0
        while self.heap and self.heap[0][0] <= self.clock.now_ms():
            when, _, cb, live = heapq.heappop(self.heap)
            if live:
                cb()
                ran += 1
        return ran

    def pending(self) -> int:
        """Number of live callbacks still queued."""
        return sum(1 for event in self.heap if event[3])

    def dump_state(self, n: int = 5) -> str:
        """Return a human-readable snapshot of timer state and queued events.

        Args:
            n: Maximum number of queued events to include (default: 5).
        """
        now = self.clock.now_ms()
        events = list(self.heap)  # heappop on a copy leaves the queue intact
        shown = min(n, len(events))
        lines = [
            f"SimScheduler @ t = {now}ms",
            f"queued = {len(events)} (showing first {shown})",
        ]
        for i in range(shown):
            when, counter, cb, live = heapq.heappop(events)
            cb_name = getattr(cb, "__name__", None)
            cb_desc = cb_name if isinstance(cb_name, str) else repr(cb)
            remaining = max(0, when - now)
            lines.append(
                f"#{i:02d} due @ {when}ms (in {remaining}ms) counter={counter} live={live} cb={cb_desc}"
            )
        return "\n".join(lines)


class LoopScheduler:
    """Adapter exposing `now_ms` and `call_later` atop the running asyncio loop.

    Must be used from code already running on the loop.
    """

    def now_ms(self) -> int:
        return int(asyncio.get_running_loop().time() * 1000)

    def call_later(self, ms: int, cb: Callable[[], None]):
        handle = asyncio.get_running_loop().call_later(ms / 1000.0, cb)

        def cancel():
            handle.cancel()

        return cancel
