"""A reactor on trio's clock

This lets a pinio operation tree run inside a trio program: the one trio task
running `TrioDriver.run` sleeps until the nearest deadline, fires whatever is due,
and the wakes re-poll the root, all without blocking any other trio task.

Since time comes from `trio.current_time`, running under
`trio.testing.MockClock(autojump_threshold=0)` makes every wait instant, much like
VirtualReactor.

"""
from __future__ import annotations
from pinio.reactor import TimerQueue, DEFAULT_TIMER_CAPACITY
import logging
import trio

__all__ = [
    "TrioReactor",
]

logger = logging.getLogger(__name__)

class TrioReactor(TimerQueue):
    "Timers measured in seconds on trio's clock; must be used inside trio.run."
    def __init__(self, capacity: int=DEFAULT_TIMER_CAPACITY) -> None:
        super().__init__(capacity)

    def now(self) -> float:
        return trio.current_time()

    async def run_once(self) -> int:
        """Sleep until the nearest deadline, then fire every timer that's due.

        Returns the number of timers which expired; zero, without sleeping, if
        nothing was registered.

        """
        deadline = self.next_deadline()
        if deadline is None:
            return 0
        logger.debug("TrioReactor: sleeping until %s", deadline)
        await trio.sleep_until(deadline)
        return self.fire_due(max(deadline, trio.current_time()))
