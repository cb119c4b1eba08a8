"""Reactors: where timers are registered, and what calls back when they expire.

Leaf operations register a timer with the reactor and get back a TimerHandle. When
the duration elapses, the reactor calls the callback it was given, exactly once;
after `cancel_timer(handle)` returns, the callback will never be called.

All registrations live in a slot table that's allocated once, when the reactor is
made, with a fixed capacity. A TimerHandle is a slot index plus the slot's
generation; the generation is bumped every time the slot is released, so an old
handle for a slot that's since been reused can't touch the new registration. If
every slot is in use, registration fails with RegistrationError.

The reactor holds only a weak reference to a bound-method callback. The reactor
should never be the thing keeping an operation alive; if the operation is
dropped without being cancelled, its timer fires into nothing.

We only ever need to wait for one deadline: the nearest one. So there's a single
heap ordered by (deadline, registration sequence), and the run loop waits for its
head. Timers with equal deadlines fire in the order they were registered.

There are three run loops here, differing only in where time comes from:
VirtualReactor (a clock which jumps straight to the next deadline; deterministic,
good for tests and simulations), BlockingReactor (time.monotonic and time.sleep),
and TrioReactor in pinio.trio_reactor (trio's clock, sleeping with trio).

"""
from __future__ import annotations
from dataclasses import dataclass
from pinio.exceptions import RegistrationError
import abc
import heapq
import inspect
import itertools
import logging
import time
import typing as t
import weakref

__all__ = [
    "DEFAULT_TIMER_CAPACITY",
    "TimerHandle",
    "Reactor",
    "TimerQueue",
    "SyncReactor",
    "VirtualReactor",
    "BlockingReactor",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMER_CAPACITY = 64

@dataclass(frozen=True)
class TimerHandle:
    "Identifies one timer registration on one reactor."
    slot: int
    generation: int

@dataclass(eq=False)
class TimerSlot:
    generation: int = 0
    deadline: t.Optional[float] = None
    callback: t.Optional[t.Callable[[], t.Optional[t.Callable[[], None]]]] = None
    entry: t.Optional[t.Tuple[float, int, int]] = None

    @property
    def in_use(self) -> bool:
        return self.callback is not None

def _weak_callback(on_fire: t.Callable[[], None]) -> t.Callable[[], t.Optional[t.Callable[[], None]]]:
    "Don't keep the owner of a bound method alive just because it has a timer registered."
    if inspect.ismethod(on_fire):
        return weakref.WeakMethod(on_fire)
    return lambda: on_fire

class Reactor(metaclass=abc.ABCMeta):
    "What a leaf operation needs from the thing delivering its readiness."
    @abc.abstractmethod
    def register_timer(self, duration: float, on_fire: t.Callable[[], None]) -> TimerHandle:
        "Call `on_fire` once, after `duration` has elapsed, unless cancelled first."
        pass

    @abc.abstractmethod
    def cancel_timer(self, handle: TimerHandle) -> None:
        "Make sure the callback registered under this handle is never called."
        pass

    @abc.abstractmethod
    def now(self) -> float:
        "The current time, in the same units as timer durations."
        pass

    @abc.abstractmethod
    def next_deadline(self) -> t.Optional[float]:
        "The nearest deadline of any registered timer, or None if nothing is registered."
        pass

class TimerQueue(Reactor):
    """The slot table and deadline heap shared by all our reactors

    Subclasses supply `now` and a way to wait for `next_deadline`, then call
    `fire_due`.

    """
    def __init__(self, capacity: int=DEFAULT_TIMER_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("timer capacity must be positive", capacity)
        self.slots: t.List[TimerSlot] = [TimerSlot() for _ in range(capacity)]
        # popping from the end hands out the lowest free slot first
        self._free: t.List[int] = list(reversed(range(capacity)))
        self._heap: t.List[t.Tuple[float, int, int]] = []
        self._sequence = itertools.count()

    @property
    def capacity(self) -> int:
        return len(self.slots)

    @property
    def pending_count(self) -> int:
        return len(self._heap)

    def register_timer(self, duration: float, on_fire: t.Callable[[], None]) -> TimerHandle:
        if duration < 0:
            raise ValueError("timer duration can't be negative", duration)
        if not self._free:
            raise RegistrationError(f"all {self.capacity} timer slots are in use")
        index = self._free.pop()
        slot = self.slots[index]
        slot.deadline = self.now() + duration
        slot.callback = _weak_callback(on_fire)
        slot.entry = (slot.deadline, next(self._sequence), index)
        heapq.heappush(self._heap, slot.entry)
        handle = TimerHandle(index, slot.generation)
        logger.debug("%s: registered %s for deadline %s", type(self).__name__, handle, slot.deadline)
        return handle

    def _lookup(self, handle: TimerHandle) -> t.Optional[TimerSlot]:
        if not (0 <= handle.slot < self.capacity):
            raise ValueError("handle doesn't belong to this reactor", handle)
        slot = self.slots[handle.slot]
        if slot.generation != handle.generation or not slot.in_use:
            return None
        return slot

    def _release(self, index: int) -> None:
        slot = self.slots[index]
        slot.deadline = None
        slot.callback = None
        slot.entry = None
        slot.generation += 1
        self._free.append(index)

    def cancel_timer(self, handle: TimerHandle) -> None:
        slot = self._lookup(handle)
        if slot is None:
            logger.debug("%s: %s already fired or was cancelled", type(self).__name__, handle)
            return
        self._heap.remove(t.cast(t.Tuple[float, int, int], slot.entry))
        heapq.heapify(self._heap)
        self._release(handle.slot)
        logger.debug("%s: cancelled %s", type(self).__name__, handle)

    def next_deadline(self) -> t.Optional[float]:
        if self._heap:
            return self._heap[0][0]
        return None

    def fire_due(self, now: float) -> int:
        """Call the callbacks of every timer whose deadline is at or before `now`.

        Each slot is released before its callback runs, so a callback is free to
        register a new timer, or cancel others. Returns the number of timers which
        expired.

        """
        expired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, index = heapq.heappop(self._heap)
            ref = self.slots[index].callback
            self._release(index)
            expired += 1
            callback = ref() if ref else None
            if callback is None:
                logger.debug("%s: timer in slot %d expired, but its owner is gone", type(self).__name__, index)
                continue
            callback()
        return expired

class SyncReactor(TimerQueue):
    "A reactor which a synchronous driver can step."
    @abc.abstractmethod
    def run_once(self) -> int:
        """Wait until the nearest deadline, then fire every timer that's due.

        Returns the number of timers which expired; zero if nothing was registered.

        """
        pass

class VirtualReactor(SyncReactor):
    """A reactor whose clock only moves when we move it

    `run_once` jumps the clock straight to the nearest deadline, so a program
    waiting on an hour-long timer completes instantly, and the order of events is
    completely deterministic.

    """
    def __init__(self, capacity: int=DEFAULT_TIMER_CAPACITY, start: float=0.0) -> None:
        super().__init__(capacity)
        self.clock = start

    def now(self) -> float:
        return self.clock

    def run_once(self) -> int:
        deadline = self.next_deadline()
        if deadline is None:
            return 0
        if deadline > self.clock:
            self.clock = deadline
        return self.fire_due(self.clock)

    def advance(self, delta: float) -> int:
        """Move the clock forward by `delta`, firing every timer that becomes due.

        Each expiry wakes its root separately unless the caller is inside
        `Context.coalesce`; `Context.advance` does that for you.

        """
        if delta < 0:
            raise ValueError("can't move the clock backwards", delta)
        self.clock += delta
        return self.fire_due(self.clock)

class BlockingReactor(SyncReactor):
    "A reactor on the real monotonic clock, which blocks the thread while waiting."
    def now(self) -> float:
        return time.monotonic()

    def run_once(self) -> int:
        deadline = self.next_deadline()
        if deadline is None:
            return 0
        delay = deadline - self.now()
        if delay > 0:
            time.sleep(delay)
        return self.fire_due(max(deadline, self.now()))
