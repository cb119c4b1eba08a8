"""The timer leaf: an operation that's ready after some duration has passed"""
from __future__ import annotations
from pinio.exceptions import ContractViolation
from pinio.future import Future, PENDING, Poll
from pinio.reactor import TimerHandle
import enum
import logging
import outcome
import typing as t
if t.TYPE_CHECKING:
    from pinio.context import Context

__all__ = [
    "TimerStatus",
    "Timer",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class TimerStatus(enum.Enum):
    NOT_STARTED = "not-started"
    WAITING = "waiting"
    FINISHED = "finished"
    CANCELLED = "cancelled"

class Timer(Future[T]):
    """Ready with `value` once `duration` has elapsed on the reactor's clock.

    The timer is registered with the reactor on the first poll, not at
    construction; that's when the duration starts counting. Polling while waiting
    does nothing: the only way forward is the reactor calling `_fire`, which
    marks us finished and wakes the root so we get polled again.

    """
    def __init__(self, duration: float, value: T=None) -> None: # type: ignore
        super().__init__()
        if duration < 0:
            raise ValueError("timer duration can't be negative", duration)
        self.duration = duration
        self.value = value
        self.state = TimerStatus.NOT_STARTED
        self.handle: t.Optional[TimerHandle] = None
        self._cx: t.Optional[Context] = None

    def __repr__(self) -> str:
        return f"Timer({self.duration}, {self.state.name})"

    def poll(self, cx: Context) -> Poll[T]:
        if self.state is TimerStatus.NOT_STARTED:
            # registration failure propagates; there's no point to a timer without it
            self.handle = cx.reactor.register_timer(self.duration, self._fire)
            self._cx = cx
            self.state = TimerStatus.WAITING
            logger.debug("%s: registered as %s", self, self.handle)
            return PENDING
        elif self.state is TimerStatus.WAITING:
            return PENDING
        elif self.state is TimerStatus.FINISHED:
            return outcome.Value(self.value)
        else:
            raise ContractViolation(f"{self!r} polled after it was cancelled")

    def _fire(self) -> None:
        # the reactor has already released our slot by the time it calls us
        cx = self._cx
        self.handle = None
        self._cx = None
        self.state = TimerStatus.FINISHED
        logger.debug("%s: fired", self)
        if cx is not None:
            cx.wake()

    def cancel(self, cx: Context) -> None:
        if self.state is not TimerStatus.WAITING:
            return
        handle = t.cast(TimerHandle, self.handle)
        cx.reactor.cancel_timer(handle)
        self.handle = None
        self._cx = None
        self.state = TimerStatus.CANCELLED
        logger.debug("%s: cancelled %s", self, handle)
