"""The Context passed to every poll, and the wake protocol

There is exactly one root operation per Context. When a leaf becomes ready, it
doesn't tell anyone which leaf it was; it just calls `wake`, and we poll the root
again. That poll cascades down through every still-pending combinator, and the
leaf that became ready gets polled and reports its result.

This means we re-poll subtrees that haven't changed. That's a constant amount of
redundant work per wake, and in return we need no per-leaf queue of ready
operations, which would have to be allocated and maintained.

Wakes are coalesced at the root: a wake that arrives while the root is being
polled turns into a single extra poll after the current one finishes, and all the
wakes delivered inside a `coalesce` block (a driver wraps each reactor dispatch in
one) turn into a single poll at the end of the block.

"""
from __future__ import annotations
from pinio.exceptions import ContractViolation, NestingTooDeepError
from pinio.future import Future, FutureStatus, PENDING, Poll
from pinio.reactor import Reactor, VirtualReactor
import contextlib
import logging
import outcome
import typing as t

__all__ = [
    "Context",
    "MAX_NESTING_DEPTH",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')
U = t.TypeVar('U')

MAX_NESTING_DEPTH = 32
"How many operations deep a single poll may reach, counting the root as 1."

class Context(t.Generic[T]):
    """The handle every poll receives: the root operation, and the reactor.

    `done` becomes true when the root returns a ready outcome, which is then
    available as `result`. `finished` is also true once the root has been
    cancelled. After either, wakes are ignored.

    """
    def __init__(self, root: Future[T], reactor: Reactor) -> None:
        self.root = root
        self.reactor = reactor
        self.result: t.Optional[outcome.Outcome[T]] = None
        self.depth = 0
        self.root_polls = 0
        self._polling_root = False
        self._coalescing = 0
        self._wake_deferred = False

    def __repr__(self) -> str:
        return f"Context({self.root!r}, done={self.done})"

    @property
    def done(self) -> bool:
        return self.result is not None

    @property
    def finished(self) -> bool:
        return self.done or self.root.status is FutureStatus.CANCELLED

    def wake(self) -> None:
        """Poll the root once, or arrange for it to be polled once as soon as possible.

        Safe to call any number of times, from anywhere on the scheduling thread,
        including from a reactor callback.

        """
        if self.finished:
            logger.debug("Context(%s): wake after completion or cancellation, ignoring", self.root)
            return
        if self._polling_root or self._coalescing:
            logger.debug("Context(%s): deferring wake", self.root)
            self._wake_deferred = True
            return
        self._poll_root()

    def _poll_root(self) -> None:
        self._polling_root = True
        try:
            while True:
                self._wake_deferred = False
                self.root_polls += 1
                result = self.poll(self.root)
                if result is not PENDING:
                    logger.debug("Context(%s): root is ready after %d polls", self.root, self.root_polls)
                    self.result = result
                    return
                if not self._wake_deferred:
                    return
        finally:
            self._polling_root = False

    @contextlib.contextmanager
    def coalesce(self) -> t.Iterator[None]:
        "Collapse every wake delivered inside this block into one root poll at the end."
        self._coalescing += 1
        try:
            yield
        finally:
            self._coalescing -= 1
        if not self._coalescing and self._wake_deferred:
            self._wake_deferred = False
            self.wake()

    def advance(self, delta: float) -> int:
        """Move a VirtualReactor's clock forward by `delta`, as one dispatch.

        Every timer which becomes due is fired inside `coalesce`, so timers that
        expire at the same instant are all seen by a single root poll, and a race
        between them is decided by construction order, not by which one happened
        to be registered first.

        """
        if not isinstance(self.reactor, VirtualReactor):
            raise TypeError("only a VirtualReactor's clock can be advanced", self.reactor)
        with self.coalesce():
            return self.reactor.advance(delta)

    def poll(self, fut: Future[U]) -> Poll[U]:
        """Poll this child on behalf of its owner.

        We refuse to poll an operation which already returned a ready outcome or was
        cancelled, or one which is already being polled further up the stack, and we
        refuse to go deeper than MAX_NESTING_DEPTH.

        """
        if fut.status in (FutureStatus.READY, FutureStatus.CANCELLED):
            raise ContractViolation(f"{fut!r} polled after it became {fut.status.name}")
        if fut.status is FutureStatus.POLLING:
            raise ContractViolation(f"{fut!r} polled reentrantly")
        if self.depth >= MAX_NESTING_DEPTH:
            raise NestingTooDeepError(f"{fut!r} is nested deeper than {MAX_NESTING_DEPTH}")
        previous = fut.status
        fut.status = FutureStatus.POLLING
        self.depth += 1
        try:
            result = fut.poll(self)
        except BaseException:
            fut.status = previous
            raise
        finally:
            self.depth -= 1
        fut.status = FutureStatus.PENDING if result is PENDING else FutureStatus.READY
        return result

    def cancel(self, fut: Future[t.Any]) -> None:
        """Cancel this child on behalf of its owner.

        The child's `cancel` runs at most once; cancelling something which is already
        ready or cancelled does nothing.

        """
        if fut.status in (FutureStatus.READY, FutureStatus.CANCELLED):
            logger.debug("Context(%s): not cancelling %s, it's already %s",
                         self.root, fut, fut.status.name)
            return
        if fut.status is FutureStatus.POLLING:
            raise ContractViolation(f"{fut!r} cancelled from inside its own poll")
        fut.status = FutureStatus.CANCELLED
        fut.cancel(self)
