"""Drivers: run a root operation to completion

A driver performs the first poll of the root, then services its reactor until a
wake makes the root ready. Every reactor dispatch happens inside
`Context.coalesce`, so however many timers expire in one dispatch, the root is
polled once afterwards.

If the root is still pending but nothing is registered with the reactor, nothing
can ever wake it; rather than hang, we raise StalledError.

Any FatalError raised while polling propagates straight out of `run`. There is only
one task, so there's nothing to isolate it from.

"""
from __future__ import annotations
from pinio.context import Context
from pinio.exceptions import StalledError
from pinio.future import Future
from pinio.reactor import SyncReactor, BlockingReactor
from pinio.trio_reactor import TrioReactor
import logging
import trio
import typing as t

__all__ = [
    "Driver",
    "TrioDriver",
    "run",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

def _result(cx: Context[T]) -> T:
    assert cx.result is not None
    return cx.result.unwrap()

class Driver:
    "Runs one root operation at a time on a synchronous reactor."
    def __init__(self, reactor: SyncReactor) -> None:
        self.reactor = reactor

    def run(self, root: Future[T]) -> T:
        """Poll `root` until it's ready, and return its value, or raise its error."""
        cx = Context(root, self.reactor)
        logger.debug("Driver.run(%s): first poll", root)
        cx.wake()
        while not cx.done:
            if self.reactor.next_deadline() is None:
                raise StalledError(f"{root!r} is pending, but nothing is registered to wake it")
            with cx.coalesce():
                self.reactor.run_once()
        logger.debug("Driver.run(%s): done after %d root polls", root, cx.root_polls)
        return _result(cx)

class TrioDriver:
    """Runs one root operation from inside a trio task.

    If the trio task is cancelled while we wait, we cancel the root before
    letting trio.Cancelled propagate, so no timer is left registered.

    """
    def __init__(self, reactor: t.Optional[TrioReactor]=None) -> None:
        self.reactor = reactor if reactor is not None else TrioReactor()

    async def run(self, root: Future[T]) -> T:
        cx = Context(root, self.reactor)
        logger.debug("TrioDriver.run(%s): first poll", root)
        cx.wake()
        try:
            while not cx.done:
                if self.reactor.next_deadline() is None:
                    raise StalledError(f"{root!r} is pending, but nothing is registered to wake it")
                with cx.coalesce():
                    await self.reactor.run_once()
        except trio.Cancelled:
            logger.debug("TrioDriver.run(%s): cancelled, cancelling the root", root)
            cx.cancel(root)
            raise
        return _result(cx)

def run(root: Future[T], reactor: t.Optional[SyncReactor]=None) -> T:
    "Run `root` to completion on `reactor`, by default a BlockingReactor on the real clock."
    if reactor is None:
        reactor = BlockingReactor()
    return Driver(reactor).run(root)
