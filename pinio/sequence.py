"""Sequential composition: an `async def` body, run as a resumable state machine

A Sequence wraps a coroutine. The coroutine awaits other operations; each `await`
of a Future yields that Future up to us, and we poll it. If it's ready, we send its
value straight back into the coroutine and keep going, without returning to
whoever polled us. If it's pending, that's a suspension point: we remember the
Future as the one in flight, bump `resume_marker`, and return PENDING.

On the next poll we don't re-run anything. We poll the in-flight Future again, and
only once it's ready do we resume the coroutine, at exactly the `await` where it
left off. The coroutine frame is the storage for every local that lives across a
suspension point, and it only holds the ones that are live at the current
`await`.

```
@sequential
async def three_seconds(log):
    for i in range(3):
        await Timer(1.0)
        log.append(f"{i+1} seconds have passed")
```

If the body raises, the Sequence resolves to an `outcome.Error` with that
exception; an error outcome from an awaited child is thrown into the body at the
`await`, so the body can catch it and retry if it likes. FatalError is the
exception: it's never caught and converted, it propagates out of `poll`.

Cancelling a suspended Sequence cancels the child in flight, and then closes the
coroutine, so none of the remaining steps run. `finally` blocks in the body do
run on close; they must not await anything.

"""
from __future__ import annotations
from pinio.exceptions import ContractViolation, FatalError
from pinio.future import Future, PENDING, Poll
import enum
import functools
import logging
import outcome
import typing as t
if t.TYPE_CHECKING:
    from pinio.context import Context

__all__ = [
    "SequenceState",
    "Sequence",
    "sequential",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class SequenceState(enum.Enum):
    NOT_STARTED = "not-started"
    SUSPENDED = "suspended"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"

class Sequence(Future[T]):
    "Runs a coroutine which awaits Futures, one step at a time."
    owns_children = True

    def __init__(self, coro: t.Coroutine[Future[t.Any], t.Any, T]) -> None:
        super().__init__()
        self.coro = coro
        self.state = SequenceState.NOT_STARTED
        self.awaiting: t.Optional[Future[t.Any]] = None
        self.resume_marker = 0

    def __repr__(self) -> str:
        name = getattr(self.coro, '__qualname__', repr(self.coro))
        return f"Sequence({name}, {self.state.name}, marker={self.resume_marker})"

    def poll(self, cx: Context) -> Poll[T]:
        if self.state not in (SequenceState.NOT_STARTED, SequenceState.SUSPENDED):
            raise ContractViolation(f"{self!r} polled after it stopped")
        send: outcome.Outcome[t.Any] = outcome.Value(None)
        if self.awaiting is not None:
            result = cx.poll(self.awaiting)
            if result is PENDING:
                return PENDING
            self.awaiting = None
            send = result
        while True:
            try:
                yielded = send.send(self.coro)
            except StopIteration as e:
                self.state = SequenceState.FINISHED
                logger.debug("%s: returned", self)
                return outcome.Value(e.value)
            except FatalError:
                self.state = SequenceState.FAILED
                raise
            except Exception as e:
                self.state = SequenceState.FAILED
                logger.debug("%s: raised %r", self, e)
                return outcome.Error(e)
            if not isinstance(yielded, Future):
                self.state = SequenceState.FAILED
                self.coro.close()
                raise ContractViolation(f"{self!r} awaited {yielded!r}, which isn't a Future")
            result = cx.poll(yielded)
            if result is PENDING:
                self.awaiting = yielded
                self.resume_marker += 1
                self.state = SequenceState.SUSPENDED
                return PENDING
            send = result

    def cancel(self, cx: Context) -> None:
        if self.state is SequenceState.SUSPENDED:
            awaiting = t.cast(Future[t.Any], self.awaiting)
            self.awaiting = None
            logger.debug("%s: cancelling %s", self, awaiting)
            cx.cancel(awaiting)
        if self.state in (SequenceState.NOT_STARTED, SequenceState.SUSPENDED):
            self.state = SequenceState.CANCELLED
            self.coro.close()

def sequential(func: t.Callable[..., t.Coroutine[Future[t.Any], t.Any, T]]) -> t.Callable[..., Sequence[T]]:
    "Make an `async def` return a Sequence operation instead of a bare coroutine."
    @functools.wraps(func)
    def make(*args: t.Any, **kwargs: t.Any) -> Sequence[T]:
        return Sequence(func(*args, **kwargs))
    return make
