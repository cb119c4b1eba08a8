"""Racing operations against each other: the first to finish wins, the rest are cancelled

Each poll, a Race polls its children in the order they were passed in. The first
child to return a ready outcome is the victor: every other child is cancelled,
once, right then, and the Race returns the victor's outcome. If no child is ready,
the Race returns PENDING and changes nothing.

Order is the only tie-break. If two children would both be ready on the same poll,
the earlier one wins, and the later one is cancelled without anyone seeing its
result.

A pitfall: a race built fresh on every iteration of a loop builds its children
fresh too. If one child opens some resource and the other is a short timer, every
iteration that the timer wins tears the resource down, and the next iteration
opens it again:

```
while True:
    msg = await race(connect_and_receive(), Timer(0.1))
```

That's what racing means, so we don't try to prevent it; if the resource should
persist, build it once, outside the loop, and race against that.

Timeouts are just a race against a Timer; see Timeout.

"""
from __future__ import annotations
from pinio.future import Future, PENDING, Poll
from pinio.timer import Timer
import logging
import outcome
import trio
import typing as t
if t.TYPE_CHECKING:
    from pinio.context import Context

__all__ = [
    "Race",
    "race",
    "Timeout",
    "timeout",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class Race(Future[t.Any]):
    """Resolve to the outcome of whichever child finishes first.

    With `with_index=True`, a successful victor resolves to `(victor, value)`
    instead of just the value, for callers who need to know who won.

    """
    owns_children = True

    def __init__(self, *children: Future[t.Any], with_index: bool=False) -> None:
        super().__init__()
        if not children:
            raise ValueError("a race needs at least one child")
        self.children = children
        self.with_index = with_index
        self.finished = False
        self.victor: t.Optional[int] = None

    def __repr__(self) -> str:
        return f"Race({len(self.children)} children, victor={self.victor})"

    def poll(self, cx: Context) -> Poll[t.Any]:
        for index, child in enumerate(self.children):
            result = cx.poll(child)
            if result is PENDING:
                continue
            for loser_index, loser in enumerate(self.children):
                if loser_index != index:
                    cx.cancel(loser)
            self.victor = index
            self.finished = True
            logger.debug("%s: %s won", self, child)
            if self.with_index and isinstance(result, outcome.Value):
                return outcome.Value((index, result.unwrap()))
            return result
        return PENDING

    def cancel(self, cx: Context) -> None:
        for child in self.children:
            cx.cancel(child)

def race(*children: Future[t.Any]) -> Race:
    return Race(*children)

class Timeout(Future[T]):
    """Race `child` against a Timer of `duration`

    Resolves to the child's outcome if it finishes first; otherwise the child is
    cancelled and we resolve to an error outcome with trio.TooSlowError.

    """
    owns_children = True

    def __init__(self, child: Future[T], duration: float) -> None:
        super().__init__()
        self.child = child
        self.timer: Timer[None] = Timer(duration)
        self.race = Race(child, self.timer)

    def __repr__(self) -> str:
        return f"Timeout({self.child!r}, {self.timer.duration})"

    def poll(self, cx: Context) -> Poll[T]:
        result = cx.poll(self.race)
        if result is PENDING:
            return PENDING
        if self.race.victor == 1:
            logger.debug("%s: timed out", self)
            return outcome.Error(trio.TooSlowError(f"{self.child!r} took longer than {self.timer.duration}"))
        return result

    def cancel(self, cx: Context) -> None:
        cx.cancel(self.race)

def timeout(child: Future[T], duration: float) -> Timeout[T]:
    return Timeout(child, duration)
