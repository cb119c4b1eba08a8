"""Poll-based, single-task asynchronous operations

A program here is a tree of operations: timers at the leaves, and combinators
above them, which run steps in sequence, race several operations against each
other, or wait for all of several. Nothing in the tree runs on its own. A driver
polls the root; the poll cascades down to the leaves; a leaf that can't finish yet
registers with the reactor and returns PENDING, and so does everything above it.
When the reactor's timer expires, it calls back into the leaf, which wakes the
root, and the driver's context polls the root again.

There is one task and one thread. There's no scheduler queue, and no allocation of
new operations while the tree runs, if the tree was built up front: the reactor's
timer storage is a fixed slot table, and each combinator holds its children
directly. An operation is never copied while it's in flight, and its owner is the
only one who cancels it.

```
@sequential
async def main(log):
    for i in range(3):
        await Timer(1)
        log.append(i)
    winner = await Race(Timer(100, "slow"), Timer(50, "fast"))
    return winner

log = []
assert run(main(log), VirtualReactor()) == "fast"
```

Ordinary exceptions in a sequence body become error outcomes and travel upward to
whoever awaits that operation; FatalError means the tree is broken, and ends the
task.

"""
from pinio.exceptions import (
    FatalError, ContractViolation, CancelUnimplementedError, NestingTooDeepError,
    PinnedError, RegistrationError, StalledError,
)
from pinio.future import (
    PENDING, Poll, FutureStatus, Future, noop_cancel, unimplemented_cancel, Ready, Failed, Never,
)
from pinio.context import Context, MAX_NESTING_DEPTH
from pinio.reactor import (
    DEFAULT_TIMER_CAPACITY, TimerHandle, Reactor, TimerQueue, SyncReactor, VirtualReactor, BlockingReactor,
)
from pinio.trio_reactor import TrioReactor
from pinio.timer import Timer, TimerStatus
from pinio.sequence import Sequence, SequenceState, sequential
from pinio.race import Race, race, Timeout, timeout
from pinio.join import Join
from pinio.driver import Driver, TrioDriver, run
