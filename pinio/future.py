"""The contract every operation implements: poll and cancel

An operation is polled by its owner to make progress. A poll either returns
PENDING, meaning "I registered something which will wake the root later", or a
ready outcome: `outcome.Value` if the operation succeeded, `outcome.Error` if it
failed. After a ready outcome, the operation is done; it is never polled again, and
its owner may drop it.

An operation which has been polled and is still pending can be cancelled by its
owner instead. Cancellation is synchronous: when `cancel` returns, whatever external
registration the operation held (a timer, say) is gone, and can never call back
into the operation.

Owners don't call `poll` and `cancel` on their children directly; they go through
`Context.poll` and `Context.cancel`, which keep track of each child's `status` and
turn contract violations into immediate errors instead of silent corruption.

Operations never move once created; Python objects don't. But an in-flight
operation also must never be duplicated, since the reactor holds a reference to
exactly one copy of it. So copying a pending operation raises PinnedError. So does
copying a composite at any point: the copy would share the original's children or
coroutine, and running either one would break the other.

"""
from __future__ import annotations
from pinio.exceptions import CancelUnimplementedError, PinnedError
import abc
import copy
import enum
import logging
import outcome
import typing as t
if t.TYPE_CHECKING:
    from pinio.context import Context

__all__ = [
    "PENDING",
    "Pending",
    "Poll",
    "FutureStatus",
    "Future",
    "noop_cancel",
    "unimplemented_cancel",
    "Ready",
    "Failed",
    "Never",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class Pending(enum.Enum):
    PENDING = "pending"

    def __repr__(self) -> str:
        return "PENDING"

PENDING = Pending.PENDING
"Returned from poll when the operation can't make progress right now."

Poll = t.Union[Pending, outcome.Outcome[T]]

class FutureStatus(enum.Enum):
    "Where an operation is in its lifecycle, as seen by whoever polls it."
    FRESH = "fresh"
    POLLING = "polling"
    PENDING = "pending"
    READY = "ready"
    CANCELLED = "cancelled"

def noop_cancel(self: Future[t.Any], cx: Context) -> None:
    "Cancel for operations which hold no external resource; there's nothing to release."
    pass

def unimplemented_cancel(self: Future[t.Any], cx: Context) -> None:
    """Cancel for operations which never got around to implementing cancellation

    Cancelling such an operation is a bug in the operation, so we abort instead of
    quietly leaving some registration live.

    """
    raise CancelUnimplementedError(f"{self!r} was cancelled, but doesn't implement cancel")

class Future(t.Generic[T], metaclass=abc.ABCMeta):
    """An asynchronous operation, which makes progress only when polled

    Subclasses implement `poll`, and `cancel` if they hold anything that needs
    releasing. The default `cancel` is `unimplemented_cancel`.

    A Future can be awaited inside a `Sequence` body; awaiting yields the Future up
    to the Sequence, which polls it.

    """
    status: FutureStatus
    owns_children: t.ClassVar[bool] = False

    def __init__(self) -> None:
        self.status = FutureStatus.FRESH

    @abc.abstractmethod
    def poll(self, cx: Context) -> Poll[T]:
        "Attempt to make progress, returning PENDING or a ready outcome."
        pass

    cancel = unimplemented_cancel

    def __await__(self) -> t.Generator[Future[T], t.Any, T]:
        return (yield self)

    def _check_unpinned(self) -> None:
        if self.owns_children:
            raise PinnedError(f"{self!r} owns its children, which a copy would share")
        if self.status in (FutureStatus.PENDING, FutureStatus.POLLING):
            raise PinnedError(f"{self!r} is in flight and can't be copied")

    def __copy__(self) -> Future[T]:
        self._check_unpinned()
        new = type(self).__new__(type(self))
        new.__dict__.update(self.__dict__)
        return new

    def __deepcopy__(self, memo: t.Dict[int, t.Any]) -> Future[T]:
        self._check_unpinned()
        new = type(self).__new__(type(self))
        memo[id(self)] = new
        new.__dict__.update(copy.deepcopy(self.__dict__, memo))
        return new

class Ready(Future[T]):
    "An operation which is complete as soon as it's polled."
    def __init__(self, value: T) -> None:
        super().__init__()
        self.value = value

    def __repr__(self) -> str:
        return f"Ready({self.value!r})"

    def poll(self, cx: Context) -> Poll[T]:
        return outcome.Value(self.value)

    cancel = noop_cancel

class Failed(Future[t.Any]):
    "An operation which fails with the given exception as soon as it's polled."
    def __init__(self, error: BaseException) -> None:
        super().__init__()
        self.error = error

    def __repr__(self) -> str:
        return f"Failed({self.error!r})"

    def poll(self, cx: Context) -> Poll[t.Any]:
        return outcome.Error(self.error)

    cancel = noop_cancel

class Never(Future[t.Any]):
    """An operation which is never ready

    Since it registers nothing, a root which is waiting only on a Never will be
    reported as stalled by the driver.

    """
    def __repr__(self) -> str:
        return "Never()"

    def poll(self, cx: Context) -> Poll[t.Any]:
        return PENDING

    cancel = noop_cancel
