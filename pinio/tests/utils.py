"Instrumented operations for tests"
from __future__ import annotations
from pinio.context import Context
from pinio.future import Future, PENDING, Poll
import logging
import outcome
import typing as t

logger = logging.getLogger(__name__)
# logging.basicConfig(level=logging.DEBUG)

class Probe(Future[t.Any]):
    """A leaf which finishes when the test says so, and checks that it's used correctly

    It asserts that it's never polled after returning a ready outcome and never
    polled after being cancelled, and counts its polls and cancels.

    """
    def __init__(self, name: str, value: t.Any=None) -> None:
        super().__init__()
        self.name = name
        self.value = value
        self.polls = 0
        self.cancels = 0
        self.completed = False
        self.error: t.Optional[BaseException] = None
        self.ready_returned = False
        self.cx: t.Optional[Context] = None

    def __repr__(self) -> str:
        return f"Probe({self.name})"

    def poll(self, cx: Context) -> Poll[t.Any]:
        assert not self.ready_returned, f"{self} polled after it returned ready"
        assert not self.cancels, f"{self} polled after it was cancelled"
        self.polls += 1
        self.cx = cx
        if self.error is not None:
            self.ready_returned = True
            return outcome.Error(self.error)
        if self.completed:
            self.ready_returned = True
            return outcome.Value(self.value)
        return PENDING

    def complete(self, wake: bool=True) -> None:
        self.completed = True
        if wake and self.cx is not None:
            self.cx.wake()

    def fail(self, error: BaseException, wake: bool=True) -> None:
        self.error = error
        if wake and self.cx is not None:
            self.cx.wake()

    def cancel(self, cx: Context) -> None:
        assert not self.ready_returned, f"{self} cancelled after it returned ready"
        self.cancels += 1
