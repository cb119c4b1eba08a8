"""Waiting for all of several operations"""
from __future__ import annotations
from pinio.future import Future, PENDING, Poll
import logging
import outcome
import typing as t
if t.TYPE_CHECKING:
    from pinio.context import Context

__all__ = [
    "Join",
]

logger = logging.getLogger(__name__)

class Join(Future[t.List[t.Any]]):
    """Resolve to the list of all the children's values, in the order they were passed.

    Every poll, each child which isn't finished yet is polled, in order. If a child
    fails, the remaining unfinished children are cancelled and the Join fails with
    that child's error.

    """
    owns_children = True

    def __init__(self, *children: Future[t.Any]) -> None:
        super().__init__()
        self.children = children
        self.values: t.List[t.Any] = [None] * len(children)
        self.finished: t.List[bool] = [False] * len(children)

    def __repr__(self) -> str:
        return f"Join({sum(self.finished)}/{len(self.children)} finished)"

    def poll(self, cx: Context) -> Poll[t.List[t.Any]]:
        for index, child in enumerate(self.children):
            if self.finished[index]:
                continue
            result = cx.poll(child)
            if result is PENDING:
                continue
            if isinstance(result, outcome.Error):
                logger.debug("%s: %s failed, cancelling the rest", self, child)
                self._cancel_unfinished(cx, skip=index)
                return result
            self.values[index] = result.unwrap()
            self.finished[index] = True
        if all(self.finished):
            return outcome.Value(self.values)
        return PENDING

    def _cancel_unfinished(self, cx: Context, skip: t.Optional[int]=None) -> None:
        for index, child in enumerate(self.children):
            if index != skip and not self.finished[index]:
                cx.cancel(child)

    def cancel(self, cx: Context) -> None:
        self._cancel_unfinished(cx)
