from __future__ import annotations
from pinio.context import Context
from pinio.driver import Driver
from pinio.exceptions import ContractViolation
from pinio.future import PENDING, Failed, Ready, FutureStatus
from pinio.reactor import VirtualReactor
from pinio.sequence import Sequence, SequenceState, sequential
from pinio.tests.utils import Probe
from pinio.timer import Timer, TimerStatus
import types
import unittest

class MyException(Exception):
    pass

class TestSequence(unittest.TestCase):
    def setUp(self) -> None:
        self.reactor = VirtualReactor()
        self.driver = Driver(self.reactor)

    def test_three_seconds(self) -> None:
        log: list = []
        @sequential
        async def three_seconds() -> str:
            for i in range(3):
                await Timer(1000)
                log.append(f"{i+1} seconds have passed at {int(self.reactor.now())}")
            return "done"
        seq = three_seconds()
        cx = Context(seq, self.reactor)
        cx.wake()
        for expected in range(3):
            self.assertFalse(cx.done)
            self.assertEqual(len(log), expected)
            self.assertEqual(seq.resume_marker, expected + 1)
            with cx.coalesce():
                self.reactor.run_once()
        self.assertTrue(cx.done)
        self.assertEqual(log, [
            "1 seconds have passed at 1000",
            "2 seconds have passed at 2000",
            "3 seconds have passed at 3000",
        ])
        self.assertEqual(cx.result.unwrap(), "done")
        self.assertIs(seq.state, SequenceState.FINISHED)

    def test_no_steps(self) -> None:
        async def nothing() -> int:
            return 5
        seq = Sequence(nothing())
        cx = Context(seq, self.reactor)
        result = cx.poll(seq)
        self.assertIsNot(result, PENDING)
        self.assertEqual(result.unwrap(), 5)

    def test_synchronous_steps(self) -> None:
        async def sync_steps() -> int:
            a = await Ready(1)
            b = await Ready(2)
            return a + b
        seq = Sequence(sync_steps())
        cx = Context(seq, self.reactor)
        self.assertEqual(cx.poll(seq).unwrap(), 3)
        # never suspended, so the marker never moved
        self.assertEqual(seq.resume_marker, 0)

    def test_locals_survive_suspension(self) -> None:
        @sequential
        async def accumulate() -> list:
            seen = []
            for duration in [5, 10, 20]:
                seen.append(await Timer(duration, value=duration))
            return seen
        self.assertEqual(self.driver.run(accumulate()), [5, 10, 20])
        self.assertEqual(self.reactor.now(), 35)

    def test_no_reexecution(self) -> None:
        first, second = Probe("first", 1), Probe("second", 2)
        side_effects: list = []
        async def body() -> int:
            side_effects.append("start")
            a = await first
            side_effects.append("between")
            b = await second
            side_effects.append("end")
            return a + b
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.wake()
        cx.wake()
        self.assertEqual(side_effects, ["start"])
        first.complete()
        self.assertEqual(side_effects, ["start", "between"])
        cx.wake()
        second.complete()
        self.assertEqual(side_effects, ["start", "between", "end"])
        self.assertEqual(cx.result.unwrap(), 3)
        self.assertEqual(first.polls, 3)
        self.assertEqual(second.polls, 3)

    def test_body_raises(self) -> None:
        async def body() -> None:
            await Timer(1)
            raise MyException("step two failed")
        with self.assertRaises(MyException):
            self.driver.run(Sequence(body()))

    def test_child_error_thrown_in(self) -> None:
        attempts: list = []
        async def body() -> str:
            for attempt in range(3):
                try:
                    attempts.append(attempt)
                    if attempt < 2:
                        await Failed(MyException(attempt))
                    return await Timer(1, value="ok")
                except MyException:
                    await Timer(10)
            return "gave up"
        self.assertEqual(self.driver.run(Sequence(body())), "ok")
        self.assertEqual(attempts, [0, 1, 2])
        self.assertEqual(self.reactor.now(), 21)

    def test_awaiting_non_future(self) -> None:
        @types.coroutine
        def bogus():
            yield "not a future"
        async def body() -> None:
            await bogus()
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        with self.assertRaises(ContractViolation):
            cx.poll(seq)
        self.assertIs(seq.state, SequenceState.FAILED)

    def test_cancel_suspended(self) -> None:
        before, during, after = Probe("before", 0), Probe("during"), Probe("after")
        log: list = []
        async def body() -> None:
            await before
            log.append("k")
            try:
                await during
                log.append("past k")
                await after
            finally:
                log.append("closed")
        before.completed = True
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.wake()
        self.assertIs(seq.state, SequenceState.SUSPENDED)
        self.assertIs(seq.awaiting, during)
        cx.cancel(seq)
        self.assertIs(seq.state, SequenceState.CANCELLED)
        self.assertIsNone(seq.awaiting)
        # only the child in flight is cancelled
        self.assertEqual((before.cancels, during.cancels, after.cancels), (0, 1, 0))
        # the earlier step isn't re-run, and later ones never start
        self.assertEqual(before.polls, 1)
        self.assertEqual(after.polls, 0)
        self.assertEqual(log, ["k", "closed"])

    def test_cancel_suspended_on_timer(self) -> None:
        timers = [Timer(10), Timer(10), Timer(10)]
        async def body() -> None:
            for timer in timers:
                await timer
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.wake()
        with cx.coalesce():
            self.reactor.run_once()
        self.assertIs(timers[1].state, TimerStatus.WAITING)
        cx.cancel(seq)
        self.assertEqual([timer.state for timer in timers],
                         [TimerStatus.FINISHED, TimerStatus.CANCELLED, TimerStatus.NOT_STARTED])
        self.assertEqual(self.reactor.pending_count, 0)

    def test_cancel_not_started(self) -> None:
        ran: list = []
        async def body() -> None:
            ran.append(True)
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.cancel(seq)
        self.assertIs(seq.state, SequenceState.CANCELLED)
        self.assertEqual(ran, [])

    def test_cancel_finished_is_noop(self) -> None:
        async def body() -> int:
            return 1
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.poll(seq)
        seq.cancel(cx)
        self.assertIs(seq.state, SequenceState.FINISHED)

    def test_poll_after_finished(self) -> None:
        async def body() -> int:
            return 1
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        cx.poll(seq)
        with self.assertRaises(ContractViolation):
            seq.poll(cx)

    def test_nested_sequences(self) -> None:
        @sequential
        async def inner(n: int) -> int:
            await Timer(n)
            return n * 2
        @sequential
        async def outer() -> int:
            return await inner(1) + await inner(2)
        self.assertEqual(self.driver.run(outer()), 6)
        self.assertEqual(self.reactor.now(), 3)

    def test_awaiting_finished_future(self) -> None:
        done = Ready(1)
        async def body() -> None:
            await done
            await done
        seq = Sequence(body())
        cx = Context(seq, self.reactor)
        with self.assertRaises(ContractViolation):
            cx.poll(seq)
        self.assertIs(done.status, FutureStatus.READY)
