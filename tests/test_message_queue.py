"""Tests for the single-flight message queue."""

from __future__ import annotations

import asyncio

import pytest

from axiomate.errors import StreamAbortedError
from axiomate.session.protocols import TurnUpdate, UpdateKind
from axiomate.session.queue import MessageQueue, TurnContext


class GatedProcessor:
    """Processor that records entries and waits on a per-text gate."""

    def __init__(self) -> None:
        self.seen: list[str] = []
        self.active = 0
        self.max_active = 0
        self.gates: dict[str, asyncio.Event] = {}
        self.started = asyncio.Event()

    async def __call__(self, ctx: TurnContext) -> str:
        self.seen.append(ctx.entry.text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            gate = self.gates.get(ctx.entry.text)
            if gate is not None:
                ctx.stream.content = "partial"
                waiter = asyncio.ensure_future(gate.wait())
                cancelled = asyncio.ensure_future(ctx.cancel.wait())
                await asyncio.wait({waiter, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                waiter.cancel()
                cancelled.cancel()
                if ctx.cancel.cancelled:
                    raise StreamAbortedError()
            return f"reply to {ctx.entry.text}"
        finally:
            self.active -= 1


def kinds(updates: list[TurnUpdate], message_id: str | None = None) -> list[UpdateKind]:
    return [u.kind for u in updates if message_id is None or u.message_id == message_id]


class TestMessageQueue:
    @pytest.mark.asyncio
    async def test_single_message_lifecycle(self) -> None:
        updates: list[TurnUpdate] = []
        processor = GatedProcessor()
        queue = MessageQueue(processor, updates.append)
        queue.session_id = "s1"

        message_id = queue.enqueue("hello")
        assert message_id.startswith("msg_1_")
        assert queue.is_processing()
        await queue.wait_idle()

        assert processor.seen == ["hello"]
        assert kinds(updates) == [UpdateKind.STARTED, UpdateKind.COMPLETED]
        assert updates[-1].payload == {"content": "reply to hello"}
        assert all(u.session_id == "s1" and u.message_id == message_id for u in updates)
        assert not queue.is_processing()

    @pytest.mark.asyncio
    async def test_entries_run_one_at_a_time_in_order(self) -> None:
        updates: list[TurnUpdate] = []
        processor = GatedProcessor()
        gate = processor.gates["first"] = asyncio.Event()
        queue = MessageQueue(processor, updates.append)

        first = queue.enqueue("first")
        await processor.started.wait()
        second = queue.enqueue("second")
        third = queue.enqueue("third")

        assert len(queue) == 2
        queued = [u for u in updates if u.kind is UpdateKind.QUEUED]
        assert [(u.message_id, u.payload["position"]) for u in queued] == [(second, 1), (third, 2)]
        assert queue.current_message_id == first

        gate.set()
        await queue.wait_idle()

        assert processor.seen == ["first", "second", "third"]
        assert processor.max_active == 1
        assert kinds(updates, third) == [UpdateKind.QUEUED, UpdateKind.STARTED, UpdateKind.COMPLETED]
        assert len({first, second, third}) == 3

    @pytest.mark.asyncio
    async def test_stop_cancels_current_and_discards_backlog(self) -> None:
        updates: list[TurnUpdate] = []
        processor = GatedProcessor()
        processor.gates["long"] = asyncio.Event()
        queue = MessageQueue(processor, updates.append)

        current = queue.enqueue("long")
        await processor.started.wait()
        queue.enqueue("later")
        queue.enqueue("even later")

        discarded = queue.stop()
        await queue.wait_idle()

        assert discarded == 2
        assert processor.seen == ["long"]
        stopped = [u for u in updates if u.kind is UpdateKind.STOPPED]
        assert len(stopped) == 1
        assert stopped[0].message_id == current
        assert stopped[0].payload == {"discarded": 2, "partial": "partial"}
        # Nothing is reported for the aborted entry after STOPPED
        assert kinds(updates, current) == [UpdateKind.STARTED, UpdateKind.STOPPED]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_stop_when_idle(self) -> None:
        updates: list[TurnUpdate] = []
        queue = MessageQueue(GatedProcessor(), updates.append)

        assert queue.stop() == 0
        assert updates[0].kind is UpdateKind.STOPPED
        assert updates[0].message_id is None

    @pytest.mark.asyncio
    async def test_queue_accepts_messages_after_stop(self) -> None:
        processor = GatedProcessor()
        queue = MessageQueue(processor)
        queue.stop()

        queue.enqueue("again")
        await queue.wait_idle()

        assert processor.seen == ["again"]

    @pytest.mark.asyncio
    async def test_enqueue_right_after_stop_keeps_single_terminal_update(self) -> None:
        updates: list[TurnUpdate] = []
        processor = GatedProcessor()
        processor.gates["first"] = asyncio.Event()
        queue = MessageQueue(processor, updates.append)

        first = queue.enqueue("first")
        await processor.started.wait()
        queue.stop()
        second = queue.enqueue("second")
        await queue.wait_idle()

        assert kinds(updates, first) == [UpdateKind.STARTED, UpdateKind.STOPPED]
        assert not [u for u in updates if u.kind is UpdateKind.ERROR]
        assert kinds(updates, second)[-2:] == [UpdateKind.STARTED, UpdateKind.COMPLETED]
        assert processor.seen == ["first", "second"]

    @pytest.mark.asyncio
    async def test_processor_error_is_reported_and_queue_continues(self) -> None:
        updates: list[TurnUpdate] = []

        async def processor(ctx: TurnContext) -> str:
            if ctx.entry.text == "bad":
                raise ValueError("no good")
            return "fine"

        queue = MessageQueue(processor, updates.append)
        bad = queue.enqueue("bad")
        good = queue.enqueue("good")
        await queue.wait_idle()

        errors = [u for u in updates if u.kind is UpdateKind.ERROR]
        assert len(errors) == 1
        assert errors[0].message_id == bad
        assert errors[0].payload == {"error": "ValueError", "text": "no good"}
        assert kinds(updates, good)[-1] is UpdateKind.COMPLETED

    @pytest.mark.asyncio
    async def test_emit_from_processor_carries_message_id(self) -> None:
        updates: list[TurnUpdate] = []

        async def processor(ctx: TurnContext) -> str:
            ctx.emit(UpdateKind.DELTA, {"content": "Hi", "reasoning": None})
            return "Hi"

        queue = MessageQueue(processor, updates.append)
        message_id = queue.enqueue("x")
        await queue.wait_idle()

        assert kinds(updates) == [UpdateKind.STARTED, UpdateKind.DELTA, UpdateKind.COMPLETED]
        assert updates[1].message_id == message_id

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_break_processing(self) -> None:
        processor = GatedProcessor()

        def sink(update: TurnUpdate) -> None:
            raise RuntimeError("render failed")

        queue = MessageQueue(processor, sink)
        queue.enqueue("hello")
        await queue.wait_idle()

        assert processor.seen == ["hello"]
        assert not queue.is_processing()
