"""Single-flight FIFO message queue.

At most one entry is processed at a time; entries submitted meanwhile wait
in a backlog. Each processed entry gets its own CancellationToken, fired by
stop().
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from axiomate.core.llm.cancel import CancellationToken
from axiomate.errors import StreamAbortedError
from axiomate.logging import get_logger
from axiomate.session.content import FileReference
from axiomate.session.protocols import StreamContent, TurnUpdate, UpdateKind, UpdateSink

log = get_logger("queue")


@dataclass(slots=True)
class QueueEntry:
    """A submitted message.

    Attributes:
        id: `msg_<counter>_<epoch ms>`
        text: Message as typed
        files: Attached file references
        plan_mode: Plan-mode snapshot taken at enqueue time
        enqueued_at: Seconds since the epoch
    """

    id: str
    text: str
    files: list[FileReference] = field(default_factory=list)
    plan_mode: bool = False
    enqueued_at: float = field(default_factory=time.time)


@dataclass(slots=True)
class TurnContext:
    """Handed to the processor for the entry in flight."""

    entry: QueueEntry
    cancel: CancellationToken
    emit: Callable[[UpdateKind, dict], None]
    stream: StreamContent = field(default_factory=StreamContent)


Processor = Callable[[TurnContext], Awaitable[str]]


def _discard(update: TurnUpdate) -> None:
    pass


class MessageQueue:
    """Runs a processor over submitted entries strictly in order.

    Args:
        processor: Coroutine handling one entry; returns the final reply
        on_update: Sink for QUEUED/STARTED/COMPLETED/ERROR/STOPPED updates
            and anything the processor emits
    """

    def __init__(self, processor: Processor, on_update: UpdateSink | None = None) -> None:
        self._processor = processor
        self._on_update = on_update or _discard
        self._backlog: deque[QueueEntry] = deque()
        self._counter = itertools.count(1)
        self._current: TurnContext | None = None
        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.session_id: str | None = None

    def _emit(self, kind: UpdateKind, message_id: str | None, payload: dict | None = None) -> None:
        update = TurnUpdate(kind, message_id, self.session_id, payload or {})
        try:
            self._on_update(update)
        except Exception:
            log.exception("Update sink failed on %s", kind.value)

    def enqueue(self, text: str, files: list[FileReference] | None = None, plan_mode: bool = False) -> str:
        """Submit a message and return its id immediately.

        Must be called from within a running event loop. When idle,
        processing starts in a background task; otherwise the entry is
        queued behind the one in flight.
        """
        entry = QueueEntry(
            id=f"msg_{next(self._counter)}_{int(time.time() * 1000)}",
            text=text,
            files=list(files or []),
            plan_mode=plan_mode,
        )
        self._backlog.append(entry)

        if self.is_processing():
            self._emit(UpdateKind.QUEUED, entry.id, {"position": len(self._backlog)})
        else:
            self._idle.clear()
            self._task = asyncio.get_running_loop().create_task(self._run())
        return entry.id

    def is_processing(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current_message_id(self) -> str | None:
        return self._current.entry.id if self._current else None

    def __len__(self) -> int:
        return len(self._backlog)

    def stop(self) -> int:
        """Cancel the entry in flight and drop the backlog.

        Returns:
            Number of backlog entries discarded.
        """
        discarded = len(self._backlog)
        self._backlog.clear()

        current = self._current
        partial = ""
        if current is not None:
            partial = current.stream.content
            current.cancel.cancel()

        log.info("Stopped queue, discarded %d pending messages", discarded)
        self._emit(
            UpdateKind.STOPPED,
            current.entry.id if current else None,
            {"discarded": discarded, "partial": partial},
        )
        return discarded

    async def wait_idle(self) -> None:
        """Wait until the backlog is drained and nothing is in flight."""
        await self._idle.wait()

    async def _run(self) -> None:
        try:
            while self._backlog:
                await self._process(self._backlog.popleft())
        finally:
            self._current = None
            self._idle.set()

    async def _process(self, entry: QueueEntry) -> None:
        ctx = TurnContext(
            entry=entry,
            cancel=CancellationToken(),
            emit=lambda kind, payload: self._emit(kind, entry.id, payload),
        )
        self._current = ctx
        self._emit(UpdateKind.STARTED, entry.id)

        # A stopped entry already got its STOPPED update from stop()
        try:
            reply = await self._processor(ctx)
        except StreamAbortedError:
            if not ctx.cancel.cancelled:
                self._emit(UpdateKind.ERROR, entry.id, {"error": "aborted", "text": "Request was aborted"})
        except Exception as e:
            log.exception("Message %s failed", entry.id)
            if not ctx.cancel.cancelled:
                self._emit(UpdateKind.ERROR, entry.id, {"error": type(e).__name__, "text": str(e)})
        else:
            if not ctx.cancel.cancelled:
                self._emit(UpdateKind.COMPLETED, entry.id, {"content": reply})
        finally:
            self._current = None
