"""Cancellation token passed explicitly into every suspendable call."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from axiomate.logging import get_logger

log = get_logger("llm")


class CancellationToken:
    """One-shot cancellation signal for a single model turn.

    Listeners run synchronously when cancel() is called, or immediately on
    registration if the token is already cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._listeners: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log.exception("Cancellation listener failed")

    def add_listener(self, listener: Callable[[], None]) -> None:
        if self.cancelled:
            listener()
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def wait(self) -> None:
        await self._event.wait()
