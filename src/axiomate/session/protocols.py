"""Contract between the orchestrator and the UI layer.

The orchestrator never renders anything. It reports progress as TurnUpdate
events through an UpdateSink supplied by the UI.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class UpdateKind(Enum):
    """Types of updates emitted while turns are queued and processed."""

    QUEUED = "queued"  # Entry waits behind the one in flight
    STARTED = "started"
    DELTA = "delta"  # Content or reasoning fragment
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SYSTEM = "system"  # Informational notice (truncation, compaction, ...)
    COMPLETED = "completed"
    ERROR = "error"
    STOPPED = "stopped"
    COMPACTED = "compacted"


@dataclass(frozen=True, slots=True)
class TurnUpdate:
    """One progress event for a queued message.

    Payload keys by kind:
    - DELTA: content, reasoning
    - TOOL_CALL: id, name, arguments
    - TOOL_RESULT: id, content
    - SYSTEM: text
    - COMPLETED: content
    - ERROR: error, text
    - STOPPED: discarded, partial
    - COMPACTED: old_session_id, new_session_id
    """

    kind: UpdateKind
    message_id: str | None
    session_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@runtime_checkable
class UpdateSink(Protocol):
    """Receives updates; must not block."""

    def __call__(self, update: TurnUpdate) -> None: ...


@dataclass(slots=True)
class StreamContent:
    """Accumulated visible and reasoning text of the turn in flight."""

    content: str = ""
    reasoning: str = ""


@dataclass(slots=True)
class SessionStatus:
    """Context usage of the active session, for status displays."""

    session_id: str | None
    used_tokens: int
    context_window: int
    usage_percent: float
    is_near_limit: bool
    is_full: bool
    message_count: int = 0
