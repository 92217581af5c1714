"""Live, in-memory conversation for the active session.

Tracks messages with their token cost and decides when the history has to
be compacted. The session store serializes it via to_state/from_state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from axiomate.core.llm.types import ChatMessage, Role, Usage
from axiomate.core.tokens import estimate_tokens

SUMMARY_PREFIX = "[Previous conversation summary]"

# Budget for the prefix line wrapped around a compaction summary
_SUMMARY_OVERHEAD_TOKENS = 30


@dataclass(slots=True)
class SessionMessage:
    """A message plus its token cost.

    Attributes:
        message: The chat message
        tokens: Estimated, or provider-reported when `is_actual`
        is_actual: Whether `tokens` came from provider usage
        timestamp: Seconds since the epoch
    """

    message: ChatMessage
    tokens: int
    is_actual: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message.to_dict(),
            "tokens": self.tokens,
            "isActual": self.is_actual,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionMessage:
        message = ChatMessage.from_dict(data.get("message", {}))
        tokens = data.get("tokens")
        return cls(
            message=message,
            tokens=int(tokens) if tokens is not None else estimate_tokens(message.content),
            is_actual=bool(data.get("isActual", False)),
            timestamp=float(data.get("timestamp") or time.time()),
        )


@dataclass(slots=True)
class ConversationStatus:
    used_tokens: int
    available_tokens: int
    context_window: int
    usage_percent: float
    is_near_limit: bool
    is_full: bool
    message_count: int


@dataclass(slots=True)
class CompactCheck:
    should_compact: bool
    usage_percent: float
    projected_percent: float
    message_count: int
    real_message_count: int
    is_context_full: bool


@dataclass(frozen=True, slots=True)
class Checkpoint:
    message_count: int
    prompt_tokens: int
    completion_tokens: int


@dataclass(slots=True)
class ConversationState:
    """Everything needed to persist and restore a conversation."""

    messages: list[SessionMessage] = field(default_factory=list)
    system_prompt: SessionMessage | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


class Conversation:
    """Ordered message history with token accounting.

    Provider usage, once reported, replaces the estimate: prompt tokens of
    the latest response are taken as-is and completion tokens accumulate.
    """

    def __init__(
        self,
        context_window: int,
        near_limit_threshold: float = 0.8,
        full_threshold: float = 0.95,
        compact_message_limit: int | None = None,
    ) -> None:
        self.context_window = context_window
        self.near_limit_threshold = near_limit_threshold
        self.full_threshold = full_threshold
        self.compact_message_limit = compact_message_limit

        self._messages: list[SessionMessage] = []
        self._system_prompt: SessionMessage | None = None
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._tools_tokens = 0

    # -- building --------------------------------------------------------

    def set_system_prompt(self, prompt: str) -> None:
        if not prompt:
            self._system_prompt = None
            return
        self._system_prompt = SessionMessage(
            message=ChatMessage(role=Role.SYSTEM, content=prompt),
            tokens=estimate_tokens(prompt),
        )

    @property
    def system_prompt(self) -> str | None:
        return self._system_prompt.message.content if self._system_prompt else None

    def set_tools_token_estimate(self, tokens: int) -> None:
        self._tools_tokens = max(0, tokens)

    def add_user_message(self, content: str) -> None:
        self._messages.append(
            SessionMessage(
                message=ChatMessage(role=Role.USER, content=content),
                tokens=estimate_tokens(content),
            )
        )

    def add_assistant_message(self, message: ChatMessage, usage: Usage | None = None) -> None:
        if usage is not None:
            self._prompt_tokens = usage.prompt_tokens
            self._completion_tokens += usage.completion_tokens
            tokens = usage.completion_tokens
        else:
            tokens = estimate_tokens(message.content)
        self._messages.append(
            SessionMessage(message=message, tokens=tokens, is_actual=usage is not None)
        )

    def add_tool_message(self, message: ChatMessage) -> None:
        self._messages.append(
            SessionMessage(message=message, tokens=estimate_tokens(message.content))
        )

    def messages_for_request(self) -> list[ChatMessage]:
        """System prompt (if any) followed by the history."""
        result = [self._system_prompt.message] if self._system_prompt else []
        result.extend(m.message for m in self._messages)
        return result

    def history(self) -> list[ChatMessage]:
        return [m.message for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages = []
        self._system_prompt = None
        self._prompt_tokens = 0
        self._completion_tokens = 0

    # -- accounting ------------------------------------------------------

    def estimated_tokens(self) -> int:
        total = self._tools_tokens
        if self._system_prompt:
            total += self._system_prompt.tokens
        return total + sum(m.tokens for m in self._messages)

    def used_tokens(self) -> int:
        if self._prompt_tokens > 0:
            return self._prompt_tokens + self._completion_tokens
        return self.estimated_tokens()

    def available_tokens(self) -> int:
        return max(0, self.context_window - self.used_tokens())

    def _percent(self, tokens: int) -> float:
        if self.context_window <= 0:
            return 100.0
        return tokens / self.context_window * 100

    def status(self) -> ConversationStatus:
        used = self.used_tokens()
        percent = self._percent(used)
        return ConversationStatus(
            used_tokens=used,
            available_tokens=self.available_tokens(),
            context_window=self.context_window,
            usage_percent=percent,
            is_near_limit=percent >= self.near_limit_threshold * 100,
            is_full=percent >= self.full_threshold * 100,
            message_count=len(self._messages),
        )

    def real_message_count(self) -> int:
        return sum(
            1 for m in self._messages if not m.message.content.startswith(SUMMARY_PREFIX)
        )

    def should_compact(
        self,
        estimated_new_tokens: int = 0,
        compact_threshold: float = 0.85,
    ) -> CompactCheck:
        """Check whether the next request should be preceded by compaction.

        Args:
            estimated_new_tokens: Cost of the message about to be sent
            compact_threshold: Fraction of the context window that triggers compaction

        Returns:
            The decision with the figures it was based on.
        """
        used = self.used_tokens()
        projected_percent = self._percent(used + estimated_new_tokens)
        real_count = self.real_message_count()

        over_budget = projected_percent >= compact_threshold * 100
        over_count = (
            self.compact_message_limit is not None
            and real_count >= self.compact_message_limit
        )
        return CompactCheck(
            should_compact=real_count >= 2 and (over_budget or over_count),
            usage_percent=self._percent(used),
            projected_percent=projected_percent,
            message_count=len(self._messages),
            real_message_count=real_count,
            is_context_full=projected_percent >= 100,
        )

    def compact_with(self, summary: str) -> None:
        """Replace the history with a single summary message."""
        self._messages = [
            SessionMessage(
                message=ChatMessage(role=Role.ASSISTANT, content=f"{SUMMARY_PREFIX}\n{summary}"),
                tokens=estimate_tokens(summary) + _SUMMARY_OVERHEAD_TOKENS,
            )
        ]
        self._prompt_tokens = 0
        self._completion_tokens = 0

    # -- checkpoints -----------------------------------------------------

    def checkpoint(self) -> Checkpoint:
        return Checkpoint(len(self._messages), self._prompt_tokens, self._completion_tokens)

    def rollback(self, checkpoint: Checkpoint) -> None:
        del self._messages[checkpoint.message_count :]
        self._prompt_tokens = checkpoint.prompt_tokens
        self._completion_tokens = checkpoint.completion_tokens

    # -- tool call pairing -----------------------------------------------

    def validate(self) -> list[str]:
        """Describe every unpaired tool call or tool result; empty when valid."""
        errors: list[str] = []
        pending: dict[str, int] = {}

        for i, entry in enumerate(self._messages):
            msg = entry.message
            if msg.role is Role.ASSISTANT and msg.tool_calls:
                for call in msg.tool_calls:
                    pending[call.id] = i
            if msg.role is Role.TOOL and msg.tool_call_id:
                if msg.tool_call_id in pending:
                    del pending[msg.tool_call_id]
                else:
                    errors.append(
                        f"Orphan tool result at index {i}: "
                        f"tool_call_id={msg.tool_call_id} has no matching tool_call"
                    )

        for call_id, i in pending.items():
            errors.append(
                f"Orphan tool_call at index {i}: tool_call_id={call_id} has no matching result"
            )
        return errors

    def repair(self) -> int:
        """Drop orphan tool results and unanswered tool calls.

        Returns:
            Number of messages removed.
        """
        if not self.validate():
            return 0

        call_ids = {
            call.id
            for entry in self._messages
            if entry.message.role is Role.ASSISTANT and entry.message.tool_calls
            for call in entry.message.tool_calls
        }
        answered = {
            entry.message.tool_call_id
            for entry in self._messages
            if entry.message.role is Role.TOOL and entry.message.tool_call_id in call_ids
        }

        kept: list[SessionMessage] = []
        for entry in self._messages:
            msg = entry.message
            if msg.role is Role.ASSISTANT and msg.tool_calls:
                msg.tool_calls = [c for c in msg.tool_calls if c.id in answered] or None
            if msg.role is Role.TOOL and msg.tool_call_id and msg.tool_call_id not in answered:
                continue
            kept.append(entry)

        removed = len(self._messages) - len(kept)
        self._messages = kept
        if removed:
            self._prompt_tokens = 0
            self._completion_tokens = 0
        return removed

    # -- persistence -----------------------------------------------------

    def to_state(self) -> ConversationState:
        return ConversationState(
            messages=list(self._messages),
            system_prompt=self._system_prompt,
            prompt_tokens=self._prompt_tokens,
            completion_tokens=self._completion_tokens,
        )

    def restore(self, state: ConversationState) -> None:
        self._messages = list(state.messages)
        self._system_prompt = state.system_prompt
        self._prompt_tokens = state.prompt_tokens
        self._completion_tokens = state.completion_tokens

    @classmethod
    def from_state(
        cls,
        state: ConversationState,
        context_window: int,
        **kwargs: Any,
    ) -> Conversation:
        conversation = cls(context_window, **kwargs)
        conversation.restore(state)
        return conversation
