"""Normalized chat types shared by every protocol client.

Clients translate these to and from their vendor wire formats; nothing
outside `axiomate.core.llm` sees vendor-shaped payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(Enum):
    """Why a model turn ended."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    EOS = "eos"


@dataclass(slots=True)
class ToolCall:
    """A complete tool call requested by the model.

    Attributes:
        id: Call id echoed back in the matching tool result
        name: Function name, `<toolId>_<action>`
        arguments: JSON-encoded argument object
    """

    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            arguments=data.get("arguments", ""),
        )


@dataclass(slots=True)
class ChatMessage:
    """One message of a conversation.

    Attributes:
        role: Who produced the message
        content: Visible text
        tool_calls: Calls requested by an assistant message
        reasoning: Thinking text emitted alongside an assistant message
        tool_call_id: For role TOOL, the call this message answers
    """

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    reasoning: str | None = None
    tool_call_id: str | None = None
    reasoning_signature: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["toolCalls"] = [c.to_dict() for c in self.tool_calls]
        if self.reasoning:
            data["reasoning"] = self.reasoning
        if self.tool_call_id:
            data["toolCallId"] = self.tool_call_id
        if self.reasoning_signature:
            data["reasoningSignature"] = self.reasoning_signature
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        calls = data.get("toolCalls")
        return cls(
            role=Role(data.get("role", "user")),
            content=data.get("content") or "",
            tool_calls=[ToolCall.from_dict(c) for c in calls] if calls else None,
            reasoning=data.get("reasoning"),
            tool_call_id=data.get("toolCallId"),
            reasoning_signature=data.get("reasoningSignature"),
        )


@dataclass(slots=True)
class ToolCallFragment:
    """A piece of a tool call as it streams in, keyed by stream-local index."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass(slots=True)
class StreamDelta:
    """One incremental update of a streamed response.

    Exactly one delta per stream carries a finish_reason, and it is the
    last one. When the turn ends in tool calls, that delta also carries the
    assembled calls in `tool_calls`.
    """

    content: str | None = None
    reasoning: str | None = None
    tool_call_fragments: list[ToolCallFragment] = field(default_factory=list)
    tool_calls: list[ToolCall] | None = None
    finish_reason: FinishReason | None = None
    reasoning_signature: str | None = None
    usage: Usage | None = None


@dataclass(slots=True)
class Usage:
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(slots=True)
class ChatResult:
    """Result of a non-streaming chat call."""

    message: ChatMessage
    finish_reason: FinishReason
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class ToolSchema:
    """A callable function exposed to the model.

    Attributes:
        name: Function name, `<toolId>_<action>`
        description: Shown to the model
        parameters: JSON Schema object for the arguments
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass(slots=True)
class RequestOptions:
    """Per-request negotiation knobs set by the orchestrator.

    Attributes:
        forced_tool: Function name the model must call, if any
        prefill: Text pre-seeded as the start of the assistant reply
    """

    forced_tool: str | None = None
    prefill: str | None = None
