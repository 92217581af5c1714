"""Shared test utilities for axiomate tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from axiomate.core.llm.cancel import CancellationToken
from axiomate.core.llm.types import (
    ChatMessage,
    ChatResult,
    FinishReason,
    RequestOptions,
    Role,
    StreamDelta,
    ToolCall,
    ToolSchema,
    Usage,
)
from axiomate.errors import StreamAbortedError
from axiomate.tools.types import ToolAction, ToolCategory, ToolDescriptor, ToolOutput, ToolParameter


def sse_body(*lines: str) -> bytes:
    """Join raw stream lines into a response body."""
    return ("\n".join(lines) + "\n").encode()


def openai_chunk(
    content: str | None = None,
    reasoning: str | None = None,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str | None = None,
    usage: dict[str, int] | None = None,
) -> str:
    """A `data: {...}` line in chat-completions stream format."""
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    chunk: dict[str, Any] = {"choices": [{"delta": delta, "finish_reason": finish_reason}]}
    if usage is not None:
        chunk["usage"] = usage
    return "data: " + json.dumps(chunk)


def anthropic_event(event: dict[str, Any]) -> list[str]:
    """The `event:` / `data:` / blank line triple for one SSE event."""
    return [f"event: {event['type']}", "data: " + json.dumps(event), ""]


def make_transport(*responses: httpx.Response | Exception) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """MockTransport replaying `responses` in order; the last one repeats.

    Returns:
        The transport and the list it records requests into.
    """
    requests: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), requests


def make_tool(tool_id: str, *actions: str, name: str | None = None) -> ToolDescriptor:
    """A catalog entry with one string parameter per action."""
    return ToolDescriptor(
        id=tool_id,
        name=name or tool_id,
        description=f"{tool_id} tool",
        category=ToolCategory.OTHER,
        actions=tuple(
            ToolAction(
                name=action,
                description=f"Run {action}",
                parameters=(ToolParameter(name="arg", description="Argument", required=False),),
            )
            for action in (actions or ("run",))
        ),
    )


class FakeClient:
    """Scripted ProtocolClient.

    Each stream_chat call replays the next script. A gate registered for a
    call index holds back that call's final delta until the gate is set or
    the cancellation token fires.
    """

    def __init__(self) -> None:
        self.streams: list[list[StreamDelta]] = []
        self.gates: dict[int, asyncio.Event] = {}
        self.chat_results: list[ChatResult] = []
        self.stream_calls: list[dict[str, Any]] = []
        self.chat_calls: list[list[ChatMessage]] = []

    @property
    def model(self) -> str:
        return "fake-model"

    def reply(self, text: str, usage: Usage | None = None) -> None:
        self.streams.append([
            StreamDelta(content=text),
            StreamDelta(finish_reason=FinishReason.STOP, usage=usage),
        ])

    def tool_round(self, *calls: ToolCall) -> None:
        self.streams.append([
            StreamDelta(finish_reason=FinishReason.TOOL_CALLS, tool_calls=list(calls)),
        ])

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> ChatResult:
        self.chat_calls.append(list(messages))
        if self.chat_results:
            return self.chat_results.pop(0)
        return ChatResult(
            message=ChatMessage(role=Role.ASSISTANT, content="summary of the chat"),
            finish_reason=FinishReason.STOP,
        )

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None = None,
        options: RequestOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]:
        call_index = len(self.stream_calls)
        self.stream_calls.append({"messages": list(messages), "tools": tools, "options": options})
        if cancel is not None and cancel.cancelled:
            raise StreamAbortedError()

        script = self.streams.pop(0) if self.streams else [StreamDelta(finish_reason=FinishReason.STOP)]
        gate = self.gates.get(call_index)
        for i, delta in enumerate(script):
            if gate is not None and i == len(script) - 1:
                waiters = {asyncio.ensure_future(gate.wait())}
                if cancel is not None:
                    waiters.add(asyncio.ensure_future(cancel.wait()))
                _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                for task in pending:
                    task.cancel()
                if cancel is not None and cancel.cancelled:
                    raise StreamAbortedError()
            yield delta


class RecordingExecutor:
    """ToolExecutor that records calls and returns canned output."""

    def __init__(self, output: ToolOutput | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.output = output or ToolOutput(stdout="ok")

    async def execute_tool(self, name: str, args: dict[str, Any]) -> ToolOutput:
        self.calls.append((name, args))
        return self.output
