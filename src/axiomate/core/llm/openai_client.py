"""OpenAI-compatible chat completions client.

Speaks `POST {base_url}/chat/completions`; streamed bodies are flat
`data: <json>` lines terminated by `data: [DONE]`.
"""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from axiomate.core.llm.base import HTTPProtocolClient
from axiomate.core.llm.types import (
    ChatMessage,
    ChatResult,
    FinishReason,
    RequestOptions,
    Role,
    StreamDelta,
    ToolCall,
    ToolCallFragment,
    ToolSchema,
    Usage,
)
from axiomate.errors import EmptyResponseError
from axiomate.logging import get_logger

log = get_logger("llm.openai")

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "eos": FinishReason.EOS,
    "tool_calls": FinishReason.TOOL_CALLS,
    "length": FinishReason.LENGTH,
}


def map_finish_reason(reason: str | None) -> FinishReason:
    """Map an OpenAI finish_reason; unknown values become STOP."""
    return _FINISH_REASONS.get(reason or "", FinishReason.STOP)


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert normalized messages to chat-completions messages."""
    result: list[dict[str, Any]] = []
    for message in messages:
        if message.role is Role.TOOL:
            result.append(
                {
                    "role": "tool",
                    "tool_call_id": message.tool_call_id or "",
                    "content": message.content,
                }
            )
        elif message.role is Role.ASSISTANT and message.tool_calls:
            result.append(
                {
                    "role": "assistant",
                    "content": message.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments},
                        }
                        for call in message.tool_calls
                    ],
                }
            )
        else:
            result.append({"role": message.role.value, "content": message.content})
    return result


def to_openai_tools(tools: list[ToolSchema]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
        for tool in tools
    ]


def _parse_usage(raw: dict[str, Any] | None) -> Usage | None:
    if not raw:
        return None
    return Usage(
        prompt_tokens=raw.get("prompt_tokens") or 0,
        completion_tokens=raw.get("completion_tokens") or 0,
    )


@dataclass(slots=True)
class _PendingCall:
    id: str
    name: str
    arguments: str
    generated_id: bool = False


class OpenAIClient(HTTPProtocolClient):
    """Client for OpenAI-compatible endpoints (OpenAI, SiliconFlow, DashScope, Ollama...)."""

    vendor = "OpenAI"
    default_base_url = "https://api.openai.com/v1"
    endpoint = "/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _build_body(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None,
        options: RequestOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        wire_messages = to_openai_messages(messages)
        if options and options.prefill:
            # Chat-prefix completion: the model continues this assistant text
            wire_messages.append({"role": "assistant", "content": options.prefill, "prefix": True})

        body: dict[str, Any] = {
            "model": self.config.model,
            "messages": wire_messages,
            "stream": stream,
        }

        if tools:
            body["tools"] = to_openai_tools(tools)
            if options and options.forced_tool:
                body["tool_choice"] = {
                    "type": "function",
                    "function": {"name": options.forced_tool},
                }
            else:
                body["tool_choice"] = "auto"

        if self.config.thinking_params is not None:
            body.update(self.config.thinking_params)
        elif self.config.thinking_enabled:
            body["enable_thinking"] = True

        return body

    def _parse_response(self, data: dict[str, Any]) -> ChatResult:
        choices = data.get("choices") or []
        if not choices:
            raise EmptyResponseError("OpenAI API returned no response")

        choice = choices[0]
        raw = choice.get("message") or {}
        tool_calls = [
            ToolCall(
                id=tc.get("id") or f"call_{int(time.time() * 1000)}_{i}",
                name=(tc.get("function") or {}).get("name", ""),
                arguments=(tc.get("function") or {}).get("arguments") or "",
            )
            for i, tc in enumerate(raw.get("tool_calls") or [])
        ]
        message = ChatMessage(
            role=Role.ASSISTANT,
            content=raw.get("content") or "",
            tool_calls=tool_calls or None,
            reasoning=raw.get("reasoning_content") or None,
        )

        usage = _parse_usage(data.get("usage"))
        finish = map_finish_reason(choice.get("finish_reason"))
        if tool_calls:
            finish = FinishReason.TOOL_CALLS
        return ChatResult(message=message, finish_reason=finish, usage=usage)

    async def _parse_stream(self, lines: AsyncIterator[str]) -> AsyncIterator[StreamDelta]:
        pending: dict[int, _PendingCall] = {}
        finish_reason: str | None = None
        usage: Usage | None = None

        # Usage can trail finish_reason in a chunk without choices
        async for line in lines:
            line = line.strip()
            if not line.startswith("data: "):
                continue
            data = line[6:]
            if data == "[DONE]":
                break

            try:
                chunk = json.loads(data)
            except json.JSONDecodeError:
                log.debug("Skipping malformed stream line: %r", data[:200])
                continue
            if not isinstance(chunk, dict):
                continue

            usage = _parse_usage(chunk.get("usage")) or usage
            if not chunk.get("choices"):
                continue

            choice = chunk["choices"][0]
            delta = choice.get("delta") or {}
            out = StreamDelta(
                content=delta.get("content") or None,
                reasoning=delta.get("reasoning_content") or None,
                tool_call_fragments=self._accumulate(pending, delta.get("tool_calls") or []),
            )
            if out.content or out.reasoning or out.tool_call_fragments:
                yield out
            finish_reason = choice.get("finish_reason") or finish_reason

        if not finish_reason:
            yield StreamDelta(finish_reason=FinishReason.STOP, usage=usage)
            return

        # Some providers report "stop" while still returning tool calls
        calls = [
            ToolCall(id=p.id, name=p.name, arguments=p.arguments)
            for _, p in sorted(pending.items())
            if p.name
        ]
        yield StreamDelta(
            finish_reason=FinishReason.TOOL_CALLS if calls else map_finish_reason(finish_reason),
            tool_calls=calls or None,
            usage=usage,
        )

    @staticmethod
    def _accumulate(
        pending: dict[int, _PendingCall],
        raw_calls: list[dict[str, Any]],
    ) -> list[ToolCallFragment]:
        fragments: list[ToolCallFragment] = []
        for raw in raw_calls:
            index = raw.get("index", 0)
            function = raw.get("function") or {}
            arguments = function.get("arguments") or ""
            call = pending.get(index)
            if call is None:
                call = _PendingCall(
                    id=raw.get("id") or f"call_{int(time.time() * 1000)}_{index}",
                    name=function.get("name") or "",
                    arguments=arguments,
                    generated_id=not raw.get("id"),
                )
                pending[index] = call
            else:
                call.arguments += arguments
                if raw.get("id") and call.generated_id:
                    call.id = raw["id"]
                    call.generated_id = False
                if function.get("name") and not call.name:
                    call.name = function["name"]
            fragments.append(
                ToolCallFragment(
                    index=index,
                    id=raw.get("id"),
                    name=function.get("name"),
                    arguments=arguments,
                )
            )
        return fragments
