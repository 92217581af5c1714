"""Anthropic Messages API client.

Speaks `POST {base_url}/messages`; streamed bodies are named SSE events
(`message_start`, `content_block_start/delta/stop`, `message_delta`,
`message_stop`, `error`).
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
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
from axiomate.errors import EmptyResponseError, ProtocolError
from axiomate.logging import get_logger

log = get_logger("llm.anthropic")

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_BETA = "interleaved-thinking-2025-05-14"
THINKING_BUDGET_TOKENS = 10_000

_STOP_REASONS = {
    "end_turn": FinishReason.STOP,
    "tool_use": FinishReason.TOOL_CALLS,
    "max_tokens": FinishReason.LENGTH,
}


def map_stop_reason(reason: str | None) -> FinishReason:
    """Map an Anthropic stop_reason; unknown values become STOP."""
    return _STOP_REASONS.get(reason or "", FinishReason.STOP)


def extract_system(messages: list[ChatMessage]) -> str | None:
    parts = [m.content for m in messages if m.role is Role.SYSTEM and m.content]
    return "\n\n".join(parts) if parts else None


def _parse_arguments(arguments: str) -> dict[str, Any]:
    try:
        value = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert normalized messages to Messages API turns.

    System messages are dropped (see extract_system). Consecutive tool
    results are grouped into one user turn of tool_result blocks.
    """
    result: list[dict[str, Any]] = []
    pending_results: list[dict[str, Any]] = []

    def flush_results() -> None:
        if pending_results:
            result.append({"role": "user", "content": list(pending_results)})
            pending_results.clear()

    for message in messages:
        if message.role is Role.SYSTEM:
            continue
        if message.role is Role.TOOL:
            pending_results.append(
                {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id or "",
                    "content": message.content,
                }
            )
            continue

        flush_results()
        if message.role is Role.ASSISTANT and (message.tool_calls or message.reasoning_signature):
            blocks: list[dict[str, Any]] = []
            if message.reasoning and message.reasoning_signature:
                blocks.append(
                    {
                        "type": "thinking",
                        "thinking": message.reasoning,
                        "signature": message.reasoning_signature,
                    }
                )
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            for call in message.tool_calls or []:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": _parse_arguments(call.arguments),
                    }
                )
            result.append({"role": "assistant", "content": blocks})
        else:
            result.append({"role": message.role.value, "content": message.content})

    flush_results()
    return result


def to_anthropic_tools(tools: list[ToolSchema]) -> list[dict[str, Any]]:
    return [
        {"name": t.name, "description": t.description, "input_schema": t.parameters}
        for t in tools
    ]


def _stable_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


@dataclass(slots=True)
class _Block:
    """A content block being assembled from stream events."""

    type: str
    id: str = ""
    name: str = ""
    text: list[str] = field(default_factory=list)
    signature: str = ""


class AnthropicClient(HTTPProtocolClient):
    """Client for Anthropic-compatible Messages endpoints."""

    vendor = "Anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    endpoint = "/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "anthropic-beta": ANTHROPIC_BETA,
            "Content-Type": "application/json",
        }

    def _build_body(
        self,
        messages: list[ChatMessage],
        tools: list[ToolSchema] | None,
        options: RequestOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        wire_messages = to_anthropic_messages(messages)
        if options and options.prefill:
            wire_messages.append({"role": "assistant", "content": options.prefill})

        body: dict[str, Any] = {
            "model": self.config.model,
            "messages": wire_messages,
            "max_tokens": self.config.max_tokens,
        }
        if stream:
            body["stream"] = True

        system = extract_system(messages)
        if system:
            body["system"] = system

        thinking = self.config.thinking_enabled
        if thinking:
            body["thinking"] = {"type": "enabled", "budget_tokens": THINKING_BUDGET_TOKENS}
            # max_tokens must exceed the thinking budget
            body["max_tokens"] = max(self.config.max_tokens, THINKING_BUDGET_TOKENS + 4096)

        if tools:
            body["tools"] = to_anthropic_tools(tools)
            # Forced tool use is incompatible with extended thinking
            if options and options.forced_tool and not thinking:
                body["tool_choice"] = {"type": "tool", "name": options.forced_tool}

        return body

    def _parse_response(self, data: dict[str, Any]) -> ChatResult:
        blocks = data.get("content") or []
        if not blocks:
            raise EmptyResponseError("Anthropic API returned no response")

        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        thinking_blocks = [b for b in blocks if b.get("type") == "thinking"]
        reasoning = "".join(b.get("thinking", "") for b in thinking_blocks)
        signature = thinking_blocks[-1].get("signature") if thinking_blocks else None
        tool_calls = [
            ToolCall(id=b.get("id", ""), name=b.get("name", ""), arguments=_stable_json(b.get("input") or {}))
            for b in blocks
            if b.get("type") == "tool_use"
        ]

        message = ChatMessage(
            role=Role.ASSISTANT,
            content=text,
            tool_calls=tool_calls or None,
            reasoning=reasoning or None,
            reasoning_signature=signature or None,
        )

        usage = None
        raw_usage = data.get("usage")
        if raw_usage:
            usage = Usage(
                prompt_tokens=raw_usage.get("input_tokens") or 0,
                completion_tokens=raw_usage.get("output_tokens") or 0,
            )
        return ChatResult(
            message=message,
            finish_reason=map_stop_reason(data.get("stop_reason")),
            usage=usage,
        )

    async def _parse_stream(self, lines: AsyncIterator[str]) -> AsyncIterator[StreamDelta]:
        blocks: dict[int, _Block] = {}
        stop_reason: str | None = None
        usage = Usage()

        async for line in lines:
            line = line.strip()
            # Event names are repeated in the payload's "type" field
            if not line.startswith("data: "):
                continue
            data = line[6:]
            if not data or data == "[DONE]":
                continue

            try:
                event = json.loads(data)
            except json.JSONDecodeError:
                log.debug("Skipping malformed stream line: %r", data[:200])
                continue
            if not isinstance(event, dict):
                continue

            kind = event.get("type")

            if kind == "message_start":
                raw_usage = (event.get("message") or {}).get("usage") or {}
                usage.prompt_tokens = raw_usage.get("input_tokens") or 0

            elif kind == "content_block_start":
                raw = event.get("content_block") or {}
                index = event.get("index", 0)
                block = _Block(type=raw.get("type", ""), id=raw.get("id", ""), name=raw.get("name", ""))
                blocks[index] = block
                if block.type == "tool_use":
                    yield StreamDelta(
                        tool_call_fragments=[
                            ToolCallFragment(index=index, id=block.id, name=block.name)
                        ]
                    )

            elif kind == "content_block_delta":
                index = event.get("index", 0)
                block = blocks.get(index)
                delta = event.get("delta") or {}
                if block is None:
                    continue
                delta_type = delta.get("type")
                if delta_type == "text_delta" and delta.get("text"):
                    block.text.append(delta["text"])
                    yield StreamDelta(content=delta["text"])
                elif delta_type == "thinking_delta" and delta.get("thinking"):
                    block.text.append(delta["thinking"])
                    yield StreamDelta(reasoning=delta["thinking"])
                elif delta_type == "signature_delta" and delta.get("signature"):
                    block.signature += delta["signature"]
                elif delta_type == "input_json_delta" and delta.get("partial_json"):
                    block.text.append(delta["partial_json"])
                    yield StreamDelta(
                        tool_call_fragments=[
                            ToolCallFragment(index=index, arguments=delta["partial_json"])
                        ]
                    )

            elif kind == "message_delta":
                delta = event.get("delta") or {}
                if delta.get("stop_reason"):
                    stop_reason = delta["stop_reason"]
                output_tokens = (event.get("usage") or {}).get("output_tokens")
                if output_tokens is not None:
                    usage.completion_tokens = output_tokens

            elif kind == "message_stop":
                yield self._final_delta(blocks, stop_reason, usage)
                return

            elif kind == "error":
                error = event.get("error") or {}
                raise ProtocolError(
                    self.vendor,
                    0,
                    error.get("type", "error"),
                    error.get("message") or "Unknown error",
                )

        yield StreamDelta(finish_reason=FinishReason.STOP)

    @staticmethod
    def _final_delta(blocks: dict[int, _Block], stop_reason: str | None, usage: Usage) -> StreamDelta:
        calls = [
            ToolCall(id=b.id, name=b.name, arguments="".join(b.text) or "{}")
            for _, b in sorted(blocks.items())
            if b.type == "tool_use" and b.id and b.name
        ]
        signature = next(
            (b.signature for _, b in sorted(blocks.items()) if b.type == "thinking" and b.signature),
            None,
        )
        final = StreamDelta(
            finish_reason=FinishReason.TOOL_CALLS if calls else map_stop_reason(stop_reason),
            tool_calls=calls or None,
            reasoning_signature=signature,
        )
        if usage.prompt_tokens or usage.completion_tokens:
            final.usage = usage
        return final
