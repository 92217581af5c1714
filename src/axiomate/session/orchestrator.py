"""Turn orchestration for the active session.

Drives one queued message at a time through content building, compaction,
tool masking, streaming and tool-call round trips, and persists the
conversation when the turn ends.
"""

from __future__ import annotations

import json
import os
import sys
from contextlib import aclosing
from dataclasses import dataclass

from axiomate.config import Config
from axiomate.core.llm.base import ProtocolClient
from axiomate.core.llm.cancel import CancellationToken
from axiomate.core.llm.types import ChatMessage, FinishReason, RequestOptions, Role, StreamDelta, ToolSchema
from axiomate.core.models import ModelConfig
from axiomate.core.prompts import COMPACT_PROMPT, build_system_prompt
from axiomate.core.tokens import estimate_tokens
from axiomate.errors import ContextFullError, StreamAbortedError
from axiomate.logging import get_logger
from axiomate.session.content import (
    FileReader,
    FileReference,
    LocalFileReader,
    assemble_message_content,
)
from axiomate.session.conversation import Conversation
from axiomate.session.protocols import SessionStatus, TurnUpdate, UpdateKind, UpdateSink
from axiomate.session.queue import MessageQueue, TurnContext
from axiomate.session.storage import DEFAULT_SESSION_NAME, SessionStore
from axiomate.tools.handler import ToolCallHandler
from axiomate.tools.mask import build_tool_mask
from axiomate.tools.project import detect_project_type
from axiomate.tools.schema import negotiate
from axiomate.tools.types import ProjectContext, ToolDescriptor, ToolExecutor, ToolMask

log = get_logger("orchestrator")

INTERRUPTED_SUFFIX = "\n\n[Response interrupted]"
MAX_TOOL_ROUNDS_MESSAGE = "Stopped after reaching the maximum number of tool call rounds."


@dataclass(slots=True)
class _StreamResult:
    content: str = ""
    reasoning: str = ""
    final: StreamDelta | None = None


class Orchestrator:
    """Owns the live conversation and the message queue for one process.

    Args:
        client: Protocol client for the active model
        model: Catalog entry of the active model
        store: Session store; initialized by start()
        catalog: Tool descriptors available in this process
        executor: Runs tool calls the mask allows
        config: Loaded configuration (defaults when None)
        cwd: Working directory for file references and the system prompt
        reader: File reading collaborator for attachments
        on_update: UI sink for TurnUpdate events
    """

    def __init__(
        self,
        client: ProtocolClient,
        model: ModelConfig,
        store: SessionStore,
        catalog: list[ToolDescriptor],
        executor: ToolExecutor,
        *,
        config: Config | None = None,
        cwd: str | None = None,
        reader: FileReader | None = None,
        on_update: UpdateSink | None = None,
        platform: str | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.store = store
        self.catalog = list(catalog)
        self.config = config or Config()
        self.cwd = cwd or os.getcwd()
        self.platform = platform or sys.platform
        self._reader = reader or LocalFileReader()
        self._on_update = on_update
        self._handler = ToolCallHandler(self.catalog, executor)
        self._queue = MessageQueue(self._process_turn, self._dispatch)
        self._conversation: Conversation | None = None
        self._project_type: str | None = None
        self._project_type_detected = False

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        """Initialize the store and load the active session."""
        self.store.initialize()
        active = self.store.get_active_session()
        assert active is not None
        self._conversation = self.store.load_session(active.id) or self.store.new_conversation()
        self._queue.session_id = active.id
        log.info("Active session %s (%d messages)", active.id, len(self._conversation))

    @property
    def conversation(self) -> Conversation:
        if self._conversation is None:
            raise RuntimeError("Orchestrator.start() has not been called")
        return self._conversation

    @property
    def session_id(self) -> str | None:
        return self.store.active_session_id

    @property
    def project_type(self) -> str | None:
        if not self._project_type_detected:
            self._project_type = detect_project_type(self.cwd)
            self._project_type_detected = True
        return self._project_type

    def _dispatch(self, update: TurnUpdate) -> None:
        if self._on_update is not None:
            self._on_update(update)

    def _notify(self, kind: UpdateKind, payload: dict | None = None, message_id: str | None = None) -> None:
        self._dispatch(TurnUpdate(kind, message_id, self.session_id, payload or {}))

    # -- UI surface ------------------------------------------------------

    def enqueue(
        self,
        text: str,
        files: list[FileReference] | None = None,
        plan_mode: bool | None = None,
    ) -> str:
        """Submit a message; returns its id without waiting for the reply.

        Args:
            text: Message as typed
            files: Attached file references
            plan_mode: Snapshot of the plan-mode toggle; config default when None
        """
        if plan_mode is None:
            plan_mode = self.config.llm.plan_mode
        return self._queue.enqueue(text, files, plan_mode)

    def stop(self) -> int:
        """Abort the turn in flight and drop queued messages."""
        return self._queue.stop()

    def is_processing(self) -> bool:
        return self._queue.is_processing()

    async def wait_idle(self) -> None:
        await self._queue.wait_idle()

    def session_status(self) -> SessionStatus:
        status = self.conversation.status()
        return SessionStatus(
            session_id=self.session_id,
            used_tokens=status.used_tokens,
            context_window=status.context_window,
            usage_percent=status.usage_percent,
            is_near_limit=status.is_near_limit,
            is_full=status.is_full,
            message_count=status.message_count,
        )

    async def compact(self) -> bool:
        """Summarize the conversation into a fresh session.

        Returns:
            False when a turn is processing or there is too little to compact.
        """
        if self.is_processing():
            return False
        return await self._compact(CancellationToken())

    def new_session(self) -> str | None:
        """Save the current session and switch to a new, empty one."""
        if self.is_processing():
            return None
        self.store.save_session(self.conversation, self.session_id or "")
        info = self.store.create_session()
        self.store.set_active_session_id(info.id)
        self._conversation = self.store.new_conversation()
        self._queue.session_id = info.id
        return info.id

    def switch_session(self, session_id: str) -> bool:
        """Save the current session and load another one."""
        if self.is_processing() or self.store.get_session_by_id(session_id) is None:
            return False
        self.store.save_session(self.conversation, self.session_id or "")
        self.store.set_active_session_id(session_id)
        self._conversation = self.store.load_session(session_id) or self.store.new_conversation()
        self._queue.session_id = session_id
        return True

    # -- compaction ------------------------------------------------------

    async def _compact(self, cancel: CancellationToken, message_id: str | None = None) -> bool:
        old = self.conversation
        if old.should_compact(0).real_message_count < 2:
            self._notify(UpdateKind.SYSTEM, {"text": "Not enough messages to compact"}, message_id)
            return False

        old_id = self.session_id
        self._notify(UpdateKind.SYSTEM, {"text": "Compacting conversation..."}, message_id)

        messages = old.messages_for_request()
        messages.append(ChatMessage(role=Role.USER, content=COMPACT_PROMPT))
        result = await self.client.chat(messages, cancel=cancel)
        summary = result.message.content

        old.add_user_message(COMPACT_PROMPT)
        old.add_assistant_message(result.message, result.usage)
        if old_id is not None:
            self.store.save_session(old, old_id)

        info = self.store.create_session()
        self.store.set_active_session_id(info.id)
        fresh = self.store.new_conversation()
        fresh.compact_with(summary)
        self.store.save_session(fresh, info.id)
        self._conversation = fresh
        self._queue.session_id = info.id

        log.info("Compacted session %s into %s", old_id, info.id)
        self._notify(
            UpdateKind.COMPACTED,
            {"old_session_id": old_id, "new_session_id": info.id, "summary": summary},
            message_id,
        )
        return True

    # -- turn processing -------------------------------------------------

    async def _process_turn(self, ctx: TurnContext) -> str:
        entry = ctx.entry
        threshold = self.config.session.compact_threshold

        read = await self._reader.read_files(entry.files, self.cwd) if entry.files else []
        rough = assemble_message_content(entry.text, entry.files, read, sys.maxsize)
        check = self.conversation.should_compact(rough.estimated_tokens, threshold)
        if check.should_compact:
            ctx.emit(UpdateKind.SYSTEM, {
                "text": f"Context usage at {check.usage_percent:.0f}%, compacting conversation"
            })
            try:
                await self._compact(ctx.cancel, entry.id)
            except StreamAbortedError:
                raise
            except Exception as e:
                log.warning("Automatic compaction failed: %s", e)
                ctx.emit(UpdateKind.SYSTEM, {"text": f"Compaction failed: {e}"})

        conversation = self.conversation
        built = assemble_message_content(
            entry.text, entry.files, read, conversation.available_tokens()
        )
        if built.was_truncated:
            ctx.emit(UpdateKind.SYSTEM, {"text": built.truncation_notice})

        check = conversation.should_compact(built.estimated_tokens, threshold)
        if check.is_context_full or built.exceeds_available:
            raise ContextFullError(check.projected_percent)

        conversation.set_system_prompt(
            build_system_prompt(self.cwd, self.project_type, entry.plan_mode)
        )
        mask = build_tool_mask(
            entry.text,
            ProjectContext(cwd=self.cwd, project_type=self.project_type),
            entry.plan_mode,
            self.catalog,
            supports_tool_choice=self.model.supports_tool_choice,
            supports_prefill=self.model.supports_prefill,
            platform=self.platform,
        )
        tools, options = self._negotiate(mask)
        conversation.set_tools_token_estimate(
            estimate_tokens(json.dumps([
                {"name": t.name, "description": t.description, "parameters": t.parameters}
                for t in tools
            ]))
        )

        self._maybe_title(conversation, entry.text)
        checkpoint = conversation.checkpoint()
        conversation.add_user_message(built.content)

        try:
            reply = await self._run_tool_loop(ctx, conversation, mask, tools, options)
        except StreamAbortedError:
            if ctx.stream.content.strip():
                conversation.add_assistant_message(
                    ChatMessage(role=Role.ASSISTANT, content=ctx.stream.content + INTERRUPTED_SUFFIX)
                )
            self.store.save_session(conversation, self.session_id or "")
            raise
        except Exception:
            conversation.rollback(checkpoint)
            raise

        self.store.save_session(conversation, self.session_id or "")
        return reply

    def _negotiate(self, mask: ToolMask) -> tuple[list[ToolSchema], RequestOptions]:
        if not self.model.supports_tools or not self.catalog:
            return [], RequestOptions()
        return negotiate(self.catalog, mask)

    def _maybe_title(self, conversation: Conversation, text: str) -> None:
        info = self.store.get_active_session()
        if info is None or info.name != DEFAULT_SESSION_NAME:
            return
        if any(m.role is Role.USER for m in conversation.history()):
            return
        self.store.update_session_name(info.id, SessionStore.generate_title_from_message(text))

    async def _run_tool_loop(
        self,
        ctx: TurnContext,
        conversation: Conversation,
        mask: ToolMask,
        tools: list[ToolSchema],
        options: RequestOptions,
    ) -> str:
        total = ""
        max_rounds = self.config.llm.max_tool_rounds

        for _ in range(max_rounds):
            if ctx.cancel.cancelled:
                raise StreamAbortedError()

            result = await self._stream_once(ctx, conversation, tools, options, total)
            final = result.final
            assert final is not None

            message = ChatMessage(
                role=Role.ASSISTANT,
                content=result.content,
                reasoning=result.reasoning or None,
                reasoning_signature=final.reasoning_signature,
            )

            if final.finish_reason is FinishReason.TOOL_CALLS and final.tool_calls:
                message.tool_calls = list(final.tool_calls)
                conversation.add_assistant_message(message, final.usage)
                if result.content:
                    total += result.content + "\n"

                for call in final.tool_calls:
                    ctx.emit(UpdateKind.TOOL_CALL, {
                        "id": call.id, "name": call.name, "arguments": call.arguments
                    })
                results = await self._handler.handle_tool_calls(final.tool_calls, mask)
                for tool_message in results:
                    conversation.add_tool_message(tool_message)
                    ctx.emit(UpdateKind.TOOL_RESULT, {
                        "id": tool_message.tool_call_id, "content": tool_message.content
                    })
                continue

            conversation.add_assistant_message(message, final.usage)
            return total + result.content

        log.warning("Turn %s hit the tool round limit (%d)", ctx.entry.id, max_rounds)
        ctx.emit(UpdateKind.SYSTEM, {"text": MAX_TOOL_ROUNDS_MESSAGE})
        return total or MAX_TOOL_ROUNDS_MESSAGE

    async def _stream_once(
        self,
        ctx: TurnContext,
        conversation: Conversation,
        tools: list[ToolSchema],
        options: RequestOptions,
        prior: str,
    ) -> _StreamResult:
        result = _StreamResult()
        stream = self.client.stream_chat(
            conversation.messages_for_request(), tools or None, options, ctx.cancel
        )
        async with aclosing(stream):
            async for delta in stream:
                if delta.content:
                    result.content += delta.content
                if delta.reasoning:
                    result.reasoning += delta.reasoning
                if delta.content or delta.reasoning:
                    ctx.stream.content = prior + result.content
                    ctx.stream.reasoning = result.reasoning
                    ctx.emit(UpdateKind.DELTA, {
                        "content": delta.content or "", "reasoning": delta.reasoning or ""
                    })
                if delta.finish_reason is not None:
                    result.final = delta
                    break

        if result.final is None:
            result.final = StreamDelta(finish_reason=FinishReason.STOP)
        return result
