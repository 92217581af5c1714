"""Tests for the in-memory conversation and its token accounting."""

from __future__ import annotations

import pytest

from axiomate.core.llm.types import ChatMessage, Role, ToolCall, Usage
from axiomate.core.tokens import estimate_tokens
from axiomate.session.conversation import (
    SUMMARY_PREFIX,
    Conversation,
    SessionMessage,
)


def assistant(content: str = "", *call_ids: str) -> ChatMessage:
    calls = [ToolCall(id=call_id, name="a-c-git_status") for call_id in call_ids]
    return ChatMessage(role=Role.ASSISTANT, content=content, tool_calls=calls or None)


def tool_result(call_id: str, content: str = "ok") -> ChatMessage:
    return ChatMessage(role=Role.TOOL, content=content, tool_call_id=call_id)


class TestBuilding:
    def test_system_prompt_leads_request(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("hi")
        conversation.set_system_prompt("You are helpful")

        messages = conversation.messages_for_request()

        assert [m.role for m in messages] == [Role.SYSTEM, Role.USER]
        assert conversation.history() == [messages[1]]
        assert len(conversation) == 1

    def test_empty_system_prompt_clears(self) -> None:
        conversation = Conversation(1000)
        conversation.set_system_prompt("x")
        conversation.set_system_prompt("")
        assert conversation.system_prompt is None
        assert conversation.messages_for_request() == []

    def test_clear(self) -> None:
        conversation = Conversation(1000)
        conversation.set_system_prompt("sys")
        conversation.add_user_message("hi")
        conversation.add_assistant_message(assistant("yo"), Usage(10, 2))
        conversation.clear()
        assert len(conversation) == 0
        assert conversation.used_tokens() == 0


class TestAccounting:
    def test_estimates_until_usage_reported(self) -> None:
        conversation = Conversation(1000)
        conversation.set_system_prompt("a" * 40)
        conversation.set_tools_token_estimate(5)
        conversation.add_user_message("b" * 80)

        assert conversation.used_tokens() == 10 + 5 + 20
        assert conversation.available_tokens() == 1000 - 35

    def test_usage_replaces_prompt_and_accumulates_completion(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("hello")
        conversation.add_assistant_message(assistant("one"), Usage(prompt_tokens=100, completion_tokens=10))
        conversation.add_user_message("again")
        conversation.add_assistant_message(assistant("two"), Usage(prompt_tokens=130, completion_tokens=5))

        assert conversation.used_tokens() == 130 + 15
        last = conversation.to_state().messages[-1]
        assert last.is_actual is True
        assert last.tokens == 5

    def test_assistant_without_usage_is_estimated(self) -> None:
        conversation = Conversation(1000)
        conversation.add_assistant_message(assistant("x" * 40))
        entry = conversation.to_state().messages[0]
        assert entry.is_actual is False
        assert entry.tokens == 10

    def test_available_never_negative(self) -> None:
        conversation = Conversation(10)
        conversation.add_user_message("x" * 400)
        assert conversation.available_tokens() == 0

    def test_status_thresholds(self) -> None:
        conversation = Conversation(100, near_limit_threshold=0.5, full_threshold=0.9)
        conversation.add_user_message("x" * 240)  # 60 tokens

        status = conversation.status()

        assert status.used_tokens == 60
        assert status.usage_percent == pytest.approx(60.0)
        assert status.is_near_limit is True
        assert status.is_full is False
        assert status.message_count == 1


class TestShouldCompact:
    def test_needs_two_real_messages(self) -> None:
        conversation = Conversation(100)
        conversation.add_user_message("x" * 400)
        check = conversation.should_compact()
        assert check.should_compact is False
        assert check.is_context_full is True

    def test_projected_usage_triggers(self) -> None:
        conversation = Conversation(100)
        conversation.add_user_message("x" * 160)  # 40
        conversation.add_assistant_message(assistant("y" * 160))  # 40

        assert conversation.should_compact().should_compact is False
        check = conversation.should_compact(estimated_new_tokens=10)
        assert check.should_compact is True
        assert check.projected_percent == pytest.approx(90.0)
        assert check.real_message_count == 2

    def test_message_limit_triggers(self) -> None:
        conversation = Conversation(100_000, compact_message_limit=3)
        for text in ("a", "b", "c"):
            conversation.add_user_message(text)
        assert conversation.should_compact().should_compact is True

    def test_summary_message_is_not_real(self) -> None:
        conversation = Conversation(100_000)
        conversation.compact_with("we talked")
        conversation.add_user_message("next")
        assert conversation.real_message_count() == 1
        assert conversation.should_compact(estimated_new_tokens=10**6).should_compact is False


class TestCompactWith:
    def test_replaces_history_with_summary(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("hello")
        conversation.add_assistant_message(assistant("hi"), Usage(50, 5))

        conversation.compact_with("short summary")

        history = conversation.history()
        assert len(history) == 1
        assert history[0].role is Role.ASSISTANT
        assert history[0].content == f"{SUMMARY_PREFIX}\nshort summary"
        assert conversation.used_tokens() == estimate_tokens("short summary") + 30


class TestCheckpoint:
    def test_rollback_restores_messages_and_counters(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("hello")
        conversation.add_assistant_message(assistant("hi"), Usage(50, 5))
        checkpoint = conversation.checkpoint()

        conversation.add_user_message("more")
        conversation.add_assistant_message(assistant("sure"), Usage(80, 7))
        conversation.rollback(checkpoint)

        assert len(conversation) == 2
        assert conversation.used_tokens() == 55


class TestValidateAndRepair:
    def test_valid_history(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("status?")
        conversation.add_assistant_message(assistant("", "c1"))
        conversation.add_tool_message(tool_result("c1"))
        assert conversation.validate() == []
        assert conversation.repair() == 0

    def test_orphan_result_is_removed(self) -> None:
        conversation = Conversation(1000)
        conversation.add_user_message("hi")
        conversation.add_tool_message(tool_result("ghost"))

        errors = conversation.validate()

        assert len(errors) == 1
        assert errors[0].startswith("Orphan tool result at index 1")
        assert conversation.repair() == 1
        assert conversation.validate() == []

    def test_unanswered_call_is_stripped(self) -> None:
        conversation = Conversation(1000)
        conversation.add_assistant_message(assistant("checking", "c1", "c2"), Usage(40, 4))
        conversation.add_tool_message(tool_result("c1"))
        conversation.add_assistant_message(assistant("", "c3"))

        assert any(e.startswith("Orphan tool_call at index 0") for e in conversation.validate())
        assert conversation.repair() == 0

        history = conversation.history()
        assert [c.id for c in history[0].tool_calls or []] == ["c1"]
        assert history[2].tool_calls is None
        assert conversation.validate() == []


class TestState:
    def test_from_state_round_trip(self) -> None:
        conversation = Conversation(1000)
        conversation.set_system_prompt("sys")
        conversation.add_user_message("hi")
        conversation.add_assistant_message(assistant("yo"), Usage(20, 3))

        restored = Conversation.from_state(conversation.to_state(), 2000, compact_message_limit=5)

        assert restored.context_window == 2000
        assert restored.compact_message_limit == 5
        assert restored.system_prompt == "sys"
        assert restored.history() == conversation.history()
        assert restored.used_tokens() == 23

    def test_session_message_dict(self) -> None:
        entry = SessionMessage(
            message=assistant("done", "c1"), tokens=7, is_actual=True, timestamp=1700000000.0
        )
        data = entry.to_dict()
        assert data["isActual"] is True
        assert data["message"]["toolCalls"][0]["id"] == "c1"
        assert SessionMessage.from_dict(data) == entry

    def test_session_message_missing_tokens_is_estimated(self) -> None:
        entry = SessionMessage.from_dict({"message": {"role": "user", "content": "x" * 8}})
        assert entry.tokens == 2
        assert entry.is_actual is False
