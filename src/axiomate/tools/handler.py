"""Resolve model tool calls into `role: tool` result messages."""

from __future__ import annotations

import json
import time
from collections.abc import Iterable

from axiomate.core.llm.types import ChatMessage, Role, ToolCall
from axiomate.errors import ToolNotAllowedError
from axiomate.logging import get_logger
from axiomate.tools.mask import get_tool_not_allowed_error, is_tool_allowed
from axiomate.tools.schema import parse_function_name
from axiomate.tools.types import ToolDescriptor, ToolExecutor, ToolMask, ToolOutput

log = get_logger("tools")


class ToolCallHandler:
    """Validates tool calls against the mask and runs them via the executor.

    Rejections (masked tool, unknown tool or action, unparsable arguments)
    become error results so the model can correct itself within the turn.
    """

    def __init__(self, catalog: Iterable[ToolDescriptor], executor: ToolExecutor) -> None:
        self._tools = {tool.id: tool for tool in catalog}
        self._executor = executor

    def _check_allowed(self, tool_id: str, mask: ToolMask | None) -> None:
        if not is_tool_allowed(tool_id, mask):
            assert mask is not None
            raise ToolNotAllowedError(tool_id, get_tool_not_allowed_error(tool_id, mask))

    async def handle_tool_calls(
        self,
        calls: list[ToolCall],
        mask: ToolMask | None,
    ) -> list[ChatMessage]:
        """Run each call in order and return one tool message per call."""
        results: list[ChatMessage] = []
        for call in calls:
            content = await self._handle_one(call, mask)
            results.append(ChatMessage(role=Role.TOOL, content=content, tool_call_id=call.id))
        return results

    async def _handle_one(self, call: ToolCall, mask: ToolMask | None) -> str:
        tool_id, action_name = parse_function_name(call.name)

        try:
            self._check_allowed(tool_id, mask)
        except ToolNotAllowedError as e:
            log.info("Rejected masked tool call %s", call.name)
            return str(e)

        tool = self._tools.get(tool_id)
        if tool is None:
            return f"Error: Tool not found: {tool_id}"

        action = tool.get_action(action_name)
        if action is None:
            return f'Error: Tool "{tool.name}" has no action "{action_name}"'

        try:
            args = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            return f"Error: Failed to parse parameters: {e}"
        if not isinstance(args, dict):
            return "Error: Failed to parse parameters: arguments must be a JSON object"

        started = time.monotonic()
        try:
            output = await self._executor.execute_tool(call.name, args)
        except Exception as e:
            log.exception("Tool %s raised", call.name)
            output = ToolOutput(exit_code=1, error=str(e) or type(e).__name__)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if output.success:
            body = output.stdout or "Executed successfully"
        else:
            body = f"Error: {output.error or output.stderr or 'Execution failed'}"
        return f"[{tool.name}:{action.name}] ({elapsed_ms}ms)\n{body}"
