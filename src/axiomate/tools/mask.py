"""Tool visibility mask.

Decides, per request, which catalog tools the model may call and how that
restriction is enforced for the active model.
"""

from __future__ import annotations

from collections.abc import Iterable

from axiomate.tools.constants import (
    ACTION_CORE_TOOLS,
    ACTION_PREFIX,
    CORE_PREFIX,
    KEYWORD_TO_TOOL,
    PLAN_PREFIX,
    PLAN_TOOL,
    PLAN_TOOLS,
    PROJECT_TYPE_TOOLS,
    platform_shell_tools,
)
from axiomate.tools.types import (
    NegotiationStrategy,
    ProjectContext,
    ToolDescriptor,
    ToolMask,
    ToolMode,
)


def choose_strategy(supports_tool_choice: bool, supports_prefill: bool) -> NegotiationStrategy:
    """Pick the strongest enforcement the model supports."""
    if supports_tool_choice:
        return NegotiationStrategy.TOOL_CHOICE
    if supports_prefill:
        return NegotiationStrategy.PREFILL
    return NegotiationStrategy.DYNAMIC_FALLBACK


def match_tools_by_text(text: str) -> set[str]:
    """Tool ids whose keywords occur (case-insensitively) in `text`."""
    lowered = text.lower()
    return {
        tool_id
        for tool_id, keywords in KEYWORD_TO_TOOL.items()
        if any(keyword in lowered for keyword in keywords)
    }


def tools_for_project_type(project_type: str | None) -> set[str]:
    return set(PROJECT_TYPE_TOOLS.get(project_type or "", ()))


def common_tool_prefix(tool_ids: Iterable[str]) -> str:
    """`a-c-` when every id is a core tool, `a-` otherwise (including no ids)."""
    ids = list(tool_ids)
    if ids and all(tool_id.startswith(CORE_PREFIX) for tool_id in ids):
        return CORE_PREFIX
    return ACTION_PREFIX


def build_tool_mask(
    user_text: str,
    context: ProjectContext,
    plan_mode: bool,
    catalog: Iterable[ToolDescriptor],
    *,
    supports_tool_choice: bool = False,
    supports_prefill: bool = False,
    platform: str | None = None,
) -> ToolMask:
    """Compute the tool mask for one request.

    Args:
        user_text: The user's message; scanned for tool keywords
        context: Working directory and detected project type
        plan_mode: Plan-mode snapshot taken when the turn was queued
        catalog: Tools available in this process
        supports_tool_choice: Active model honours provider tool_choice
        supports_prefill: Active model honours assistant prefill
        platform: Override for sys.platform when choosing shell tools

    Returns:
        A mask whose allowed set is a subset of `catalog` ids.
    """
    available = {tool.id for tool in catalog}
    strategy = choose_strategy(supports_tool_choice, supports_prefill)

    if plan_mode:
        allowed_plan = PLAN_TOOLS & available
        return ToolMask(
            mode=ToolMode.PLAN,
            allowed_tools=allowed_plan,
            strategy=strategy,
            tool_id_prefix=PLAN_PREFIX,
            required_tool=PLAN_TOOL if allowed_plan else None,
        )

    wanted: set[str] = set(ACTION_CORE_TOOLS)
    wanted |= platform_shell_tools(platform)
    wanted |= tools_for_project_type(context.project_type)
    wanted |= match_tools_by_text(user_text)
    allowed = frozenset(wanted & available)

    return ToolMask(
        mode=ToolMode.ACTION,
        allowed_tools=allowed,
        strategy=strategy,
        tool_id_prefix=common_tool_prefix(allowed),
    )


def is_tool_allowed(tool_id: str, mask: ToolMask | None) -> bool:
    """True when no mask is active or `tool_id` is in the allowed set."""
    if mask is None:
        return True
    return tool_id in mask.allowed_tools


def get_tool_not_allowed_error(tool_id: str, mask: ToolMask) -> str:
    """Error text echoed back to the model for a masked tool call."""
    allowed = ", ".join(sorted(mask.allowed_tools))
    return (
        f'Error: Tool "{tool_id}" is not available in current context. '
        f"Available tools: {allowed}"
    )
