"""Tool catalog types, visibility mask, schemas and tool-call handling."""

from axiomate.tools.handler import ToolCallHandler
from axiomate.tools.mask import (
    build_tool_mask,
    choose_strategy,
    common_tool_prefix,
    get_tool_not_allowed_error,
    is_tool_allowed,
    match_tools_by_text,
)
from axiomate.tools.project import detect_project_type
from axiomate.tools.schema import negotiate, parse_function_name, tool_schemas
from axiomate.tools.types import (
    NegotiationStrategy,
    ProjectContext,
    ToolAction,
    ToolCategory,
    ToolDescriptor,
    ToolExecutor,
    ToolMask,
    ToolMode,
    ToolOutput,
    ToolParameter,
)

__all__ = [
    "NegotiationStrategy",
    "ProjectContext",
    "ToolAction",
    "ToolCallHandler",
    "ToolCategory",
    "ToolDescriptor",
    "ToolExecutor",
    "ToolMask",
    "ToolMode",
    "ToolOutput",
    "ToolParameter",
    "build_tool_mask",
    "choose_strategy",
    "common_tool_prefix",
    "detect_project_type",
    "get_tool_not_allowed_error",
    "is_tool_allowed",
    "match_tools_by_text",
    "negotiate",
    "parse_function_name",
    "tool_schemas",
]
