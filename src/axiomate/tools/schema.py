"""Turn tool descriptors into function schemas and per-request options."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from axiomate.core.llm.types import RequestOptions, ToolSchema
from axiomate.tools.types import (
    NegotiationStrategy,
    ToolAction,
    ToolDescriptor,
    ToolMask,
    ToolParameter,
)

_JSON_TYPES = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "file": "string",
    "directory": "string",
}


def function_name(tool_id: str, action: str) -> str:
    return f"{tool_id}_{action}"


def parse_function_name(name: str) -> tuple[str, str]:
    """Split `<toolId>_<action>`; a name without `_` maps to action "default"."""
    tool_id, sep, action = name.partition("_")
    if not sep:
        return name, "default"
    return tool_id, action


def parameters_schema(params: Iterable[ToolParameter]) -> dict[str, Any]:
    """JSON Schema object for an action's parameters."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in params:
        prop: dict[str, Any] = {
            "type": _JSON_TYPES.get(param.type, "string"),
            "description": param.description,
        }
        if param.default is not None:
            prop["default"] = param.default
        properties[param.name] = prop
        if param.required:
            required.append(param.name)
    return {"type": "object", "properties": properties, "required": required}


def action_schema(tool: ToolDescriptor, action: ToolAction) -> ToolSchema:
    return ToolSchema(
        name=function_name(tool.id, action.name),
        description=f"[{tool.name}] {action.description}",
        parameters=parameters_schema(action.parameters),
    )


def tool_schemas(tools: Iterable[ToolDescriptor]) -> list[ToolSchema]:
    """Schemas for every action, ordered by tool id so the list stays stable."""
    return [
        action_schema(tool, action)
        for tool in sorted(tools, key=lambda t: t.id)
        for action in tool.actions
    ]


def negotiate(
    catalog: list[ToolDescriptor],
    mask: ToolMask,
) -> tuple[list[ToolSchema], RequestOptions]:
    """Choose the tool list and request options that enforce `mask`.

    TOOL_CHOICE and PREFILL send the whole catalog so the tool list is the
    same on every request; DYNAMIC_FALLBACK sends only allowed tools. Every
    strategy is backed by validation of the returned calls.
    """
    options = RequestOptions()

    if mask.strategy is NegotiationStrategy.DYNAMIC_FALLBACK:
        allowed = [t for t in catalog if t.id in mask.allowed_tools]
        return tool_schemas(allowed), options

    schemas = tool_schemas(catalog)
    required = next((t for t in catalog if t.id == mask.required_tool), None)

    if mask.strategy is NegotiationStrategy.TOOL_CHOICE:
        if required is not None and len(required.actions) == 1:
            options.forced_tool = function_name(required.id, required.actions[0].name)
    elif mask.strategy is NegotiationStrategy.PREFILL:
        if required is not None and mask.tool_id_prefix:
            options.prefill = mask.tool_id_prefix

    return schemas, options
