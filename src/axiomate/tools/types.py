"""Tool catalog and tool-mask types.

Tool descriptors are produced by external discoverers and are never
mutated here; the mask engine only filters them.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ToolCategory(Enum):
    """Broad grouping of a tool."""

    VCS = "vcs"
    RUNTIME = "runtime"
    SHELL = "shell"
    DIFF = "diff"
    IDE = "ide"
    BUILD = "build"
    PACKAGE = "package"
    CONTAINER = "container"
    DATABASE = "database"
    WEB = "web"
    UTILITY = "utility"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ToolParameter:
    """One argument of a tool action.

    `type` is one of string, number, boolean, file, directory; file and
    directory are sent to the model as strings.
    """

    name: str
    description: str
    type: str = "string"
    required: bool = False
    default: str | int | float | bool | None = None


@dataclass(frozen=True, slots=True)
class ToolAction:
    """A single callable operation of a tool (e.g. git `status`)."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Immutable catalog entry for a discovered tool.

    Attributes:
        id: Catalog id; `a-c-` core action tools, `a-` other action tools,
            `p-` plan tools
        name: Display name
        description: Human-readable summary
        category: Broad grouping
        capabilities: Capability tags (execute, read, write, diff, ...)
        actions: Operations exposed to the model as `<id>_<action>`
    """

    id: str
    name: str
    description: str = ""
    category: ToolCategory = ToolCategory.OTHER
    capabilities: tuple[str, ...] = ()
    actions: tuple[ToolAction, ...] = ()

    def get_action(self, name: str) -> ToolAction | None:
        for action in self.actions:
            if action.name == name:
                return action
        return None


class ToolMode(Enum):
    """Which family of tools a turn may use."""

    PLAN = "plan"
    ACTION = "action"


class NegotiationStrategy(Enum):
    """How the allowed tool set is enforced on the wire.

    TOOL_CHOICE: full catalog sent, provider-side tool_choice constrains
    PREFILL: full catalog sent, assistant reply pre-seeded with the id prefix
    DYNAMIC_FALLBACK: only allowed tools sent, calls validated after the fact
    """

    TOOL_CHOICE = "tool_choice"
    PREFILL = "prefill"
    DYNAMIC_FALLBACK = "dynamic_fallback"


@dataclass(frozen=True, slots=True)
class ToolMask:
    """Per-request view of the catalog. Computed fresh, never persisted."""

    mode: ToolMode
    allowed_tools: frozenset[str]
    strategy: NegotiationStrategy
    tool_id_prefix: str | None = None
    required_tool: str | None = None


@dataclass(slots=True)
class ToolOutput:
    """Result reported by the tool-execution collaborator."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.exit_code == 0


@dataclass(slots=True)
class ProjectContext:
    """Where the user is working."""

    cwd: str
    project_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ToolExecutor(Protocol):
    """External collaborator that runs tool actions."""

    def execute_tool(self, name: str, args: dict[str, Any]) -> Awaitable[ToolOutput]:
        """Run `<toolId>_<action>` with parsed arguments."""
        ...
