"""Configuration schema dataclasses for axiomate.

Typed view of the merged config layers (system, user, project, environment).
All fields have defaults so partial configs merge cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMConfig:
    """Model selection and request behaviour."""

    model: str | None = None  # Model id from the catalog; None = catalog default
    thinking: bool = False  # Ask for reasoning output when the model supports it
    plan_mode: bool = False  # Start new turns in plan mode
    timeout_ms: int = 60_000  # Per-attempt HTTP timeout
    max_retries: int = 3  # Attempts per request (transport errors and 5xx)
    max_tokens: int = 4096  # Completion budget sent to providers that need one
    max_tool_rounds: int = 40  # Tool-call round trips per turn


@dataclass
class SessionConfig:
    """Session persistence and context budgeting.

    Example config.yaml:
        session:
          directory: ~/.axiomate/sessions
          compact_threshold: 0.85
    """

    directory: str | None = None  # Default: <user data dir>/sessions
    compact_threshold: float = 0.85  # Projected usage ratio that triggers compaction
    near_limit_threshold: float = 0.8
    full_threshold: float = 0.95


@dataclass
class LoggingConfig:
    """Log level and optional log file."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    file: str | None = None  # Appended to; overrides AXIOMATE_LOG


@dataclass
class ModelOverride:
    """A user-defined model entry from the `models:` config list.

    Only `id` is required; missing fields fall back to the packaged entry
    with the same id (or catalog defaults for new models).
    """

    id: str
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class Config:
    """Root configuration object."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    models: list[ModelOverride] = field(default_factory=list)

    # Unknown top-level sections are preserved here
    extra: dict[str, Any] = field(default_factory=dict)
