"""Model catalog.

Loads model definitions from the packaged models.yaml and overlays the
user's `models:` config entries on top.
"""

from __future__ import annotations

import importlib.resources
from dataclasses import dataclass, field, fields
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from axiomate.config.schema import Config

DEFAULT_CONTEXT_WINDOW = 32768


class ApiProtocol(Enum):
    """Wire protocol spoken by a model endpoint."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class ThinkingParams:
    """Extra request-body fields toggling a model's reasoning output.

    `enabled` may be None when the API turns reasoning on without a flag.
    """

    disabled: dict[str, Any] = field(default_factory=dict)
    enabled: dict[str, Any] | None = None


@dataclass
class ModelConfig:
    """Configuration for a single model."""

    id: str
    name: str
    protocol: ApiProtocol
    base_url: str
    api_key_env: str | None = None
    context_window: int = DEFAULT_CONTEXT_WINDOW
    supports_tools: bool = False
    supports_tool_choice: bool = False
    supports_prefill: bool = False
    supports_thinking: bool = False
    thinking_params: ThinkingParams | None = None
    compact_message_limit: int | None = None  # Real-message count forcing compaction
    description: str = ""

    def request_thinking_params(self, thinking: bool) -> dict[str, Any] | None:
        """Body fields to attach for the given thinking toggle, if any."""
        if self.thinking_params is None:
            return None
        if thinking and self.supports_thinking:
            return self.thinking_params.enabled
        return self.thinking_params.disabled


def _parse_model(data: dict[str, Any]) -> ModelConfig:
    known = {f.name for f in fields(ModelConfig)}
    values = {k: v for k, v in data.items() if k in known}

    values["protocol"] = ApiProtocol(values.get("protocol", "openai"))
    values.setdefault("name", values["id"])
    values.setdefault("base_url", "")

    thinking = values.get("thinking_params")
    if isinstance(thinking, dict):
        values["thinking_params"] = ThinkingParams(
            disabled=dict(thinking.get("disabled") or {}),
            enabled=thinking.get("enabled"),
        )
    return ModelConfig(**values)


@lru_cache(maxsize=1)
def _load_models_yaml() -> dict[str, Any]:
    """Load models.yaml from package resources."""
    resource = importlib.resources.files("axiomate.core").joinpath("models.yaml")
    with resource.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _packaged_entries() -> list[dict[str, Any]]:
    return [dict(m) for m in _load_models_yaml().get("models", []) if m.get("id")]


DEFAULT_MODEL_ID: str = _load_models_yaml().get("default_model", "Qwen/Qwen3-8B")


def list_models(config: Config | None = None) -> list[ModelConfig]:
    """All known models: packaged entries overlaid with config entries.

    A config entry with the id of a packaged model updates that model's
    fields; other config entries are appended.
    """
    entries: dict[str, dict[str, Any]] = {e["id"]: e for e in _packaged_entries()}
    if config is not None:
        for override in config.models:
            base = entries.get(override.id, {"id": override.id})
            entries[override.id] = {**base, **override.values, "id": override.id}
    return [_parse_model(e) for e in entries.values()]


def get_model(model_id: str | None, config: Config | None = None) -> ModelConfig | None:
    """Look up a model by id. None selects DEFAULT_MODEL_ID."""
    wanted = model_id or DEFAULT_MODEL_ID
    for model in list_models(config):
        if model.id == wanted:
            return model
    return None
