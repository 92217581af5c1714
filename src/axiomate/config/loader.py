"""Read, layer and cache the axiomate configuration.

Layers are applied lowest priority first: system file, user file, project
file, then ``AXIOMATE_*`` environment variables. The merged mapping is turned
into the typed `Config` tree by `dict_to_config`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, TypeVar

import yaml

from axiomate.config.merge import merge_configs
from axiomate.config.paths import get_config_paths
from axiomate.config.schema import (
    Config,
    LLMConfig,
    LoggingConfig,
    ModelOverride,
    SessionConfig,
)

_log = logging.getLogger("axiomate.config")

_SectionT = TypeVar("_SectionT", LLMConfig, SessionConfig, LoggingConfig)

# variable -> (section, key)
ENV_VARS: dict[str, tuple[str, str]] = {
    "AXIOMATE_MODEL": ("llm", "model"),
    "AXIOMATE_LOG": ("logging", "file"),
    "AXIOMATE_SESSIONS_DIR": ("session", "directory"),
}

_SECTIONS = {"llm": LLMConfig, "session": SessionConfig, "logging": LoggingConfig}

_cached_config: Config | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Parse one YAML config file.

    A missing, unreadable or malformed file, or one whose top level is not a
    mapping, contributes nothing and yields ``{}``.
    """
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        _log.warning("Ignoring %s: invalid YAML (%s)", path, exc)
        return {}
    except OSError as exc:
        _log.warning("Ignoring %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def env_overrides() -> dict[str, Any]:
    """Collect the config layer contributed by ``AXIOMATE_*`` variables.

    API keys are not part of this layer; clients resolve them via fetch_secret().
    """
    layer: dict[str, Any] = {}
    for var, (section, key) in ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            layer.setdefault(section, {})[key] = value
    return layer


def _build_section(cls: type[_SectionT], raw: Any) -> _SectionT:
    values = raw if isinstance(raw, dict) else {}
    defaults = cls()
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        value = values.get(f.name)
        if value is None:
            continue
        default = getattr(defaults, f.name)
        # Coerce to the default's scalar type; None-defaulted fields pass through
        kwargs[f.name] = type(default)(value) if isinstance(default, (bool, int, float)) else value
    return cls(**kwargs)


def _model_overrides(raw: Any) -> list[ModelOverride]:
    if not isinstance(raw, list):
        return []
    overrides = []
    for entry in raw:
        if isinstance(entry, dict) and entry.get("id"):
            values = dict(entry)
            overrides.append(ModelOverride(id=values.pop("id"), values=values))
    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Build a typed Config from a merged mapping.

    Top-level keys other than the known sections and ``models`` are kept
    verbatim in ``Config.extra``.
    """
    sections = {name: _build_section(cls, data.get(name)) for name, cls in _SECTIONS.items()}
    return Config(
        **sections,
        models=_model_overrides(data.get("models")),
        extra={k: v for k, v in data.items() if k not in _SECTIONS and k != "models"},
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load the layered configuration.

    Without `project_root` the result is the process-wide config and is
    cached; `reload` forces it to be read again. With a project root the
    project's ``.axiomate/config.yaml`` is layered in and nothing is cached.
    """
    global _cached_config

    if project_root is None and _cached_config is not None and not reload:
        return _cached_config

    layers = []
    for path in get_config_paths(project_root):
        layer = load_yaml_file(path)
        if layer:
            _log.debug("Config layer: %s", path)
            layers.append(layer)
    layers.append(env_overrides())

    config = dict_to_config(merge_configs(*layers))
    if project_root is None:
        _cached_config = config
    return config


def get_config() -> Config:
    """Return the cached process-wide config, loading it if needed."""
    return _cached_config if _cached_config is not None else load_config()


def reset_config() -> None:
    global _cached_config
    _cached_config = None
