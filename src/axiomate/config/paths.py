"""Where axiomate looks for config files and keeps its data.

Config files, lowest priority first:

    system   /etc/axiomate/config.yaml         %PROGRAMDATA%\\axiomate\\config.yaml
    user     $XDG_CONFIG_HOME/axiomate/...      %APPDATA%\\axiomate\\config.yaml
             (falls back to ~/.axiomate/config.yaml)
    project  <project_root>/.axiomate/config.yaml

Sessions and REPL history live under the data directory.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "axiomate"
DOT_DIR = ".axiomate"
CONFIG_FILENAME = "config.yaml"


def _windows() -> bool:
    return sys.platform == "win32"


def _env_dir(var: str) -> Path | None:
    value = os.environ.get(var)
    return Path(value) / APP_NAME if value else None


def get_system_config_path() -> Path | None:
    if _windows():
        base = _env_dir("PROGRAMDATA")
    else:
        base = Path("/etc") / APP_NAME
    return base / CONFIG_FILENAME if base else None


def get_user_config_path() -> Path | None:
    if _windows():
        base = _env_dir("APPDATA")
    else:
        base = _env_dir("XDG_CONFIG_HOME") or Path.home() / DOT_DIR
    return base / CONFIG_FILENAME if base else None


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / DOT_DIR / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Candidate config files in merge order; later entries win."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if project_root:
        candidates.append(get_project_config_path(project_root))
    return [path for path in candidates if path is not None]


def get_data_dir() -> Path:
    """Per-user directory for sessions and REPL history."""
    if _windows():
        appdata = _env_dir("APPDATA")
        if appdata:
            return appdata
    return _env_dir("XDG_DATA_HOME") or Path.home() / DOT_DIR


def get_sessions_dir(configured: str | None = None) -> Path:
    """Sessions directory: the configured one, else ``<data dir>/sessions``."""
    if configured:
        return Path(configured).expanduser()
    return get_data_dir() / "sessions"
