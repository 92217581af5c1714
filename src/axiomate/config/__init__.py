"""Configuration for axiomate.

Config is read from YAML files (system, user, project) and AXIOMATE_*
environment variables, merged in that order with later layers winning.

Usage:
    from axiomate.config import load_config, get_config

    config = load_config(project_root="/path/to/project")
    model_id = config.llm.model
"""

from axiomate.config.loader import (
    dict_to_config,
    env_overrides,
    get_config,
    load_config,
    load_yaml_file,
    reset_config,
)
from axiomate.config.merge import deep_merge, merge_configs
from axiomate.config.paths import (
    get_config_paths,
    get_data_dir,
    get_project_config_path,
    get_sessions_dir,
    get_user_config_path,
)
from axiomate.config.schema import (
    Config,
    LLMConfig,
    LoggingConfig,
    ModelOverride,
    SessionConfig,
)
from axiomate.config.secrets import clear_secret_cache, fetch_secret

__all__ = [
    "Config",
    "LLMConfig",
    "LoggingConfig",
    "ModelOverride",
    "SessionConfig",
    "clear_secret_cache",
    "deep_merge",
    "dict_to_config",
    "env_overrides",
    "fetch_secret",
    "get_config",
    "get_config_paths",
    "get_data_dir",
    "get_project_config_path",
    "get_sessions_dir",
    "get_user_config_path",
    "load_config",
    "load_yaml_file",
    "merge_configs",
    "reset_config",
]
