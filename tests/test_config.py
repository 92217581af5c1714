"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from axiomate.config import Config, get_config, load_config, reset_config
from axiomate.config.merge import deep_merge, merge_configs
from axiomate.config.paths import (
    get_config_paths,
    get_data_dir,
    get_project_config_path,
    get_sessions_dir,
    get_system_config_path,
    get_user_config_path,
)
from axiomate.config.secrets import clear_secret_cache, fetch_secret
from axiomate.core.llm.factory import client_config_for, create_client
from axiomate.core.llm.anthropic_client import AnthropicClient
from axiomate.core.llm.openai_client import OpenAIClient
from axiomate.core.models import DEFAULT_MODEL_ID, ApiProtocol, get_model, list_models


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_nested_merge(self) -> None:
        """Nested dicts merge key by key."""
        base = {"llm": {"model": "a", "max_retries": 3}}
        result = deep_merge(base, {"llm": {"max_retries": 5}})
        assert result == {"llm": {"model": "a", "max_retries": 5}}
        assert base["llm"]["max_retries"] == 3

    def test_none_does_not_override(self) -> None:
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_list_replaced_not_merged(self) -> None:
        assert deep_merge({"models": [1, 2]}, {"models": [3]}) == {"models": [3]}

    def test_merge_configs_in_order(self) -> None:
        assert merge_configs({"a": 1, "b": 2}, {}, {"b": 3}, {"c": 4}) == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_unix_paths(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/dev/.config")
        assert get_system_config_path() == Path("/etc/axiomate/config.yaml")
        assert get_user_config_path() == Path("/home/dev/.config/axiomate/config.yaml")

    def test_unix_user_path_without_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_user_config_path() == Path.home() / ".axiomate" / "config.yaml"

    def test_windows_paths(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")
        monkeypatch.setenv("APPDATA", "C:\\Users\\dev\\AppData\\Roaming")
        assert get_system_config_path() == Path("C:\\ProgramData") / "axiomate" / "config.yaml"
        assert get_user_config_path() == Path("C:\\Users\\dev\\AppData\\Roaming") / "axiomate" / "config.yaml"

    def test_project_path_is_last(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        paths = get_config_paths("/work/project")
        assert paths[-1] == get_project_config_path("/work/project")
        assert paths[-1] == Path("/work/project/.axiomate/config.yaml")

    def test_data_and_sessions_dirs(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert get_data_dir() == tmp_path / "axiomate"
        assert get_sessions_dir() == tmp_path / "axiomate" / "sessions"
        assert get_sessions_dir(str(tmp_path / "custom")) == tmp_path / "custom"


class TestConfigLoading:
    """Test loading configuration from files and the environment."""

    def write_project_config(self, root: Path, text: str) -> None:
        config_dir = root / ".axiomate"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text(text, encoding="utf-8")

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(project_root=str(tmp_path))
        assert config == Config()

    def test_project_yaml(self, tmp_path: Path) -> None:
        self.write_project_config(
            tmp_path,
            "llm:\n"
            "  model: claude-sonnet\n"
            "  max_tool_rounds: 5\n"
            "session:\n"
            "  compact_threshold: 0.7\n"
            "logging:\n"
            "  level: DEBUG\n"
            "custom:\n"
            "  flag: true\n",
        )

        config = load_config(project_root=str(tmp_path))

        assert config.llm.model == "claude-sonnet"
        assert config.llm.max_tool_rounds == 5
        assert config.llm.max_retries == 3
        assert config.session.compact_threshold == 0.7
        assert config.logging.level == "DEBUG"
        assert config.extra == {"custom": {"flag": True}}

    def test_user_config_overridden_by_project(self, tmp_path: Path) -> None:
        user_dir = tmp_path / "xdg-config" / "axiomate"
        user_dir.mkdir(parents=True)
        (user_dir / "config.yaml").write_text("llm:\n  model: user-model\n  thinking: true\n")
        project = tmp_path / "project"
        project.mkdir()
        self.write_project_config(project, "llm:\n  model: project-model\n")

        config = load_config(project_root=str(project))

        assert config.llm.model == "project-model"
        assert config.llm.thinking is True

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.write_project_config(tmp_path, "llm:\n  model: from-file\n")
        monkeypatch.setenv("AXIOMATE_MODEL", "from-env")
        monkeypatch.setenv("AXIOMATE_SESSIONS_DIR", "/tmp/sessions")

        config = load_config(project_root=str(tmp_path))

        assert config.llm.model == "from-env"
        assert config.session.directory == "/tmp/sessions"

    def test_invalid_yaml_uses_defaults(self, tmp_path: Path) -> None:
        self.write_project_config(tmp_path, "llm: [unclosed\n")
        assert load_config(project_root=str(tmp_path)).llm == Config().llm

    def test_model_overrides(self, tmp_path: Path) -> None:
        self.write_project_config(
            tmp_path,
            "models:\n"
            "  - id: my-local\n"
            "    protocol: openai\n"
            "    base_url: http://localhost:11434/v1\n"
            "    context_window: 8192\n",
        )
        config = load_config(project_root=str(tmp_path))

        model = get_model("my-local", config)

        assert model is not None
        assert model.context_window == 8192
        assert model.base_url == "http://localhost:11434/v1"


class TestConfigCaching:
    def test_get_config_caches(self) -> None:
        assert get_config() is get_config()

    def test_reset_clears_cache(self) -> None:
        first = get_config()
        reset_config()
        assert get_config() is not first

    def test_project_config_not_cached(self, tmp_path: Path) -> None:
        global_config = get_config()
        load_config(project_root=str(tmp_path))
        assert get_config() is global_config


class TestSecrets:
    def test_environment_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = tmp_path / ".env.secrets"
        secrets.write_text("MY_KEY=from-file\n", encoding="utf-8")
        monkeypatch.setenv("MY_KEY", "from-env")
        assert fetch_secret("MY_KEY", secrets_path=secrets) == "from-env"

    def test_secrets_file_and_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = tmp_path / ".env.secrets"
        secrets.write_text("FILE_ONLY_KEY=abc123\n", encoding="utf-8")
        monkeypatch.delenv("FILE_ONLY_KEY", raising=False)
        monkeypatch.delenv("MISSING_KEY", raising=False)
        clear_secret_cache()

        assert fetch_secret("FILE_ONLY_KEY", secrets_path=secrets) == "abc123"
        assert fetch_secret("MISSING_KEY", "fallback", secrets_path=secrets) == "fallback"


class TestModelCatalog:
    def test_default_model_is_listed(self) -> None:
        assert any(m.id == DEFAULT_MODEL_ID for m in list_models())
        assert get_model(None) is not None
        assert get_model("no-such-model") is None

    def test_protocols_pick_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        config = Config()
        anthropic = next(m for m in list_models() if m.protocol is ApiProtocol.ANTHROPIC)
        openai = next(m for m in list_models() if m.protocol is ApiProtocol.OPENAI)

        assert isinstance(create_client(anthropic, config), AnthropicClient)
        assert isinstance(create_client(openai, config), OpenAIClient)
        assert client_config_for(anthropic, config).api_key == "sk-test"

    def test_thinking_params_follow_toggle(self) -> None:
        thinking_model = next(
            (m for m in list_models() if m.thinking_params is not None and m.supports_thinking), None
        )
        if thinking_model is None:
            pytest.skip("no packaged model with a thinking toggle")
        config = Config()
        config.llm.thinking = True
        assert client_config_for(thinking_model, config).thinking_params == {"enable_thinking": True}
        config.llm.thinking = False
        assert client_config_for(thinking_model, config).thinking_params == {"enable_thinking": False}
