"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from axiomate.config import reset_config
from axiomate.config.secrets import clear_secret_cache
from axiomate.core.llm.base import ClientConfig
from tests.utils import FakeClient, RecordingExecutor

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep user config, env overrides and cached secrets out of tests."""
    for var in ("AXIOMATE_MODEL", "AXIOMATE_LOG", "AXIOMATE_SESSIONS_DIR"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    reset_config()
    clear_secret_cache()
    yield
    reset_config()
    clear_secret_cache()


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(
        api_key="test-key",
        model="test-model",
        base_url="https://llm.test/v1",
        max_retries=3,
        retry_base_delay=0.0,
    )


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()
