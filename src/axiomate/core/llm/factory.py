"""Build the protocol client for a catalog model."""

from __future__ import annotations

import httpx

from axiomate.config.schema import Config
from axiomate.config.secrets import fetch_secret
from axiomate.core.llm.anthropic_client import AnthropicClient
from axiomate.core.llm.base import ClientConfig, HTTPProtocolClient
from axiomate.core.llm.openai_client import OpenAIClient
from axiomate.core.models import ApiProtocol, ModelConfig


def client_config_for(model: ModelConfig, config: Config) -> ClientConfig:
    """Resolve connection settings for `model` under `config`."""
    api_key = fetch_secret(model.api_key_env) if model.api_key_env else None
    return ClientConfig(
        api_key=api_key,
        model=model.id,
        base_url=model.base_url or None,
        timeout_ms=config.llm.timeout_ms,
        max_retries=config.llm.max_retries,
        max_tokens=config.llm.max_tokens,
        thinking=config.llm.thinking,
        supports_thinking=model.supports_thinking,
        thinking_params=model.request_thinking_params(config.llm.thinking),
    )


def create_client(
    model: ModelConfig,
    config: Config,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HTTPProtocolClient:
    """Create the client speaking `model.protocol`.

    Args:
        model: Catalog entry
        config: Loaded configuration (timeouts, retries, thinking toggle)
        transport: Optional httpx transport override

    Returns:
        An OpenAIClient or AnthropicClient
    """
    client_config = client_config_for(model, config)
    if model.protocol is ApiProtocol.ANTHROPIC:
        return AnthropicClient(client_config, transport=transport)
    return OpenAIClient(client_config, transport=transport)
