"""Protocol clients and the normalized chat types they share."""

from axiomate.core.llm.anthropic_client import AnthropicClient
from axiomate.core.llm.base import ClientConfig, HTTPProtocolClient, ProtocolClient
from axiomate.core.llm.cancel import CancellationToken
from axiomate.core.llm.factory import client_config_for, create_client
from axiomate.core.llm.openai_client import OpenAIClient
from axiomate.core.llm.types import (
    ChatMessage,
    ChatResult,
    FinishReason,
    RequestOptions,
    Role,
    StreamDelta,
    ToolCall,
    ToolCallFragment,
    ToolSchema,
    Usage,
)

__all__ = [
    # Clients
    "AnthropicClient",
    "ClientConfig",
    "HTTPProtocolClient",
    "OpenAIClient",
    "ProtocolClient",
    "client_config_for",
    "create_client",
    # Cancellation
    "CancellationToken",
    # Types
    "ChatMessage",
    "ChatResult",
    "FinishReason",
    "RequestOptions",
    "Role",
    "StreamDelta",
    "ToolCall",
    "ToolCallFragment",
    "ToolSchema",
    "Usage",
]
