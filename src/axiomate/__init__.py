"""axiomate: orchestration core of a terminal AI coding assistant."""

__version__ = "0.1.0"

# Public API
from axiomate.config import Config, get_config, load_config
from axiomate.core.llm import (
    AnthropicClient,
    CancellationToken,
    ChatMessage,
    OpenAIClient,
    ProtocolClient,
    Role,
    StreamDelta,
    create_client,
)
from axiomate.core.models import ModelConfig, get_model, list_models
from axiomate.session import Conversation, MessageQueue, Orchestrator, SessionStore
from axiomate.tools import ToolDescriptor, ToolMask, build_tool_mask

__all__ = [
    "__version__",
    # Config
    "Config",
    "get_config",
    "load_config",
    # LLM
    "AnthropicClient",
    "CancellationToken",
    "ChatMessage",
    "OpenAIClient",
    "ProtocolClient",
    "Role",
    "StreamDelta",
    "create_client",
    # Models
    "ModelConfig",
    "get_model",
    "list_models",
    # Session
    "Conversation",
    "MessageQueue",
    "Orchestrator",
    "SessionStore",
    # Tools
    "ToolDescriptor",
    "ToolMask",
    "build_tool_mask",
]
