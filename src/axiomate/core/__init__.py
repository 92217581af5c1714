"""Core runtime modules."""

from axiomate.core.models import (
    DEFAULT_MODEL_ID,
    ApiProtocol,
    ModelConfig,
    ThinkingParams,
    get_model,
    list_models,
)
from axiomate.core.prompts import COMPACT_PROMPT, build_system_prompt
from axiomate.core.tokens import (
    FileContent,
    TruncatedFile,
    TruncateResult,
    estimate_tokens,
    fits_in_context,
    truncate_files_proportionally,
    truncate_to_fit,
)

__all__ = [
    # Models
    "DEFAULT_MODEL_ID",
    "ApiProtocol",
    "ModelConfig",
    "ThinkingParams",
    "get_model",
    "list_models",
    # Prompts
    "COMPACT_PROMPT",
    "build_system_prompt",
    # Tokens
    "FileContent",
    "TruncateResult",
    "TruncatedFile",
    "estimate_tokens",
    "fits_in_context",
    "truncate_files_proportionally",
    "truncate_to_fit",
]
