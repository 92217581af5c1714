"""Exception hierarchy shared across axiomate.

Protocol-level failures derive from LLMError so the orchestrator can tell
them apart from cancellation, tool masking, and persistence problems.
"""

from __future__ import annotations


class AxiomateError(Exception):
    """Base class for all axiomate errors."""


class LLMError(AxiomateError):
    """Base class for failures talking to a model provider."""


class TransportError(LLMError):
    """Network-level failure (connect, read, timeout). Retried by clients."""


class ProtocolError(LLMError):
    """The provider answered with HTTP status >= 400 or an error payload.

    Attributes:
        status: HTTP status code (0 for in-stream error events)
        reason: HTTP reason phrase or vendor error type
        body: Raw response text or vendor error message
    """

    def __init__(self, vendor: str, status: int, reason: str, body: str) -> None:
        self.vendor = vendor
        self.status = status
        self.reason = reason
        self.body = body
        if status:
            message = f"{vendor} API error: {status} {reason} - {body}"
        else:
            message = f"{vendor} streaming error: {body}"
        super().__init__(message)


class EmptyResponseError(LLMError):
    """Successful transport but no usable content in the response."""


class StreamAbortedError(LLMError):
    """The request was cancelled through its cancellation token."""

    def __init__(self, message: str = "Request was aborted") -> None:
        super().__init__(message)


class ToolNotAllowedError(AxiomateError):
    """A tool call named a tool outside the active tool mask."""

    def __init__(self, tool_id: str, message: str) -> None:
        self.tool_id = tool_id
        super().__init__(message)


class PersistenceError(AxiomateError):
    """Disk I/O failure while saving, loading, or deleting session data."""


class ContextFullError(AxiomateError):
    """The message cannot fit the context window even after truncation."""

    def __init__(self, projected_percent: float) -> None:
        self.projected_percent = projected_percent
        super().__init__(
            f"Context window is full ({projected_percent:.0f}% projected); "
            "compact or start a new session"
        )
