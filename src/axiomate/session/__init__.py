"""Session layer: live conversation, persistence, queue, orchestrator."""

from axiomate.session.content import (
    ContentBuildResult,
    FileReader,
    FileReadResult,
    FileReference,
    LocalFileReader,
    assemble_message_content,
    build_message_content,
    transform_user_message,
)
from axiomate.session.conversation import (
    Checkpoint,
    CompactCheck,
    Conversation,
    ConversationState,
    ConversationStatus,
    SessionMessage,
)
from axiomate.session.orchestrator import Orchestrator
from axiomate.session.protocols import (
    SessionStatus,
    StreamContent,
    TurnUpdate,
    UpdateKind,
    UpdateSink,
)
from axiomate.session.queue import MessageQueue, QueueEntry, TurnContext
from axiomate.session.storage import ConversationSettings, SessionInfo, SessionStore

__all__ = [
    "Checkpoint",
    "CompactCheck",
    "ContentBuildResult",
    "Conversation",
    "ConversationSettings",
    "ConversationState",
    "ConversationStatus",
    "FileReadResult",
    "FileReader",
    "FileReference",
    "LocalFileReader",
    "MessageQueue",
    "Orchestrator",
    "QueueEntry",
    "SessionInfo",
    "SessionMessage",
    "SessionStatus",
    "SessionStore",
    "StreamContent",
    "TurnContext",
    "TurnUpdate",
    "UpdateKind",
    "UpdateSink",
    "assemble_message_content",
    "build_message_content",
    "transform_user_message",
]
