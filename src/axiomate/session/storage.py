"""Session persistence.

Sessions live in one directory:
  <sessions dir>/index.json      {version, activeSessionId, sessions}
  <sessions dir>/<session-id>.json

Session files contain:
- info: SessionInfo record (same as the index entry)
- messages: Conversation messages with their token cost
- systemPrompt: System prompt message, or null
- tokenState: Provider-reported prompt/completion counters

The index is a cache of the per-session `info` records. When it is missing
or unreadable it is rebuilt by scanning the session files.
"""

from __future__ import annotations

import json
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from axiomate.errors import PersistenceError
from axiomate.logging import get_logger
from axiomate.session.conversation import Conversation, ConversationState, SessionMessage

log = get_logger("storage")

INDEX_VERSION = 1
INDEX_FILE = "index.json"
DEFAULT_SESSION_NAME = "New Session"
MAX_TITLE_LENGTH = 50

_FILE_REF = re.compile(r"@[\w./\\-]+")


@dataclass(slots=True)
class SessionInfo:
    """Lightweight session record kept in the index."""

    id: str
    name: str
    created_at: float
    updated_at: float
    token_usage: int = 0
    message_count: int = 0
    model_id: str = ""
    is_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "tokenUsage": self.token_usage,
            "messageCount": self.message_count,
            "modelId": self.model_id,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionInfo:
        return cls(
            id=str(data["id"]),
            name=data.get("name") or DEFAULT_SESSION_NAME,
            created_at=float(data.get("createdAt", 0)),
            updated_at=float(data.get("updatedAt", 0)),
            token_usage=int(data.get("tokenUsage", 0)),
            message_count=int(data.get("messageCount", 0)),
            model_id=data.get("modelId", ""),
            is_active=bool(data.get("isActive", False)),
        )


@dataclass(slots=True)
class ConversationSettings:
    """How conversations loaded from disk are sized."""

    context_window: int = 32768
    near_limit_threshold: float = 0.8
    full_threshold: float = 0.95
    compact_message_limit: int | None = None
    model_id: str = ""


def _write_json(path: Path, data: dict[str, Any]) -> None:
    """Atomic write: temp file then rename over the target."""
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        temp_path.replace(path)
    except OSError as e:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
        raise PersistenceError(f"Failed to write {path.name}: {e}") from e


def _read_json(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} does not contain an object")
    return data


class SessionStore:
    """Index of sessions plus per-session files, single writer.

    Public methods never raise on disk failures; they log and carry on with
    the in-memory state.
    """

    def __init__(self, directory: str | Path, settings: ConversationSettings | None = None) -> None:
        self.directory = Path(directory)
        self.index_path = self.directory / INDEX_FILE
        self.settings = settings or ConversationSettings()
        self._sessions: dict[str, SessionInfo] = {}
        self._active_id: str | None = None
        self._initialized = False

    # -- lifecycle -------------------------------------------------------

    def initialize(self) -> None:
        """Load the index, rebuilding it from session files when needed.

        Safe to call repeatedly; only the first call does any work.
        """
        if self._initialized:
            return

        self.directory.mkdir(parents=True, exist_ok=True)

        if self.index_path.exists():
            try:
                index = _read_json(self.index_path)
                for entry in index.get("sessions", []):
                    info = SessionInfo.from_dict(entry)
                    self._sessions[info.id] = info
                self._active_id = index.get("activeSessionId")
            except (OSError, ValueError, KeyError, TypeError) as e:
                log.error("Failed to load session index, rebuilding: %s", e)
                self._rebuild_index()
        else:
            self._rebuild_index()

        if self._active_id not in self._sessions:
            self._active_id = None

        if not self._sessions:
            self._activate(self.create_session().id)
        elif self._active_id is None:
            self._activate(self.list_sessions()[0].id)
        else:
            self._activate(self._active_id)

        self._initialized = True

    def _rebuild_index(self) -> None:
        self._sessions.clear()
        self._active_id = None
        for path in sorted(self.directory.glob("*.json")):
            if path.name == INDEX_FILE:
                continue
            try:
                info = SessionInfo.from_dict(_read_json(path)["info"])
            except (OSError, ValueError, KeyError, TypeError):
                log.warning("Skipping corrupted session file %s", path.name)
                continue
            self._sessions[info.id] = info
            if info.is_active and self._active_id is None:
                self._active_id = info.id
        log.info("Rebuilt session index with %d sessions", len(self._sessions))

    def _save_index(self) -> None:
        index = {
            "version": INDEX_VERSION,
            "activeSessionId": self._active_id,
            "sessions": [info.to_dict() for info in self._sessions.values()],
        }
        try:
            _write_json(self.index_path, index)
        except PersistenceError as e:
            log.error("Failed to save session index: %s", e)

    def _session_path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def _save_data(self, info: SessionInfo, state: ConversationState) -> None:
        data = {
            "info": info.to_dict(),
            "messages": [m.to_dict() for m in state.messages],
            "systemPrompt": state.system_prompt.to_dict() if state.system_prompt else None,
            "tokenState": {
                "promptTokens": state.prompt_tokens,
                "completionTokens": state.completion_tokens,
            },
        }
        try:
            _write_json(self._session_path(info.id), data)
        except PersistenceError as e:
            log.error("Failed to save session %s: %s", info.id, e)

    def _activate(self, session_id: str) -> None:
        for info in self._sessions.values():
            info.is_active = info.id == session_id
        self._active_id = session_id
        self._save_index()

    # -- queries ---------------------------------------------------------

    def list_sessions(self) -> list[SessionInfo]:
        """All sessions, most recently updated first."""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def get_active_session(self) -> SessionInfo | None:
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    @property
    def active_session_id(self) -> str | None:
        return self._active_id

    def get_session_by_id(self, session_id: str) -> SessionInfo | None:
        return self._sessions.get(session_id)

    # -- mutations -------------------------------------------------------

    def create_session(self, name: str | None = None) -> SessionInfo:
        """Register a new, empty session and write its file.

        The new session is not made active.
        """
        now = time.time()
        info = SessionInfo(
            id=str(uuid.uuid4()),
            name=name or DEFAULT_SESSION_NAME,
            created_at=now,
            updated_at=now,
            model_id=self.settings.model_id,
        )
        self._sessions[info.id] = info
        self._save_index()
        self._save_data(info, ConversationState())
        log.debug("Created session %s", info.id)
        return info

    def update_session_name(self, session_id: str, name: str) -> bool:
        info = self._sessions.get(session_id)
        if info is None:
            return False
        info.name = name
        info.updated_at = time.time()
        self._save_index()
        return True

    def set_active_session_id(self, session_id: str) -> None:
        """Make `session_id` active; unknown ids leave the pointer unchanged."""
        if session_id not in self._sessions:
            log.warning("Ignoring switch to unknown session %s", session_id)
            return
        self._activate(session_id)

    def delete_session(self, session_id: str) -> bool:
        """Delete a non-active session.

        Returns:
            False when the id is unknown or is the active session.
        """
        if session_id not in self._sessions or session_id == self._active_id:
            return False

        try:
            self._session_path(session_id).unlink(missing_ok=True)
        except OSError as e:
            log.error("Failed to delete session file %s: %s", session_id, e)

        del self._sessions[session_id]
        self._save_index()
        return True

    def clear_all_sessions(self) -> SessionInfo:
        """Delete every session and start over with one fresh, active session."""
        for session_id in list(self._sessions):
            try:
                self._session_path(session_id).unlink(missing_ok=True)
            except OSError as e:
                log.error("Failed to delete session file %s: %s", session_id, e)
        self._sessions.clear()
        self._active_id = None

        info = self.create_session()
        self._activate(info.id)
        return info

    # -- conversations ---------------------------------------------------

    def new_conversation(self) -> Conversation:
        s = self.settings
        return Conversation(
            s.context_window,
            near_limit_threshold=s.near_limit_threshold,
            full_threshold=s.full_threshold,
            compact_message_limit=s.compact_message_limit,
        )

    def load_session(self, session_id: str) -> Conversation | None:
        """Read a session file into a live conversation.

        Returns:
            The conversation, or None if the id is unknown or its file is
            missing or unreadable.
        """
        if session_id not in self._sessions:
            return None

        path = self._session_path(session_id)
        if not path.exists():
            log.warning("Session file not found: %s", session_id)
            return None

        try:
            data = _read_json(path)
            system = data.get("systemPrompt")
            token_state = data.get("tokenState") or {}
            state = ConversationState(
                messages=[SessionMessage.from_dict(m) for m in data.get("messages", [])],
                system_prompt=SessionMessage.from_dict(system) if system else None,
                prompt_tokens=int(token_state.get("promptTokens", 0)),
                completion_tokens=int(token_state.get("completionTokens", 0)),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            log.error("Failed to load session %s: %s", session_id, e)
            return None

        conversation = self.new_conversation()
        conversation.restore(state)
        removed = conversation.repair()
        if removed:
            log.warning("Dropped %d unpaired tool messages from session %s", removed, session_id)
        return conversation

    def save_session(self, conversation: Conversation, session: SessionInfo | str) -> None:
        """Write the conversation and refresh its index entry.

        Unregistered ids are ignored.
        """
        session_id = session if isinstance(session, str) else session.id
        info = self._sessions.get(session_id)
        if info is None:
            return

        status = conversation.status()
        info.updated_at = time.time()
        info.token_usage = status.used_tokens
        info.message_count = status.message_count
        self._save_data(info, conversation.to_state())
        self._save_index()

    # -- titles ----------------------------------------------------------

    @staticmethod
    def generate_title_from_message(text: str) -> str:
        """Title from the first line of a message, without @file references."""
        title = text.strip().split("\n", 1)[0]
        title = _FILE_REF.sub("", title).strip()
        if len(title) > MAX_TITLE_LENGTH:
            title = title[: MAX_TITLE_LENGTH - 3] + "..."
        return title or DEFAULT_SESSION_NAME
