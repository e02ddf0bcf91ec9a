from __future__ import annotations

import logging
from typing import Callable

from omnitutor.errors import LastSessionError, NotFound
from omnitutor.models import ChatSession, Message, Role, new_id, now_ms
from omnitutor.services.storage import StorageService

LOGGER = logging.getLogger(__name__)

# The seeded greeting keeps this id so it can be left out of chat history.
WELCOME_MESSAGE_ID = "1"
DEFAULT_TITLE = "New Conversation"
LEGACY_TITLE = "Previous Conversation"
FALLBACK_TITLE_LENGTH = 30


def fallback_title(text: str) -> str:
    """Title used until the generated one arrives."""
    return text[:FALLBACK_TITLE_LENGTH] + ("..." if len(text) > FALLBACK_TITLE_LENGTH else "")


class SessionStore:
    """Independent chat transcripts of one course; exactly one is active."""

    def __init__(self, storage: StorageService, course_id: str, course_title: str) -> None:
        self.storage = storage
        self.course_id = course_id
        self.course_title = course_title
        self.key = storage.course_key("sessions", course_id)
        self.active_key = storage.course_key("active_session", course_id)
        self.legacy_key = storage.course_key("chat", course_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _seed(self) -> list[dict]:
        legacy = self.storage.read_json(self.legacy_key)
        if legacy:
            LOGGER.info("Course %s: migrating legacy chat transcript", self.course_id)
            session = ChatSession(
                id=new_id(),
                title=LEGACY_TITLE,
                messages=[Message.from_dict(m) for m in legacy],
                last_modified=now_ms(),
            )
        else:
            session = self._new_session(
                f"Welcome to **{self.course_title}**. I'm your AI agent. Upload videos, "
                "audio, or documents to specific weeks, and I'll analyze them to help "
                "you learn!"
            )
        return [session.to_dict()]

    def _ensure(self) -> None:
        if self.storage.exists(self.key):
            return
        with self.storage.lock(self.key):
            if not self.storage.exists(self.key):
                self.storage.write_json(self.key, self._seed())

    def list(self) -> list[ChatSession]:
        """Sessions, most recently modified first."""
        self._ensure()
        sessions = [ChatSession.from_dict(s) for s in self.storage.read_json(self.key, [])]
        return sorted(sessions, key=lambda s: s.last_modified, reverse=True)

    def get(self, session_id: str) -> ChatSession:
        for session in self.list():
            if session.id == session_id:
                return session
        raise NotFound(f"Session {session_id} not found")

    # ------------------------------------------------------------------
    # Active session
    # ------------------------------------------------------------------
    def active_session(self) -> ChatSession:
        sessions = self.list()
        active_id = self.storage.read_text(self.active_key)
        return next((s for s in sessions if s.id == active_id), sessions[0])

    def set_active(self, session_id: str) -> ChatSession:
        session = self.get(session_id)
        self.storage.write_text(self.active_key, session_id)
        return session

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def _new_session(self, greeting: str) -> ChatSession:
        ts = now_ms()
        return ChatSession(
            id=new_id(),
            title=DEFAULT_TITLE,
            messages=[Message(id=WELCOME_MESSAGE_ID, role="model", content=greeting, timestamp=ts)],
            last_modified=ts,
        )

    def create_session(self) -> ChatSession:
        self._ensure()
        session = self._new_session(
            f"Hello! I'm ready to help you with **{self.course_title}**. "
            "What's on your mind?"
        )
        self.storage.update(self.key, lambda items: [session.to_dict(), *items], [])
        self.storage.write_text(self.active_key, session.id)
        LOGGER.info("Course %s: created session %s", self.course_id, session.id)
        return session

    def delete_session(self, session_id: str) -> ChatSession:
        """Delete ``session_id`` and return the session that is active afterwards."""
        self._ensure()

        def _drop(items: list[dict]) -> list[dict]:
            if not any(s["id"] == session_id for s in items):
                raise NotFound(f"Session {session_id} not found")
            if len(items) <= 1:
                raise LastSessionError()
            return [s for s in items if s["id"] != session_id]

        with self.storage.lock(self.key):
            was_active = self.active_session().id == session_id
            self.storage.update(self.key, _drop, [])
            if was_active:
                self.storage.write_text(self.active_key, self.list()[0].id)

        LOGGER.info("Course %s: deleted session %s", self.course_id, session_id)
        return self.active_session()

    def _modify(self, session_id: str, fn: Callable[[ChatSession], None]) -> ChatSession:
        self._ensure()
        result: list[ChatSession] = []

        def _apply(items: list[dict]) -> list[dict]:
            out = []
            for item in items:
                if item["id"] == session_id:
                    session = ChatSession.from_dict(item)
                    fn(session)
                    result.append(session)
                    item = session.to_dict()
                out.append(item)
            if not result:
                raise NotFound(f"Session {session_id} not found")
            return out

        self.storage.update(self.key, _apply, [])
        return result[0]

    def append_message(self, session_id: str, role: Role, content: str) -> Message:
        appended: list[Message] = []

        def _append(session: ChatSession) -> None:
            ts = now_ms()
            if session.messages:
                ts = max(ts, session.messages[-1].timestamp + 1)
            message = Message(id=new_id(), role=role, content=content, timestamp=ts)
            session.messages.append(message)
            session.last_modified = ts
            appended.append(message)

        self._modify(session_id, _append)
        return appended[0]

    def rename_title(self, session_id: str, title: str) -> ChatSession:
        def _rename(session: ChatSession) -> None:
            session.title = title

        return self._modify(session_id, _rename)

    def replace_title_if(self, session_id: str, expected: str, title: str) -> bool:
        """Set ``title`` only while the current title still equals ``expected``."""
        applied = False

        def _rename(session: ChatSession) -> None:
            nonlocal applied
            if session.title == expected:
                session.title = title
                applied = True

        try:
            self._modify(session_id, _rename)
        except NotFound:
            return False
        return applied
