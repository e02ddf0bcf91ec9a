import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from omnitutor.config import settings
from omnitutor.errors import (
    CollaboratorError,
    EmptyInput,
    InvalidFolder,
    NotFound,
    SessionBusy,
    ValidationError,
)
from omnitutor.models import ChatSession, Course, Material, MaterialType, Message
from omnitutor.services.context import build_course_context
from omnitutor.services.courses import CourseCatalog
from omnitutor.services.folders import FolderRegistry
from omnitutor.services.materials import MaterialStore
from omnitutor.services.sessions import WELCOME_MESSAGE_ID, SessionStore, fallback_title
from omnitutor.services.speech import SpeechChannel, SpeechClip, strip_markdown_for_speech
from omnitutor.services.storage import StorageService
from omnitutor.services.synthesis import SynthesisService
from omnitutor.services.tutor import TutorService

LOGGER = logging.getLogger(__name__)

CHAT_ERROR_MESSAGE = "I encountered an error. Please check your connection or try again."

# task prompt, failure text, status verb
UPLOAD_TASKS: dict[str, tuple[str, str, str]] = {
    "video": (
        "Provide a comprehensive summary of this video for a student.",
        "Failed to analyze video.",
        "Analyzing video",
    ),
    "audio": (
        "Transcribe and summarize this audio.",
        "Failed to transcribe audio.",
        "Transcribing audio",
    ),
    "document": (
        "Summarize this document and list key concepts.",
        "Failed to analyze document.",
        "Analyzing document",
    ),
}

TRANSCRIPT_SEPARATOR = "\n----------------------------------------\n\n"


class CourseWorkspace:
    """Everything a student does inside one course.

    Owns the folder, material, session and synthesis collections plus the
    per-course view state (upload target, expanded folders, which sessions are
    waiting on a reply).  Collections are persisted on every change; view
    state lives only as long as the workspace.
    """

    def __init__(
        self,
        storage: StorageService,
        catalog: CourseCatalog,
        course_id: str,
        tutor: TutorService,
    ) -> None:
        self.storage = storage
        self.catalog = catalog
        self.course_id = course_id
        self.tutor = tutor

        self.folders = FolderRegistry(storage, course_id)
        self.materials = MaterialStore(storage, course_id, self.folders)
        self.synthesis = SynthesisService(storage, course_id, self.materials, tutor)
        self.speech = SpeechChannel()

        first = self.folders.first()
        self.target_folder: str = first
        self.expanded_folders: list[str] = [first]
        self.current_folder_view: str | None = None

        self.awaiting: set[str] = set()
        self.upload_status: dict[str, str] = {}
        self._background: set[asyncio.Task] = set()
        self._upload_seq = 0
        self._renamed: dict[str, str] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Course
    # ------------------------------------------------------------------
    @property
    def course(self) -> Course:
        return self.catalog.get(self.course_id)

    @property
    def sessions(self) -> SessionStore:
        return SessionStore(self.storage, self.course_id, self.course.title)

    @property
    def context_hint(self) -> str:
        course = self.course
        return f"{course.title}: {course.description}"

    @contextmanager
    def _live(self) -> Iterator[None]:
        """Hold the course open for writes that follow a backend call.

        Raises ``NotFound`` once the course is deleted or the workspace closed.
        """
        if self._closed:
            raise NotFound(f"Course {self.course_id} not found")
        with self.catalog.holding(self.course_id):
            yield

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------
    def create_folder(self, name: str) -> str:
        return self.folders.create(name)

    def rename_folder(self, old_name: str, new_name: str) -> str:
        new_name = self.folders.rename(old_name, new_name)
        if new_name != old_name:
            self._renamed[old_name] = new_name
        self.expanded_folders = [new_name if f == old_name else f for f in self.expanded_folders]
        if self.target_folder == old_name:
            self.target_folder = new_name
        if self.current_folder_view == old_name:
            self.current_folder_view = new_name
        return new_name

    def delete_folder(self, name: str) -> int:
        removed = self.folders.delete(name)
        self.expanded_folders = [f for f in self.expanded_folders if f != name]
        if self.target_folder == name:
            self.target_folder = self.folders.first()
        if self.current_folder_view == name:
            self.current_folder_view = None
        return removed

    def toggle_folder(self, name: str) -> bool:
        """Flip the accordion state of ``name``. Returns True when now expanded."""
        if name in self.expanded_folders:
            self.expanded_folders.remove(name)
            return False
        self.expanded_folders.append(name)
        return True

    def open_folder(self, name: str | None) -> None:
        """Show one folder in the overview, or go back to the grid with None."""
        if name is not None and not self.folders.exists(name):
            raise InvalidFolder(name)
        self.current_folder_view = name

    def set_target_folder(self, name: str) -> None:
        if not self.folders.exists(name):
            raise InvalidFolder(name)
        self.target_folder = name

    def resolve_target_folder(self) -> str:
        folders = self.folders.list()
        if self.target_folder not in folders:
            self.target_folder = folders[0]
        return self.target_folder

    def _follow_renames(self, folder: str) -> str:
        """Current name of ``folder``, following renames made since it was read."""
        seen: set[str] = set()
        while (
            folder in self._renamed
            and folder not in seen
            and not self.folders.exists(folder)
        ):
            seen.add(folder)
            folder = self._renamed[folder]
        return folder

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------
    def add_material(
        self, type: MaterialType, title: str, summary: str, folder: str
    ) -> Material:
        material = self.materials.add(type, title, summary, folder)
        if folder not in self.expanded_folders:
            self.expanded_folders.append(folder)

        active = self.sessions.active_session()
        self.sessions.append_message(
            active.id,
            "model",
            f"I have finished analyzing **{title}** ({type}) and saved it to **{folder}**."
            f"\n\n**Summary:**\n{summary}\n\n"
            "You can now ask me detailed questions about this content.",
        )
        return material

    def remove_material(self, material_id: str) -> bool:
        return self.materials.remove(material_id)

    def _begin_upload(self, status: str) -> str:
        self._upload_seq += 1
        token = str(self._upload_seq)
        self.upload_status[token] = status
        return token

    async def analyze_upload(
        self, type: MaterialType, filename: str, data: bytes, mime_type: str
    ) -> Material:
        """Summarise an uploaded file and store it in the current upload target.

        Nothing is stored when the backend fails; ``CollaboratorError`` carries
        the message to show.
        """
        if type not in UPLOAD_TASKS:
            raise ValidationError(f"Cannot upload {type} material")
        prompt, failure_text, verb = UPLOAD_TASKS[type]
        folder = self.resolve_target_folder()
        if type == "audio" and not mime_type.startswith("audio/"):
            mime_type = "audio/mp3"
        elif type == "video" and not mime_type.startswith("video/"):
            mime_type = "video/mp4"

        token = self._begin_upload(f"{verb} for {folder}: {filename}...")
        try:
            result = await self.tutor.summarize_media(
                data, mime_type, prompt, self.context_hint, filename
            )
        finally:
            self.upload_status.pop(token, None)

        if not result.ok:
            LOGGER.error("Course %s: %s %s", self.course_id, failure_text, result.message)
            raise CollaboratorError(failure_text, result.kind)
        with self._live(), self.storage.lock(self.folders.key):
            return self.add_material(
                type, filename, result.text, self._follow_renames(folder)
            )

    async def research(self, query: str) -> tuple[Material, list]:
        """Run a web research query and store the overview as a ``web`` material."""
        query = query.strip()
        if not query:
            raise EmptyInput("Research query is required.")
        folder = self.resolve_target_folder()

        token = self._begin_upload(f"Researching for {folder}: {query}...")
        try:
            result = await self.tutor.research_topic(query, self.context_hint)
        finally:
            self.upload_status.pop(token, None)

        if not result.ok:
            LOGGER.error("Course %s: web research failed: %s", self.course_id, result.message)
            raise CollaboratorError("Web research failed.", result.kind)
        with self._live(), self.storage.lock(self.folders.key):
            material = self.add_material(
                "web", query, result.text, self._follow_renames(folder)
            )
        return material, result.sources

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def new_session(self) -> ChatSession:
        return self.sessions.create_session()

    def delete_session(self, session_id: str) -> ChatSession:
        if session_id in self.awaiting:
            raise SessionBusy(session_id)
        return self.sessions.delete_session(session_id)

    def select_session(self, session_id: str) -> ChatSession:
        return self.sessions.set_active(session_id)

    def rename_session(self, session_id: str, title: str) -> ChatSession:
        title = title.strip()
        if not title:
            raise EmptyInput("Session title is required.")
        return self.sessions.rename_title(session_id, title)

    def is_awaiting(self, session_id: str) -> bool:
        return session_id in self.awaiting

    async def send_message(self, text: str, session_id: str | None = None) -> Message:
        """Run one chat turn and return the model's reply.

        The session is ``Awaiting`` from the moment the user message is stored
        until the reply (or the apology) is appended.
        """
        if not text.strip():
            raise EmptyInput("Message is empty.")
        sessions = self.sessions
        session = sessions.get(session_id) if session_id else sessions.active_session()
        if session.id in self.awaiting:
            raise SessionBusy(session.id)

        history = [m for m in session.messages if m.id != WELCOME_MESSAGE_ID]
        first_turn = session.user_message_count() == 0

        self.awaiting.add(session.id)
        try:
            sessions.append_message(session.id, "user", text)
            if first_turn:
                temporary = fallback_title(text)
                sessions.rename_title(session.id, temporary)
                self._spawn(self._generate_title(session.id, text, temporary))

            context = build_course_context(
                self.course,
                self.folders.list(),
                self.materials.list(),
                web_search=settings.chat_web_search,
            )
            result = await self.tutor.chat(history, text, context)
            if result.ok:
                reply = result.text
            else:
                LOGGER.error("Course %s: chat turn failed: %s", self.course_id, result.message)
                reply = CHAT_ERROR_MESSAGE
            with self._live():
                return sessions.append_message(session.id, "model", reply)
        finally:
            self.awaiting.discard(session.id)

    async def _generate_title(self, session_id: str, text: str, temporary: str) -> None:
        title = await self.tutor.title_from_message(text)
        if not title:
            return
        try:
            with self._live():
                # A rename made while the title was generating takes precedence.
                replaced = self.sessions.replace_title_if(session_id, temporary, title)
        except NotFound:
            LOGGER.info("Session %s is gone; dropping generated title", session_id)
            return
        if not replaced:
            LOGGER.info("Session %s was renamed; keeping the manual title", session_id)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "Course %s: background task failed", self.course_id, exc_info=exc
            )

    async def drain(self) -> None:
        """Wait for background title generation to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def export_transcript(self, session_id: str) -> str:
        session = self.sessions.get(session_id)
        blocks = []
        for m in session.messages:
            role = "You" if m.role == "user" else "AI Agent"
            time = datetime.fromtimestamp(m.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
            blocks.append(f"[{time}] {role}:\n{m.content}\n")
        return TRANSCRIPT_SEPARATOR.join(blocks)

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------
    async def generate_synthesis(self) -> str:
        text = await self.synthesis.compose(self.course.title)
        with self._live():
            self.synthesis.save(text)
        return text

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------
    def _find_message(self, message_id: str) -> Message:
        for session in self.sessions.list():
            for message in session.messages:
                if message.id == message_id:
                    return message
        raise NotFound(f"Message {message_id} not found")

    async def toggle_speech(self, message_id: str) -> SpeechClip | None:
        """Play ``message_id`` aloud, or stop it if it is already playing."""
        if self.speech.is_playing(message_id):
            self.speech.stop()
            return None

        message = self._find_message(message_id)
        self.speech.begin(message_id)
        result = await self.tutor.text_to_speech(strip_markdown_for_speech(message.content))
        if not result.ok:
            self.speech.abandon(message_id)
            raise CollaboratorError("Failed to generate speech", result.kind)
        return self.speech.play(SpeechClip(message_id, result.pcm, result.sample_rate))

    def close(self) -> None:
        self._closed = True
        self.speech.close()
        for task in list(self._background):
            task.cancel()


class WorkspaceRegistry:
    """One live workspace per course, shared by every request."""

    def __init__(self, storage: StorageService, catalog: CourseCatalog, tutor: TutorService) -> None:
        self.storage = storage
        self.catalog = catalog
        self.tutor = tutor
        self._workspaces: dict[str, CourseWorkspace] = {}

    def get(self, course_id: str) -> CourseWorkspace:
        self.catalog.get(course_id)  # NotFound for unknown courses
        if course_id not in self._workspaces:
            self._workspaces[course_id] = CourseWorkspace(
                self.storage, self.catalog, course_id, self.tutor
            )
        return self._workspaces[course_id]

    def forget(self, course_id: str) -> None:
        workspace = self._workspaces.pop(course_id, None)
        if workspace is not None:
            workspace.close()

    def close(self) -> None:
        for course_id in list(self._workspaces):
            self.forget(course_id)
