"""
Shared pytest fixtures.
Tests run against an in-memory key-value store and a scripted tutor, so no
database file or Groq API key is needed.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from omnitutor.clients import SourceLink
from omnitutor.database import MemoryKeyValueStore
from omnitutor.main import create_app
from omnitutor.services.courses import CourseCatalog
from omnitutor.services.storage import StorageService
from omnitutor.services.tutor import Analysis, AnalysisFailure, Speech
from omnitutor.services.workspace import CourseWorkspace


class FakeTutor:
    """Scripted stand-in for ``TutorService`` that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.chat_result = Analysis("Here is what I know.")
        self.media_result = Analysis("A summary of the upload.")
        self.research_result = Analysis(
            "An overview of the topic.",
            [SourceLink(title="Example", url="https://example.com/topic")],
        )
        self.synthesis_result = Analysis("Course synthesis.")
        self.speech_result = Speech(pcm=b"\x00\x01" * 240, sample_rate=24000)
        self.title: str | None = "Cell Membranes"
        self.delay = 0.0
        self.title_gate: asyncio.Event | None = None

    def fail(self, attr: str, message: str = "boom") -> None:
        setattr(self, attr, AnalysisFailure("network", message))

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    async def summarize_media(self, data, mime_type, prompt, context_hint=None, filename="upload"):
        self.calls.append(("summarize_media", (data, mime_type, prompt, context_hint, filename)))
        await self._pause()
        return self.media_result

    async def summarize_text(self, text, prompt, context_hint=None, media="document"):
        self.calls.append(("summarize_text", (text, prompt, context_hint)))
        return self.media_result

    async def research_topic(self, query, context_hint=None):
        self.calls.append(("research_topic", (query, context_hint)))
        await self._pause()
        return self.research_result

    async def chat(self, history, new_message, system_instruction, web_search=None):
        self.calls.append(("chat", (list(history), new_message, system_instruction)))
        await self._pause()
        return self.chat_result

    async def title_from_message(self, message):
        self.calls.append(("title_from_message", (message,)))
        if self.title_gate is not None:
            await self.title_gate.wait()
        return self.title

    async def synthesize_course(self, materials, course_title):
        self.calls.append(("synthesize_course", (list(materials), course_title)))
        return self.synthesis_result

    async def text_to_speech(self, text):
        self.calls.append(("text_to_speech", (text,)))
        return self.speech_result

    def called(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def storage(kv):
    return StorageService(kv, prefix="omnitutor")


@pytest.fixture
def catalog(storage):
    return CourseCatalog(storage)


@pytest.fixture
def tutor():
    return FakeTutor()


@pytest.fixture
def course(catalog):
    """The seeded "Biology 101" demo course."""
    return catalog.get("1")


@pytest.fixture
def workspace(storage, catalog, course, tutor):
    return CourseWorkspace(storage, catalog, course.id, tutor)


@pytest.fixture
def client(kv, tutor):
    app = create_app(kv=kv, tutor=tutor)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def workspace_for():
    """Reach the live workspace behind a TestClient."""

    def _get(test_client, course_id):
        return test_client.app.state.workspaces.get(course_id)

    return _get
