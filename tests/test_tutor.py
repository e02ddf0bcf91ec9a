"""
Tests for TutorService against a mocked Groq client.
Covers prompt assembly, media routing and the failure results.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import groq
import httpx
import pytest

from omnitutor.clients import SearchCompletion, SourceLink
from omnitutor.models import Material, Message
from omnitutor.services.tutor import Analysis, AnalysisFailure, TutorService, classify_failure


@pytest.fixture
def groq_client():
    client = Mock()
    client.chat = AsyncMock(return_value="A tidy summary.")
    client.search = AsyncMock(
        return_value=SearchCompletion(
            text="Searched answer.",
            sources=[SourceLink(title="Cells", url="https://example.com/cells")],
        )
    )
    client.transcribe = AsyncMock(return_value="the lecture transcript")
    client.speak = AsyncMock(return_value=b"RIFF")
    client.with_model.return_value = client
    return client


@pytest.fixture
def service(groq_client):
    return TutorService(groq_client)


def _connection_error():
    return groq.APIConnectionError(request=httpx.Request("POST", "https://api.groq.com"))


@pytest.mark.unit
class TestChat:
    def test_web_search_appends_sources(self, service, groq_client):
        history = [Message(id="m1", role="model", content="Earlier reply", timestamp=1)]

        result = asyncio.run(service.chat(history, "What is a cell?", "SYSTEM", web_search=True))

        assert isinstance(result, Analysis)
        assert result.text.startswith("Searched answer.")
        assert "**Search Sources:**" in result.text
        assert "- [Cells](https://example.com/cells)" in result.text
        messages = groq_client.search.call_args.args[0]
        assert messages[0] == {"role": "system", "content": "SYSTEM"}
        assert messages[1] == {"role": "assistant", "content": "Earlier reply"}
        assert messages[-1] == {"role": "user", "content": "What is a cell?"}

    def test_plain_chat_without_search(self, service, groq_client):
        result = asyncio.run(service.chat([], "hi", "SYSTEM", web_search=False))

        assert result.text == "A tidy summary."
        groq_client.search.assert_not_called()

    def test_failure_is_returned_not_raised(self, service, groq_client):
        groq_client.search.side_effect = _connection_error()

        result = asyncio.run(service.chat([], "hi", "SYSTEM", web_search=True))

        assert isinstance(result, AnalysisFailure)
        assert result.ok is False
        assert result.kind == "network"


@pytest.mark.unit
class TestMedia:
    def test_audio_is_transcribed_then_summarised(self, service, groq_client):
        result = asyncio.run(
            service.summarize_media(b"ID3", "audio/mpeg", "Summarize.", "Biology 101: Cells", "talk.mp3")
        )

        assert result.text == "A tidy summary."
        groq_client.transcribe.assert_awaited_once_with(b"ID3", "talk.mp3")
        messages = groq_client.chat.call_args.args[0]
        assert 'course "Biology 101: Cells"' in messages[0]["content"]
        assert "the lecture transcript" in messages[1]["content"]

    def test_video_prompt_mentions_video(self, service, groq_client):
        asyncio.run(service.summarize_media(b"..", "video/mp4", "Summarize.", "Bio", "a.mp4"))

        system = groq_client.chat.call_args.args[0][0]["content"]
        assert "Analyze this video" in system

    def test_pdf_text_is_extracted(self, service, groq_client):
        with patch(
            "omnitutor.services.tutor.DocumentService.extract_text",
            return_value="Cells have membranes.",
        ) as extract:
            result = asyncio.run(
                service.summarize_media(b"%PDF", "application/pdf", "List concepts.", None, "notes.pdf")
            )

        extract.assert_called_once_with(b"%PDF", "application/pdf", "notes.pdf")
        assert result.ok
        assert "Cells have membranes." in groq_client.chat.call_args.args[0][1]["content"]

    def test_image_goes_to_vision_model(self, service, groq_client):
        asyncio.run(service.summarize_media(b"\x89PNG", "image/png", "Describe.", None, "board.png"))

        content = groq_client.chat.call_args.args[0][0]["content"]
        assert content[0]["image_url"]["url"].startswith("data:image/png;base64,")

    def test_unsupported_document(self, service, groq_client):
        result = asyncio.run(
            service.summarize_media(b"\x00", "application/zip", "Summarize.", None, "a.zip")
        )

        assert isinstance(result, AnalysisFailure)
        assert result.kind == "unsupported"
        groq_client.chat.assert_not_called()


@pytest.mark.unit
class TestOtherCalls:
    def test_research_returns_sources(self, service):
        result = asyncio.run(service.research_topic("photosynthesis", "Biology"))

        assert result.text == "Searched answer."
        assert result.sources[0].title == "Cells"

    def test_title_strips_quotes(self, service, groq_client):
        groq_client.chat.return_value = '"Cell Membranes"\n'
        assert asyncio.run(service.title_from_message("What is a membrane?")) == "Cell Membranes"

    def test_title_failure_returns_none(self, service, groq_client):
        groq_client.chat.side_effect = _connection_error()
        assert asyncio.run(service.title_from_message("hi")) is None

    def test_synthesis_prompt_lists_materials(self, service, groq_client):
        materials = [
            Material(id="1", type="video", title="Lecture 1", summary="Mitosis.", timestamp=0, folder="Week 1")
        ]

        result = asyncio.run(service.synthesize_course(materials, "Biology 101"))

        assert result.text == "A tidy summary."
        prompt = groq_client.chat.call_args.args[0][0]["content"]
        assert '"Biology 101"' in prompt
        assert "Title: Lecture 1 (video)\nSummary: Mitosis." in prompt
        assert "**Gap Analysis**" in prompt

    def test_speech_decodes_wav(self, service):
        with patch("omnitutor.services.tutor.wav_to_pcm16", return_value=(b"\x01\x00", 24000)):
            result = asyncio.run(service.text_to_speech("Hello"))

        assert result.pcm == b"\x01\x00"
        assert result.sample_rate == 24000


@pytest.mark.unit
def test_classify_failure():
    assert classify_failure(_connection_error()) == "network"
    assert classify_failure(ValueError("bad")) == "bad_response"
    assert classify_failure(RuntimeError("?")) == "unknown"
