import asyncio
import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Literal

import groq

from omnitutor.clients import GroqClient, SourceLink
from omnitutor.config import settings
from omnitutor.models import Material, Message
from omnitutor.services.documents import DocumentService, UnsupportedDocument
from omnitutor.services.speech import wav_to_pcm16

LOGGER = logging.getLogger(__name__)

FailureKind = Literal["auth", "rate_limit", "network", "bad_response", "unsupported", "unknown"]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Analysis:
    text: str
    sources: list[SourceLink] = field(default_factory=list)
    ok: Literal[True] = True


@dataclass(frozen=True)
class Speech:
    pcm: bytes
    sample_rate: int
    ok: Literal[True] = True


@dataclass(frozen=True)
class AnalysisFailure:
    kind: FailureKind
    message: str
    ok: Literal[False] = False


AnalysisResult = Analysis | AnalysisFailure
SpeechResult = Speech | AnalysisFailure


def classify_failure(exc: Exception) -> FailureKind:
    if isinstance(exc, groq.AuthenticationError):
        return "auth"
    if isinstance(exc, groq.RateLimitError):
        return "rate_limit"
    if isinstance(exc, groq.APIConnectionError):
        return "network"
    if isinstance(exc, UnsupportedDocument):
        return "unsupported"
    if isinstance(exc, (groq.APIStatusError, ValueError, KeyError)):
        return "bad_response"
    return "unknown"


def _failure(label: str, exc: Exception) -> AnalysisFailure:
    kind = classify_failure(exc)
    LOGGER.warning("%s failed (%s): %s", label, kind, exc)
    if kind == "auth":
        return AnalysisFailure(kind, "API key not configured. Please set GROQ_API_KEY.")
    return AnalysisFailure(kind, f"{label}: {exc}")


def _course_prompt(context_hint: str | None, media: str) -> str:
    if not context_hint:
        return "CONTEXT: General educational analysis."
    prompt = f'CONTEXT: You are a tutor for the course "{context_hint}".'
    if media == "video":
        prompt += " Analyze this video specifically for students of this course."
    return prompt


def format_sources(sources: list[SourceLink]) -> str:
    if not sources:
        return ""
    lines = ["", "", "**Search Sources:**"]
    lines += [f"- [{s.title}]({s.url})" for s in sources]
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TutorService:
    """Every call the course workspace makes to the generative backend.

    No method raises for a backend problem: failures come back as
    ``AnalysisFailure`` so callers can turn them into user-facing text.
    """

    def __init__(self, groq_client: GroqClient | None = None) -> None:
        self.groq = groq_client or GroqClient()
        self.fast = self.groq.with_model(settings.title_model)

    # ------------------------------------------------------------------
    # Material analysis
    # ------------------------------------------------------------------
    async def summarize_text(
        self, text: str, prompt: str, context_hint: str | None = None, media: str = "document"
    ) -> AnalysisResult:
        messages = [
            {"role": "system", "content": _course_prompt(context_hint, media)},
            {"role": "user", "content": f"{text}\n\n{prompt}"},
        ]
        try:
            summary = await self.groq.chat(messages, model=settings.analysis_model)
        except Exception as exc:
            return _failure("Failed to analyze content", exc)
        return Analysis(summary or "No analysis generated.")

    async def summarize_media(
        self,
        data: bytes,
        mime_type: str,
        prompt: str,
        context_hint: str | None = None,
        filename: str = "upload",
    ) -> AnalysisResult:
        """Summarise an uploaded file.

        Audio and video are transcribed first, images go to the vision model,
        and PDF/PPTX/text documents are reduced to their text.
        """
        if mime_type.startswith(("audio/", "video/")):
            media = "video" if mime_type.startswith("video/") else "audio"
            try:
                transcript = await self.groq.transcribe(data, filename)
            except Exception as exc:
                return _failure(f"Failed to analyze {media}", exc)
            if not transcript.strip():
                return Analysis("No transcription generated.")
            return await self.summarize_text(
                f"Transcript:\n{transcript}", prompt, context_hint, media
            )

        kind = DocumentService.kind(mime_type, filename)
        if kind == "image":
            return await self._summarize_image(data, mime_type, prompt, context_hint)

        try:
            text = await asyncio.to_thread(
                DocumentService.extract_text, data, mime_type, filename
            )
        except Exception as exc:
            return _failure("Failed to analyze document", exc)
        if not text.strip():
            return AnalysisFailure("bad_response", "No readable text found in the document.")
        return await self.summarize_text(text, prompt, context_hint, "document")

    async def _summarize_image(
        self, data: bytes, mime_type: str, prompt: str, context_hint: str | None
    ) -> AnalysisResult:
        encoded = base64.b64encode(data).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    {"type": "text", "text": f"{_course_prompt(context_hint, 'document')}\n\n{prompt}"},
                ],
            }
        ]
        try:
            summary = await self.groq.chat(messages, model=settings.vision_model)
        except Exception as exc:
            return _failure("Failed to analyze document", exc)
        return Analysis(summary or "No analysis generated.")

    async def research_topic(self, query: str, context_hint: str | None = None) -> AnalysisResult:
        tailor = (
            f'The user is studying "{context_hint}". Tailor the research to this field.'
            if context_hint
            else ""
        )
        messages = [
            {
                "role": "user",
                "content": (
                    "Provide a comprehensive educational overview for the following "
                    f"topic/query. {tailor} Be detailed and structured: {query}"
                ),
            }
        ]
        try:
            found = await self.groq.search(messages)
        except Exception as exc:
            return _failure("Failed to research topic", exc)
        return Analysis(found.text or "No result found.", found.sources)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------
    async def chat(
        self,
        history: list[Message],
        new_message: str,
        system_instruction: str,
        web_search: bool | None = None,
    ) -> AnalysisResult:
        """One turn with the course agent. Search sources are appended as links."""
        if web_search is None:
            web_search = settings.chat_web_search

        messages = [{"role": "system", "content": system_instruction}]
        messages += [
            {"role": "assistant" if m.role == "model" else "user", "content": m.content}
            for m in history
        ]
        messages.append({"role": "user", "content": new_message})

        try:
            if web_search:
                found = await self.groq.search(messages)
                text, sources = found.text, found.sources
            else:
                text, sources = await self.groq.chat(messages), []
        except Exception as exc:
            return _failure("Chat error", exc)

        text = text or "I couldn't generate a response."
        return Analysis(text + format_sources(sources), sources)

    async def title_from_message(self, message: str) -> str | None:
        """Short session title for a first message, or None if generation failed."""
        messages = [
            {
                "role": "user",
                "content": (
                    "Generate a very short, concise title (max 4-5 words) for a chat "
                    "conversation that begins with this user message. Do not use quotes "
                    f'or prefixes. Message: "{message}"'
                ),
            }
        ]
        try:
            title = await self.fast.chat(messages, max_tokens=32)
        except Exception:
            LOGGER.exception("Chat title generation failed")
            return None
        title = (title or "").strip()
        return re.sub(r"^[\"']|[\"']$", "", title) or None

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------
    async def synthesize_course(self, materials: list[Material], course_title: str) -> AnalysisResult:
        material_text = "\n\n".join(
            f"Title: {m.title} ({m.type})\nSummary: {m.summary}" for m in materials
        )
        prompt = (
            "You are an expert educational consultant.\n"
            f'Create a high-level executive summary and syllabus for the course "{course_title}" '
            "based on the uploaded materials below.\n"
            "Synthesize the information into a cohesive learning path.\n\n"
            "Structure your response as follows:\n"
            "1. **Course Executive Summary**: A high-level overview of what the course covers "
            "based on the materials.\n"
            "2. **Key Learning Outcomes**: What the student will learn.\n"
            "3. **Synthesized Syllabus**: Map the materials to a logical flow (Week by Week or "
            "thematic).\n"
            "4. **Gap Analysis**: What topics seem to be missing or could be strengthened based "
            "on standard curriculums for this subject.\n\n"
            f"Materials:\n{material_text}"
        )
        try:
            text = await self.groq.chat(
                [{"role": "user", "content": prompt}], model=settings.analysis_model
            )
        except Exception as exc:
            return _failure("Failed to generate synthesis", exc)
        return Analysis(text or "Could not generate synthesis.")

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------
    async def text_to_speech(self, text: str) -> SpeechResult:
        try:
            wav = await self.groq.speak(text, sample_rate=settings.tts_sample_rate)
            pcm, sample_rate = await asyncio.to_thread(wav_to_pcm16, wav)
        except Exception as exc:
            return _failure("Failed to generate speech", exc)
        return Speech(pcm=pcm, sample_rate=sample_rate)
