from dataclasses import dataclass, field

from groq import AsyncGroq

from omnitutor.config import settings


@dataclass
class SourceLink:
    title: str
    url: str


@dataclass
class SearchCompletion:
    text: str
    sources: list[SourceLink] = field(default_factory=list)


def _search_sources(message) -> list[SourceLink]:
    """Collect unique web results reported by a compound (search) model."""
    seen: dict[str, str] = {}
    for tool in getattr(message, "executed_tools", None) or []:
        search = getattr(tool, "search_results", None)
        for result in getattr(search, "results", None) or []:
            url = getattr(result, "url", None)
            title = getattr(result, "title", None)
            if url and title:
                seen[url] = title
    return [SourceLink(title=title, url=url) for url, title in seen.items()]


class GroqClient:
    """Async wrapper around the official Groq SDK with easy model switching.

    Usage::

        groq = GroqClient()                              # uses chat_model from env
        text = await groq.chat(messages)                 # plain completion

        fast = groq.with_model("llama-3.1-8b-instant")   # zero-cost clone
        text = await fast.chat(messages)

        found = await groq.search(messages)              # compound model + web search
        text = await groq.transcribe(data, "talk.mp3")   # Whisper
        wav = await groq.speak("Hello")                  # TTS, WAV bytes

    ``with_model()`` shares the underlying ``AsyncGroq`` HTTP session.
    """

    def __init__(self, model: str | None = None, api_key: str | None = None) -> None:
        self._model = model or settings.chat_model
        self._client = AsyncGroq(api_key=api_key or settings.groq_api_key)

    # ------------------------------------------------------------------
    # Model switching
    # ------------------------------------------------------------------
    @property
    def default_model(self) -> str:
        return self._model

    def with_model(self, model_name: str) -> "GroqClient":
        """Return a new GroqClient bound to *model_name*, sharing the HTTP client."""
        clone = GroqClient.__new__(GroqClient)
        clone._model = model_name
        clone._client = self._client  # shared, no new HTTP connection
        return clone

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------
    async def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Plain-text chat completion. Returns the content string."""
        kwargs: dict = {
            "model": model or self._model,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        resp = await self._client.chat.completions.create(**kwargs)
        return resp.choices[0].message.content or ""

    async def search(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
    ) -> SearchCompletion:
        """Completion on a compound model that may run web searches.

        Sources are read from the tools the model executed.
        """
        resp = await self._client.chat.completions.create(
            model=model or settings.research_model,
            messages=messages,
        )
        message = resp.choices[0].message
        return SearchCompletion(text=message.content or "", sources=_search_sources(message))

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------
    async def transcribe(self, data: bytes, filename: str, *, model: str | None = None) -> str:
        """Transcribe audio (or the audio track of a video) with Whisper."""
        resp = await self._client.audio.transcriptions.create(
            file=(filename, data),
            model=model or settings.transcription_model,
        )
        return resp.text

    async def speak(
        self,
        text: str,
        *,
        voice: str | None = None,
        sample_rate: int | None = None,
    ) -> bytes:
        """Synthesise ``text``. Returns a WAV file as bytes."""
        resp = await self._client.audio.speech.create(
            model=settings.tts_model,
            voice=voice or settings.tts_voice,
            input=text,
            response_format="wav",
            sample_rate=sample_rate or settings.tts_sample_rate,
        )
        return await resp.read()
