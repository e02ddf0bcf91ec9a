import io
import logging
import re
from dataclasses import dataclass

import numpy as np
import soundfile as sf

LOGGER = logging.getLogger(__name__)

SPEECH_SAMPLE_RATE = 24000


@dataclass
class SpeechClip:
    """Mono 16-bit little-endian PCM."""

    message_id: str
    pcm: bytes
    sample_rate: int = SPEECH_SAMPLE_RATE

    @property
    def duration_seconds(self) -> float:
        return len(self.pcm) / 2 / self.sample_rate


def strip_markdown_for_speech(text: str) -> str:
    """Drop bold and heading markers so they are not read aloud."""
    return re.sub(r"##", "", text.replace("**", ""))


def wav_to_pcm16(wav: bytes) -> tuple[bytes, int]:
    """Decode a WAV file into mono 16-bit LE PCM. Returns (pcm, sample_rate)."""
    samples, sample_rate = sf.read(io.BytesIO(wav), dtype="int16", always_2d=True)
    # Down-mix to mono if the service ever returns more than one channel
    mono = samples.mean(axis=1).astype("<i2") if samples.shape[1] > 1 else samples[:, 0]
    return np.ascontiguousarray(mono, dtype="<i2").tobytes(), sample_rate


def pcm_to_wav(pcm: bytes, sample_rate: int = SPEECH_SAMPLE_RATE) -> bytes:
    """Wrap raw mono 16-bit PCM in a WAV container for the browser."""
    samples = np.frombuffer(pcm, dtype="<i2")
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class SpeechChannel:
    """At most one playable clip at a time.

    Starting a new clip stops and releases the current one first; requesting
    the clip that is already playing stops it instead.
    """

    def __init__(self) -> None:
        self.current: SpeechClip | None = None
        self.pending_message_id: str | None = None

    @property
    def playing_message_id(self) -> str | None:
        return self.current.message_id if self.current else None

    def is_playing(self, message_id: str) -> bool:
        return self.playing_message_id == message_id

    def begin(self, message_id: str) -> None:
        """Mark ``message_id`` as generating; releases any playing clip."""
        self.stop()
        self.pending_message_id = message_id

    def play(self, clip: SpeechClip) -> SpeechClip:
        self.stop()
        self.current = clip
        if self.pending_message_id == clip.message_id:
            self.pending_message_id = None
        LOGGER.debug("Playing speech for message %s", clip.message_id)
        return clip

    def abandon(self, message_id: str) -> None:
        if self.pending_message_id == message_id:
            self.pending_message_id = None

    def stop(self) -> None:
        if self.current is not None:
            LOGGER.debug("Stopping speech for message %s", self.current.message_id)
        self.current = None

    def close(self) -> None:
        self.stop()
        self.pending_message_id = None
