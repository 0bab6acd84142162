from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Sequence, Union

PLACEHOLDER_TEXT = "…"
TRANSLATION_ERROR_TEXT = "[Translation Error]"


@dataclass
class Segment:
    """One unit of transcribed speech. Mutable only while `is_final` is False."""
    id: str
    text: str
    is_final: bool = False


@dataclass
class TranslationSegment:
    """Mirrors a finalized transcription Segment by id."""
    id: str
    text: str = PLACEHOLDER_TEXT
    is_final: bool = False
    failed: bool = False


@dataclass(frozen=True)
class AudioFrame:
    """
    Fixed-size block of mono PCM16 audio.
    pcm16: little-endian signed 16-bit PCM bytes.
    """
    pcm16: bytes
    sample_rate: int
    seq: int

    @property
    def samples(self) -> int:
        return len(self.pcm16) // 2

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"

    def to_media(self) -> dict[str, str]:
        return {
            "data": base64.b64encode(self.pcm16).decode("ascii"),
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True)
class TextAppend:
    text: str


@dataclass(frozen=True)
class TurnComplete:
    pass


TranscriptEvent = Union[TextAppend, TurnComplete]


@dataclass(frozen=True)
class TranslationRequest:
    # Ordered context window, oldest first.
    segments: Sequence[str]
    target_lang: str = "Spanish"


@dataclass(frozen=True)
class TranslationResult:
    source_segments: Sequence[str]
    translated_segments: Sequence[object]
    provider: str
