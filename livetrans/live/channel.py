from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List

from livetrans.app.logging_setup import log_event
from livetrans.contracts import AudioFrame, TextAppend, TranscriptEvent, TurnComplete
from livetrans.errors import ChannelError

_log = logging.getLogger(__name__)


class LiveChannel(ABC):
    """One open bidirectional session with the remote transcription service."""

    @abstractmethod
    async def send_frame(self, frame: AudioFrame) -> None:
        """Send one audio frame. Raises ChannelError if the channel is gone."""
        raise NotImplementedError

    @abstractmethod
    def events(self) -> AsyncIterator[TranscriptEvent]:
        """Inbound transcript events in arrival order; ends when the channel closes."""
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError


class LiveChannelFactory(ABC):
    @abstractmethod
    async def connect(self, api_key: str) -> LiveChannel:
        """Open a fresh channel. Raises ChannelError on failure."""
        raise NotImplementedError


def media_message(frame: AudioFrame) -> dict[str, Any]:
    return {"media": frame.to_media()}


def parse_server_message(raw: Any) -> List[TranscriptEvent]:
    """
    Map one inbound message to transcript events.
    Unparseable or unrelated messages yield no events; a server error raises.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            msg = json.loads(raw)
        except ValueError:
            log_event(_log, logging.WARNING, "server_message_not_json", size=len(raw))
            return []
    else:
        msg = raw
    if not isinstance(msg, dict):
        log_event(_log, logging.WARNING, "server_message_malformed", kind=type(msg).__name__)
        return []

    if "error" in msg:
        raise ChannelError(f"server error: {msg['error']}")

    content = msg.get("serverContent")
    if not isinstance(content, dict):
        return []

    out: List[TranscriptEvent] = []
    transcription = content.get("inputTranscription")
    if isinstance(transcription, dict):
        text = transcription.get("text")
        if isinstance(text, str) and text:
            out.append(TextAppend(text=text))
        elif text is not None and not isinstance(text, str):
            log_event(_log, logging.WARNING, "server_transcription_malformed", kind=type(text).__name__)
    if content.get("turnComplete"):
        out.append(TurnComplete())
    return out
