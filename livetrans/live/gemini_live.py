from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from livetrans.app.logging_setup import log_event
from livetrans.contracts import AudioFrame, TranscriptEvent
from livetrans.errors import ChannelError
from livetrans.live.channel import LiveChannel, LiveChannelFactory, media_message, parse_server_message

LIVE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"


def build_setup_message(model: str) -> dict[str, Any]:
    return {
        "setup": {
            "model": model if model.startswith("models/") else f"models/{model}",
            "generationConfig": {"responseModalities": ["AUDIO"]},
            "inputAudioTranscription": {},
        }
    }


def build_realtime_input(frame: AudioFrame) -> dict[str, Any]:
    return {"realtimeInput": {"mediaChunks": [media_message(frame)["media"]]}}


class GeminiLiveChannel(LiveChannel):
    def __init__(self, ws: ClientConnection, logger: logging.Logger | None = None) -> None:
        self._ws = ws
        self.logger = logger or logging.getLogger(__name__)

    async def send_frame(self, frame: AudioFrame) -> None:
        try:
            await self._ws.send(json.dumps(build_realtime_input(frame)))
        except ConnectionClosed as e:
            raise ChannelError(f"channel closed while sending frame {frame.seq}") from e

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        try:
            async for raw in self._ws:
                for event in parse_server_message(raw):
                    yield event
        except ConnectionClosedOK:
            return
        except ConnectionClosed as e:
            raise ChannelError(f"channel closed: {e}") from e

    async def close(self) -> None:
        await self._ws.close()


class GeminiLiveChannelFactory(LiveChannelFactory):
    def __init__(
        self,
        *,
        model: str = DEFAULT_LIVE_MODEL,
        url: str = LIVE_URL,
        open_timeout: float = 10.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.model = model
        self.url = url
        self.open_timeout = float(open_timeout)
        self.logger = logger or logging.getLogger(__name__)

    async def connect(self, api_key: str) -> LiveChannel:
        log_event(self.logger, logging.INFO, "channel_connecting", model=self.model)
        try:
            ws = await connect(f"{self.url}?key={api_key}", open_timeout=self.open_timeout, max_size=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise ChannelError(f"failed to open live channel: {e}") from e

        try:
            await ws.send(json.dumps(build_setup_message(self.model)))
            raw = await asyncio.wait_for(ws.recv(), timeout=self.open_timeout)
            reply = json.loads(raw)
        except (asyncio.TimeoutError, WebSocketException, ValueError) as e:
            await ws.close()
            raise ChannelError(f"live channel setup failed: {e}") from e
        if not isinstance(reply, dict) or "setupComplete" not in reply:
            await ws.close()
            raise ChannelError(f"unexpected setup reply: {str(reply)[:200]}")

        log_event(self.logger, logging.INFO, "channel_open", model=self.model)
        return GeminiLiveChannel(ws, logger=self.logger)
