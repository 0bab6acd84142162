from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol, Tuple

import numpy as np

from livetrans.app.config import SessionConfig
from livetrans.app.credentials import CredentialProvider
from livetrans.app.logging_setup import log_event
from livetrans.app.state import SessionState, SessionStateTracker
from livetrans.audio.framer import AudioFramer
from livetrans.audio.mic import STATE_INTERRUPTED, STATE_RUNNING, STATE_SUSPENDED
from livetrans.contracts import AudioFrame, Segment, TranslationSegment
from livetrans.errors import ChannelError, CredentialMissing, MicrophoneUnavailable
from livetrans.live.channel import LiveChannel, LiveChannelFactory
from livetrans.live.reconciler import TranscriptReconciler
from livetrans.live.scheduler import TranslationScheduler
from livetrans.nlp.translator.base import Translator

ChangeCallback = Callable[[Tuple[Segment, ...], Tuple[TranslationSegment, ...]], None]


class MicSource(Protocol):
    def open(self, on_samples: Callable[[np.ndarray], None], on_state: Optional[Callable[[str], None]] = None) -> None:
        ...

    def close(self) -> None:
        ...


class LiveSessionController:
    """
    Owns one live recording session: microphone, framer, remote channel,
    transcript reconciliation and translation scheduling.

    All state changes happen on the event loop that called `start()`. The
    audio thread only pushes samples into the framer and hands finished
    frames to the loop. Every asynchronous completion is checked against
    the session generation so nothing lands after `stop()`.
    """

    def __init__(
        self,
        *,
        credentials: CredentialProvider,
        mic: MicSource,
        channel_factory: LiveChannelFactory,
        translator: Translator,
        config: SessionConfig = SessionConfig(),
        target_lang: str = "Spanish",
        on_change: Optional[ChangeCallback] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.credentials = credentials
        self.mic = mic
        self.channel_factory = channel_factory
        self.config = config
        self.on_change = on_change
        self.logger = logger or logging.getLogger(__name__)

        render_interval = config.render_interval_ms / 1000.0 if config.render_interval_ms > 0 else None
        self.reconciler = TranscriptReconciler(
            render_interval=render_interval,
            on_change=self._notify,
            on_finalized=self._on_finalized,
            logger=self.logger,
        )
        self.scheduler = TranslationScheduler(
            translator=translator,
            source=lambda: self.reconciler.segments,
            target_lang=target_lang,
            context_window_size=config.context_window_size,
            debounce_ms=config.translation_debounce_ms,
            on_change=self._notify,
            logger=self.logger,
        )

        self._tracker = SessionStateTracker()
        self._generation = 0
        self._api_key = ""
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._frames: Optional["asyncio.Queue[AudioFrame]"] = None
        self._mic_open = False
        self._channel: Optional[LiveChannel] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._interrupt_pending = False
        self.frames_sent = 0
        self.frames_dropped = 0

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._tracker.state

    @property
    def last_error(self) -> Optional[str]:
        return self._tracker.last_error

    @property
    def transcription(self) -> Tuple[Segment, ...]:
        return self.reconciler.segments

    @property
    def translation(self) -> Tuple[TranslationSegment, ...]:
        return self.scheduler.segments

    @property
    def target_lang(self) -> str:
        return self.scheduler.target_lang

    @target_lang.setter
    def target_lang(self, value: str) -> None:
        if self._tracker.is_running:
            raise RuntimeError("target language can only change while not recording")
        self.scheduler.target_lang = value

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        if self.state not in (SessionState.IDLE, SessionState.CLOSED):
            log_event(self.logger, logging.WARNING, "session_start_ignored", state=self.state.value)
            return
        if not self.credentials.has_credential():
            raise CredentialMissing("No API key available. Select a key before starting.")
        self._api_key = self.credentials.get_credential()

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._tracker.move(SessionState.CONNECTING)
        self._generation += 1
        generation = self._generation
        self._interrupt_pending = False
        self.frames_sent = 0
        self.frames_dropped = 0
        self.reconciler.reset()
        self.scheduler.reset()
        self._notify()
        log_event(self.logger, logging.INFO, "session_starting", generation=generation)

        frames: "asyncio.Queue[AudioFrame]" = asyncio.Queue()
        framer = AudioFramer(buffer_size=self.config.audio_buffer_size, sample_rate=self.config.sample_rate_hz)
        self._frames = frames

        def _on_samples(samples: np.ndarray) -> None:
            # Audio thread: frame, then hand off without blocking.
            for frame in framer.push(samples):
                loop.call_soon_threadsafe(frames.put_nowait, frame)

        try:
            await loop.run_in_executor(None, self.mic.open, _on_samples, self._on_audio_state)
            self._mic_open = True
        except MicrophoneUnavailable as e:
            log_event(self.logger, logging.ERROR, "microphone_unavailable", error=str(e))
            if generation == self._generation:
                self._tracker.set_error(str(e))
                await self._shutdown()
            raise

        if generation != self._generation:
            # stop() ran while the microphone was opening.
            self._release_mic()
            return

        self._pump_task = loop.create_task(self._pump_frames(generation, frames))

        try:
            await self._await_pending_close()
            if generation != self._generation:
                return
            channel = await self.channel_factory.connect(self._api_key)
        except ChannelError as e:
            if generation != self._generation:
                return
            log_event(self.logger, logging.ERROR, "channel_connect_failed", error=str(e))
            self._tracker.set_error(str(e))
            await self._shutdown()
            return

        if generation != self._generation or self.state != SessionState.CONNECTING:
            await self._close_quietly(channel)
            return

        self._attach(channel, generation)
        self._tracker.move(SessionState.ACTIVE)
        log_event(self.logger, logging.INFO, "session_started", generation=generation)
        if self._interrupt_pending:
            self._interrupt_pending = False
            self.interrupt()

    async def stop(self) -> None:
        """Idempotent. Cancels timers, releases the microphone and closes the channel."""
        if self.state in (SessionState.IDLE, SessionState.CLOSING, SessionState.CLOSED):
            return
        await self._shutdown()
        log_event(
            self.logger,
            logging.INFO,
            "session_stopped",
            frames_sent=self.frames_sent,
            frames_dropped=self.frames_dropped,
            segments=len(self.reconciler.finalized()),
        )

    # -- interruption ----------------------------------------------------

    def interrupt(self) -> None:
        """Audio subsystem suspended: drop the channel, keep the microphone and logs."""
        if self.state != SessionState.ACTIVE:
            return
        self._tracker.move(SessionState.INTERRUPTED)
        channel = self._detach()
        if channel is not None:
            self._close_task = asyncio.get_running_loop().create_task(self._close_quietly(channel))
        log_event(self.logger, logging.WARNING, "session_interrupted", generation=self._generation)

    def resume(self) -> Optional[asyncio.Task]:
        """Audio subsystem running again: open a fresh channel."""
        if self.state != SessionState.INTERRUPTED:
            return None
        if self._reconnect_task is not None:
            return self._reconnect_task
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(self._generation))
        return self._reconnect_task

    def _on_audio_state(self, status: str) -> None:
        # Called from the audio thread or the loop thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._apply_audio_state, status)

    def _apply_audio_state(self, status: str) -> None:
        if self.state == SessionState.CONNECTING:
            # Applied once the channel is up.
            self._interrupt_pending = status in (STATE_SUSPENDED, STATE_INTERRUPTED)
            log_event(self.logger, logging.INFO, "audio_state_deferred", status=status)
        elif status in (STATE_SUSPENDED, STATE_INTERRUPTED):
            self.interrupt()
        elif status == STATE_RUNNING:
            self.resume()
        else:
            log_event(self.logger, logging.WARNING, "audio_state_unknown", status=status)

    async def _reconnect(self, generation: int) -> None:
        try:
            await self._await_pending_close()
            try:
                channel = await self.channel_factory.connect(self._api_key)
            except ChannelError as e:
                log_event(self.logger, logging.ERROR, "channel_reconnect_failed", error=str(e))
                if generation == self._generation:
                    self._tracker.set_error(str(e))
                return
            if generation != self._generation or self.state != SessionState.INTERRUPTED:
                await self._close_quietly(channel)
                return
            self._attach(channel, generation)
            self._tracker.move(SessionState.ACTIVE)
            log_event(self.logger, logging.INFO, "session_resumed", generation=generation)
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    # -- channel plumbing ------------------------------------------------

    def _attach(self, channel: LiveChannel, generation: int) -> None:
        self._channel = channel
        self._receive_task = asyncio.get_running_loop().create_task(self._receive(channel, generation))

    def _detach(self) -> Optional[LiveChannel]:
        channel = self._channel
        self._channel = None
        self._cancel_task(self._receive_task)
        self._receive_task = None
        return channel

    def _is_current(self, channel: LiveChannel, generation: int) -> bool:
        return generation == self._generation and channel is self._channel

    async def _receive(self, channel: LiveChannel, generation: int) -> None:
        error: Optional[str] = None
        try:
            async for event in channel.events():
                if not self._is_current(channel, generation):
                    return
                self.reconciler.handle(event)
        except ChannelError as e:
            error = str(e)
        except Exception as e:
            self.logger.exception("transcript_handling_failed")
            error = f"{type(e).__name__}: {e}"
        if not self._is_current(channel, generation):
            return
        # The remote side ended the channel while we still wanted it.
        detail = error or "remote closed the channel"
        log_event(self.logger, logging.ERROR, "channel_lost", error=detail, generation=generation)
        self._tracker.set_error(detail)
        await self._shutdown()

    async def _pump_frames(self, generation: int, frames: "asyncio.Queue[AudioFrame]") -> None:
        while generation == self._generation:
            frame = await frames.get()
            channel = self._channel
            if channel is None or self.state != SessionState.ACTIVE:
                self.frames_dropped += 1
                continue
            try:
                await channel.send_frame(frame)
                self.frames_sent += 1
            except ChannelError as e:
                # Expected while a channel is being torn down.
                self.frames_dropped += 1
                log_event(self.logger, logging.WARNING, "channel_send_failed", seq=frame.seq, error=str(e))

    async def _await_pending_close(self) -> None:
        # At most one channel open: the replaced one must be fully closed first.
        previous = self._close_task
        if previous is None:
            return
        await asyncio.shield(previous)
        if self._close_task is previous:
            self._close_task = None

    async def _close_quietly(self, channel: LiveChannel) -> None:
        try:
            await channel.close()
        except Exception:
            self.logger.exception("channel_close_failed")

    # -- teardown --------------------------------------------------------

    async def _shutdown(self) -> None:
        self._tracker.move(SessionState.CLOSING)
        self._generation += 1
        self.scheduler.cancel()
        self.reconciler.cancel_pending_render()
        self._release_mic()
        self._cancel_task(self._pump_task)
        self._pump_task = None
        self._cancel_task(self._reconnect_task)
        self._reconnect_task = None
        channel = self._detach()
        # A channel already closing from an interruption finishes on its own;
        # the next connect waits for it.
        self._frames = None
        if channel is not None:
            await self._close_quietly(channel)
        self._tracker.move(SessionState.CLOSED)

    def _release_mic(self) -> None:
        if not self._mic_open:
            return
        self._mic_open = False
        try:
            self.mic.close()
        except Exception:
            self.logger.exception("microphone_release_failed")

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _on_finalized(self, segment: Segment) -> None:
        self.scheduler.on_finalized(segment)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.reconciler.segments, self.scheduler.segments)
