from __future__ import annotations

import threading
from typing import Callable, Optional

import numpy as np

from livetrans.errors import MicrophoneUnavailable

SampleCallback = Callable[[np.ndarray], None]
StateCallback = Callable[[str], None]

# Audio subsystem states reported through `on_state`.
STATE_RUNNING = "running"
STATE_SUSPENDED = "suspended"
STATE_INTERRUPTED = "interrupted"


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).
    Float32 mono blocks are delivered on the PortAudio callback thread.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")

        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.device = device
        self._stream = None
        self._on_samples: Optional[SampleCallback] = None
        self._on_state: Optional[StateCallback] = None
        self._lock = threading.Lock()
        self._expect_finish = False
        self._suspended = False

    @staticmethod
    def list_devices() -> str:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicrophoneUnavailable(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e
        return str(sd.query_devices())

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def suspended(self) -> bool:
        return self._suspended

    def open(self, on_samples: SampleCallback, on_state: Optional[StateCallback] = None) -> None:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicrophoneUnavailable(
                "sounddevice is not installed. Install with: python -m pip install sounddevice"
            ) from e

        with self._lock:
            if self._stream is not None:
                raise MicrophoneUnavailable("microphone is already open")
            self._on_samples = on_samples
            self._on_state = on_state
            self._expect_finish = False
            self._suspended = False
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="float32",
                    device=self.device,
                    blocksize=0,  # let PortAudio choose
                    callback=self._callback,
                    finished_callback=self._finished,
                )
                stream.start()
            except Exception as e:
                raise MicrophoneUnavailable(
                    "Failed to open microphone stream. "
                    "Try --list-devices and select a device id with --device."
                ) from e
            self._stream = stream

    def _callback(self, indata, frames, time_info, status) -> None:
        on_samples = self._on_samples
        if on_samples is not None:
            # First channel only; the framer copies out of PortAudio's buffer.
            on_samples(indata[:, 0])

    def _finished(self) -> None:
        if self._expect_finish:
            return
        # Stream ended without being asked to: device lost or host suspended it.
        self._suspended = True
        self._report(STATE_INTERRUPTED)

    def suspend(self) -> None:
        with self._lock:
            if self._stream is None or self._suspended:
                return
            self._expect_finish = True
            self._stream.stop()
            self._suspended = True
        self._report(STATE_SUSPENDED)

    def resume(self) -> None:
        with self._lock:
            if self._stream is None or not self._suspended:
                return
            try:
                self._stream.start()
            except Exception as e:
                raise MicrophoneUnavailable("Failed to restart microphone stream.") from e
            self._expect_finish = False
            self._suspended = False
        self._report(STATE_RUNNING)

    def close(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
            self._on_samples = None
            self._on_state = None
            self._expect_finish = True
            self._suspended = False
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _report(self, state: str) -> None:
        on_state = self._on_state
        if on_state is not None:
            on_state(state)
