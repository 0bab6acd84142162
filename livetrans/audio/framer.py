from __future__ import annotations

from typing import Iterable, Iterator, List

import numpy as np

from livetrans.contracts import AudioFrame

PCM16_MIN = -32768
PCM16_MAX = 32767


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Convert float samples in [-1, 1] to int16.
    Negative values scale by 32768, non-negative by 32767; NaN maps to 0 and
    everything is clamped to the int16 range.
    """
    x = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=1.0, neginf=-1.0)
    scaled = np.where(x < 0, x * 32768.0, x * 32767.0)
    return np.clip(np.rint(scaled), PCM16_MIN, PCM16_MAX).astype("<i2")


class AudioFramer:
    """
    Accumulates float samples into a fixed buffer and emits one AudioFrame
    each time the buffer fills. Runs on the audio thread: no I/O, no locks,
    and the accumulation buffer is reused in place.
    """

    def __init__(self, *, buffer_size: int = 4096, sample_rate: int = 16000) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        self.buffer_size = int(buffer_size)
        self.sample_rate = int(sample_rate)
        self._buffer = np.zeros(self.buffer_size, dtype=np.float64)
        self._index = 0
        self._seq = 0

    @property
    def pending(self) -> int:
        return self._index

    def push(self, samples) -> List[AudioFrame]:
        data = np.asarray(samples, dtype=np.float64).reshape(-1)
        out: List[AudioFrame] = []
        pos = 0
        while pos < data.size:
            take = min(self.buffer_size - self._index, data.size - pos)
            self._buffer[self._index : self._index + take] = data[pos : pos + take]
            self._index += take
            pos += take
            if self._index == self.buffer_size:
                out.append(self._emit())
                self._index = 0
        return out

    def frames(self, blocks: Iterable) -> Iterator[AudioFrame]:
        for block in blocks:
            yield from self.push(block)

    def _emit(self) -> AudioFrame:
        frame = AudioFrame(
            pcm16=quantize_pcm16(self._buffer).tobytes(),
            sample_rate=self.sample_rate,
            seq=self._seq,
        )
        self._seq += 1
        return frame
