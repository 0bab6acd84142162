from __future__ import annotations

import base64

import numpy as np

from livetrans.audio.framer import AudioFramer, quantize_pcm16


def _expected(s: float) -> int:
    v = round(s * 32768) if s < 0 else round(s * 32767)
    return max(-32768, min(32767, v))


def test_quantize_follows_asymmetric_scaling() -> None:
    samples = [-1.0, -0.5, -0.25, -0.000015, 0.0, 0.25, 0.5, 0.123456, -0.987654, 1.0]
    out = quantize_pcm16(np.array(samples))
    assert out.dtype == np.dtype("<i2")
    assert out.tolist() == [_expected(s) for s in samples]


def test_quantize_clamps_out_of_range_and_nan() -> None:
    out = quantize_pcm16(np.array([2.0, -3.0, float("nan"), float("inf"), float("-inf")]))
    assert out.tolist() == [32767, -32768, 0, 32767, -32768]


def test_framer_emits_only_full_frames() -> None:
    framer = AudioFramer(buffer_size=4, sample_rate=16000)
    assert framer.push([0.1, 0.2, 0.3]) == []
    assert framer.pending == 3

    frames = framer.push([0.4, -0.5, -0.6])
    assert len(frames) == 1
    assert framer.pending == 2
    pcm = np.frombuffer(frames[0].pcm16, dtype="<i2").tolist()
    assert pcm == [_expected(s) for s in (0.1, 0.2, 0.3, 0.4)]
    assert frames[0].samples == 4
    assert frames[0].seq == 0


def test_framer_splits_large_block_in_order() -> None:
    framer = AudioFramer(buffer_size=3)
    frames = framer.push(np.linspace(-1.0, 1.0, 10))
    assert [f.seq for f in frames] == [0, 1, 2]
    assert framer.pending == 1
    joined = b"".join(f.pcm16 for f in frames)
    assert len(joined) == 9 * 2


def test_framer_frames_generator_is_lazy() -> None:
    framer = AudioFramer(buffer_size=2)
    seen: list[int] = []

    def blocks():
        for i in range(3):
            seen.append(i)
            yield [0.0, 0.5]

    gen = framer.frames(blocks())
    assert seen == []
    first = next(gen)
    assert first.seq == 0
    assert seen == [0]
    assert [f.seq for f in gen] == [1, 2]


def test_frame_to_media_is_base64_pcm() -> None:
    framer = AudioFramer(buffer_size=2, sample_rate=16000)
    (frame,) = framer.push([0.5, -0.5])
    media = frame.to_media()
    assert media["mimeType"] == "audio/pcm;rate=16000"
    assert base64.b64decode(media["data"]) == frame.pcm16
