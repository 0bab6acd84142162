from __future__ import annotations

from livetrans.app.diagnostics import hint_for_exception, summarize_exception


def test_summarize_exception_picks_last_meaningful_line() -> None:
    detail = (
        "Traceback (most recent call last):\n"
        '  File "x.py", line 1, in <module>\n'
        "    boom()\n"
        "livetrans.errors.ChannelError: failed to open live channel"
    )
    assert summarize_exception(detail) == "livetrans.errors.ChannelError: failed to open live channel"


def test_summarize_exception_truncates_long_line() -> None:
    detail = "ValueError: " + ("x" * 500)
    out = summarize_exception(detail, max_len=60)
    assert out.startswith("ValueError: ")
    assert out.endswith("...")
    assert len(out) <= 60


def test_summarize_exception_empty() -> None:
    assert summarize_exception("") == "Unknown runtime error."


def test_hint_for_missing_key() -> None:
    hint = hint_for_exception("CredentialMissing: No API key found. Set GEMINI_API_KEY")
    assert "GEMINI_API_KEY" in hint


def test_hint_for_microphone() -> None:
    hint = hint_for_exception("MicrophoneUnavailable: Failed to open microphone stream.")
    assert "Microphone init failed" in hint


def test_hint_for_channel() -> None:
    hint = hint_for_exception("ChannelError: failed to open live channel: timed out")
    assert "live transcription service" in hint


def test_hint_for_exception_default() -> None:
    hint = hint_for_exception("RuntimeError: unknown")
    assert hint == "Check logs for full traceback."
