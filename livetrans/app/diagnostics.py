from __future__ import annotations


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    for ln in reversed(lines):
        if ln.startswith(("File ", "^", "Traceback ")):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "credentialmissing" in s or "api key" in s:
        return "Set GEMINI_API_KEY (or the variable named by --api-key-env) and retry."
    if "microphone" in s or "portaudio" in s or "sounddevice" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    if "live channel" in s or "channel closed" in s or "websocket" in s:
        return "Could not reach the live transcription service. Check network access and the API key."
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    return "Check logs for full traceback."
