from __future__ import annotations

from typing import Optional

# (code, display name); display names are what the translation prompt uses.
LANGUAGES: tuple[tuple[str, str], ...] = (
    ("en", "English"),
    ("es", "Spanish"),
    ("fr", "French"),
    ("de", "German"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("it", "Italian"),
    ("pt", "Portuguese"),
    ("ru", "Russian"),
    ("zh", "Chinese"),
)


def language_names() -> tuple[str, ...]:
    return tuple(name for _, name in LANGUAGES)


def language_code(name: str) -> Optional[str]:
    key = (name or "").strip().lower()
    for code, display in LANGUAGES:
        if key in (code, display.lower()):
            return code
    return None
