from __future__ import annotations
import os
from typing import Callable, Optional
from .base import Translator
from .argos import ArgosTranslator
from .gemini import DEFAULT_TRANSLATION_MODEL, GeminiTranslator
from .stub import StubTranslator

def get_translator(
    provider: str | None = None,
    *,
    api_key: Optional[Callable[[], str]] = None,
    model: str = DEFAULT_TRANSLATION_MODEL,
    source_lang: str = "en",
) -> Translator:
    provider = (provider or os.getenv("LIVETRANS_TRANSLATOR", "gemini")).lower().strip()

    if provider == "gemini":
        if api_key is None:
            raise ValueError("gemini translator needs an api_key provider")
        return GeminiTranslator(api_key=api_key, model=model)
    if provider == "argos":
        return ArgosTranslator(from_code=source_lang)
    if provider == "stub":
        return StubTranslator()

    raise ValueError(f"Unknown translator provider: {provider}")
