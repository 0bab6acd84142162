from __future__ import annotations
from .base import Translator
from livetrans.contracts import TranslationRequest, TranslationResult

class StubTranslator(Translator):
    @property
    def name(self) -> str:
        return "stub"

    def translate(self, req: TranslationRequest) -> TranslationResult:
        # Deterministic, test-friendly
        out = [f"[{req.target_lang}] {text}" for text in req.segments]
        return TranslationResult(source_segments=tuple(req.segments), translated_segments=out, provider=self.name)
