from __future__ import annotations
from .base import Translator
from livetrans.contracts import TranslationRequest, TranslationResult
from livetrans.errors import TranslationFailure
from livetrans.nlp.languages import language_code

class ArgosTranslator(Translator):
    """Offline translation. Each segment is translated on its own."""

    def __init__(self, from_code: str = "en", auto_install: bool = True):
        self.from_code = from_code
        self.auto_install = auto_install
        self._ready: set[str] = set()

    @property
    def name(self) -> str:
        return "argos"

    def _ensure_ready(self, to_code: str) -> None:
        if to_code in self._ready:
            return

        import argostranslate.package
        import argostranslate.translate

        installed = argostranslate.translate.get_installed_languages()
        have_from = any(l.code == self.from_code for l in installed)
        have_to = any(l.code == to_code for l in installed)

        if not (have_from and have_to):
            if not self.auto_install:
                raise TranslationFailure("Argos model not installed and auto_install=False")

            argostranslate.package.update_package_index()
            available = argostranslate.package.get_available_packages()

            pkg = None
            for p in available:
                if p.from_code == self.from_code and p.to_code == to_code:
                    pkg = p
                    break
            if pkg is None:
                raise TranslationFailure(f"No Argos package found for {self.from_code}->{to_code}")

            path = pkg.download()
            argostranslate.package.install_from_path(path)

        self._ready.add(to_code)

    def translate(self, req: TranslationRequest) -> TranslationResult:
        to_code = language_code(req.target_lang)
        if to_code is None:
            raise TranslationFailure(f"Unsupported target language: {req.target_lang}")
        segments = tuple(req.segments)
        if to_code == self.from_code:
            return TranslationResult(source_segments=segments, translated_segments=list(segments), provider=self.name)
        self._ensure_ready(to_code)
        import argostranslate.translate
        out = [argostranslate.translate.translate(text, self.from_code, to_code) for text in segments]
        return TranslationResult(source_segments=segments, translated_segments=out, provider=self.name)
