from __future__ import annotations
from abc import ABC, abstractmethod
from livetrans.contracts import TranslationRequest, TranslationResult

class Translator(ABC):
    """Batch translator: one output string per input segment, same order."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def translate(self, req: TranslationRequest) -> TranslationResult: ...
