from __future__ import annotations

import sys
from typing import Sequence, TextIO

from livetrans.contracts import Segment, TranslationSegment


class ConsolePresenter:
    """
    Prints each transcript line once it is final and each translation once
    it settles (translated or failed). Partial text is shown only in debug.
    """

    def __init__(self, *, target_lang: str, show_partial: bool = False, out: TextIO | None = None) -> None:
        self.target_lang = target_lang
        self.show_partial = show_partial
        self.out = out or sys.stdout
        self._printed_src: set[str] = set()
        self._printed_dst: dict[str, str] = {}
        self._last_partial = ""

    def reset(self) -> None:
        self._printed_src.clear()
        self._printed_dst.clear()
        self._last_partial = ""

    def render(self, transcription: Sequence[Segment], translation: Sequence[TranslationSegment]) -> None:
        for seg in transcription:
            if seg.is_final:
                if seg.id not in self._printed_src:
                    self._printed_src.add(seg.id)
                    self._write(f"[src] {seg.text}")
            elif self.show_partial and seg.text != self._last_partial:
                self._last_partial = seg.text
                self._write(f"[...] {seg.text}")

        for seg in translation:
            if not (seg.is_final or seg.failed):
                continue
            if self._printed_dst.get(seg.id) == seg.text:
                continue
            self._printed_dst[seg.id] = seg.text
            self._write(f"[{self.target_lang}] {seg.text}")

    def _write(self, line: str) -> None:
        print(line, file=self.out, flush=True)
