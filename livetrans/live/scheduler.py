from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional, Sequence, Tuple

from livetrans.app.logging_setup import log_event
from livetrans.contracts import (
    TRANSLATION_ERROR_TEXT,
    Segment,
    TranslationRequest,
    TranslationSegment,
)
from livetrans.errors import MalformedRemoteResponse, TranslationFailure
from livetrans.nlp.translator.base import Translator


def _validate_translations(result: object, expected: int) -> list[str]:
    translated = getattr(result, "translated_segments", None)
    if not isinstance(translated, (list, tuple)):
        raise MalformedRemoteResponse(f"expected a list of translations, got {type(translated).__name__}")
    if len(translated) != expected:
        raise MalformedRemoteResponse(f"expected {expected} translations, got {len(translated)}")
    if not all(isinstance(t, str) for t in translated):
        raise MalformedRemoteResponse("translations must all be strings")
    return list(translated)


class TranslationScheduler:
    """
    Debounced, single-flight batch translation of finalized segments.

    Each finalization replaces any unsettled tail entries with one new
    placeholder and restarts one trailing-edge timer. When it fires, the last
    `context_window_size` finalized segments are sent as one request and the
    answers are written back by id; window ids missing from the log are put
    back in transcript order. A timer that fires while a batch is in flight
    is deferred until that batch ends.

    Translator calls run on one dedicated worker thread, so a call orphaned
    by `cancel()` still finishes before the next one starts.
    """

    def __init__(
        self,
        *,
        translator: Translator,
        source: Callable[[], Sequence[Segment]],
        target_lang: str = "Spanish",
        context_window_size: int = 5,
        debounce_ms: int = 1500,
        on_change: Optional[Callable[[], None]] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if context_window_size <= 0:
            raise ValueError("context_window_size must be > 0")
        if debounce_ms < 0:
            raise ValueError("debounce_ms must be >= 0")
        self.translator = translator
        self.source = source
        self.target_lang = target_lang
        self.context_window_size = int(context_window_size)
        self.debounce_ms = int(debounce_ms)
        self.on_change = on_change
        self.logger = logger or logging.getLogger(__name__)

        self._segments: list[TranslationSegment] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._rerun = False
        self._generation = 0
        self.batches_sent = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="livetrans-translate")

    @property
    def segments(self) -> Tuple[TranslationSegment, ...]:
        return tuple(replace(s) for s in self._segments)

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    def reset(self) -> None:
        self.cancel()
        self._segments.clear()

    def cancel(self) -> None:
        """Cancel the timer and orphan any in-flight batch. Late results are dropped."""
        self._generation += 1
        self._rerun = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def on_finalized(self, segment: Segment) -> None:
        if not segment.is_final:
            log_event(self.logger, logging.WARNING, "translate_skip_partial", segment_id=segment.id)
            return
        if any(s.id == segment.id for s in self._segments):
            log_event(self.logger, logging.WARNING, "translate_duplicate_segment", segment_id=segment.id)
            return
        # Only unsettled entries are replaced; translated ones stay.
        self._segments = [s for s in self._segments if s.is_final]
        self._segments.append(TranslationSegment(id=segment.id))
        self._changed()
        self._arm_timer()

    def _arm_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_ms / 1000.0, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._task is not None:
            self._rerun = True
            log_event(self.logger, logging.DEBUG, "translate_batch_deferred")
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_batch(self._generation))

    def _context_window(self) -> list[Segment]:
        finalized = [s for s in self.source() if s.is_final]
        return finalized[-self.context_window_size :]

    async def _run_batch(self, generation: int) -> None:
        window = self._context_window()
        try:
            if not window:
                return
            ids = [s.id for s in window]
            req = TranslationRequest(segments=tuple(s.text for s in window), target_lang=self.target_lang)
            self.batches_sent += 1
            t0 = time.perf_counter()
            translations: Optional[list[str]] = None
            try:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(self._executor, self.translator.translate, req)
                translations = _validate_translations(result, len(ids))
            except TranslationFailure as e:
                log_event(
                    self.logger,
                    logging.WARNING,
                    "translate_batch_failed",
                    error=str(e),
                    kind=type(e).__name__,
                    batch=len(ids),
                )
            except Exception:
                self.logger.exception("translate_batch_crashed", extra={"batch": len(ids)})

            if generation != self._generation:
                log_event(self.logger, logging.INFO, "translate_batch_discarded", batch=len(ids))
                return
            self._apply(ids, translations)
            log_event(
                self.logger,
                logging.INFO,
                "translate_batch_done",
                batch=len(ids),
                ok=translations is not None,
                ms=round((time.perf_counter() - t0) * 1000.0, 2),
            )
        finally:
            if generation == self._generation:
                self._task = None
                if self._rerun:
                    self._rerun = False
                    self._arm_timer()

    def _apply(self, ids: list[str], translations: Optional[list[str]]) -> None:
        by_id = {s.id: s for s in self._segments}
        restored = False
        for i, seg_id in enumerate(ids):
            target = by_id.get(seg_id)
            if target is None:
                # Placeholder was replaced by a later one; the window still covers it.
                target = TranslationSegment(id=seg_id)
                self._segments.append(target)
                restored = True
            if translations is None:
                target.text = TRANSLATION_ERROR_TEXT
                target.is_final = False
                target.failed = True
            else:
                target.text = translations[i]
                target.is_final = True
                target.failed = False
        if restored:
            order = {s.id: pos for pos, s in enumerate(self.source())}
            self._segments.sort(key=lambda s: order.get(s.id, len(order)))
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
