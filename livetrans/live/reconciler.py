from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import replace
from typing import Callable, Optional, Tuple

from livetrans.app.logging_setup import log_event
from livetrans.contracts import Segment, TextAppend, TranscriptEvent, TurnComplete


class TranscriptReconciler:
    """
    Merge incremental transcript events into an ordered segment log.

    `text-append` deltas grow an accumulator for the current utterance; the
    visible tail segment is refreshed at most once per render tick. On
    `turn-complete` the accumulator is trimmed and, when non-empty, replaces
    the partial tail with a finalized segment carrying a fresh id.

    Invariant: at most one non-final segment, always at the tail.
    """

    def __init__(
        self,
        *,
        render_interval: Optional[float] = 0.016,
        on_change: Optional[Callable[[], None]] = None,
        on_finalized: Optional[Callable[[Segment], None]] = None,
        logger: logging.Logger | None = None,
        id_prefix: str = "t",
    ) -> None:
        if render_interval is not None and render_interval < 0:
            raise ValueError("render_interval must be >= 0 when set")
        self.render_interval = render_interval
        self.on_change = on_change
        self.on_finalized = on_finalized
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)
        self._id_prefix = id_prefix
        self._segments: list[Segment] = []
        self._accumulator = ""
        self._render_handle: Optional[asyncio.TimerHandle] = None

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return tuple(replace(s) for s in self._segments)

    @property
    def pending_text(self) -> str:
        return self._accumulator

    @property
    def render_pending(self) -> bool:
        return self._render_handle is not None

    def finalized(self) -> list[Segment]:
        return [replace(s) for s in self._segments if s.is_final]

    def reset(self) -> None:
        """Drop every segment and the accumulator. Ids keep counting."""
        self.cancel_pending_render()
        self._segments.clear()
        self._accumulator = ""

    def handle(self, event: TranscriptEvent) -> Optional[Segment]:
        if isinstance(event, TextAppend):
            if not isinstance(event.text, str):
                log_event(self.logger, logging.WARNING, "transcript_event_malformed", kind="text-append")
                return None
            self.append_text(event.text)
            return None
        if isinstance(event, TurnComplete):
            return self.complete_turn()
        log_event(self.logger, logging.WARNING, "transcript_event_unknown", kind=type(event).__name__)
        return None

    def append_text(self, delta: str) -> None:
        if not delta:
            return
        self._accumulator += delta
        if self.render_interval is None:
            self.flush_render()
            return
        if self._render_handle is None:
            loop = asyncio.get_running_loop()
            self._render_handle = loop.call_later(self.render_interval, self._on_render_tick)

    def complete_turn(self) -> Optional[Segment]:
        self.cancel_pending_render()
        text = self._accumulator.strip()
        self._accumulator = ""
        self._drop_partial_tail()

        if not text:
            log_event(self.logger, logging.DEBUG, "turn_complete_empty")
            self._changed()
            return None

        segment = Segment(id=self._new_id(), text=text, is_final=True)
        self._segments.append(segment)
        log_event(self.logger, logging.INFO, "segment_finalized", segment_id=segment.id, chars=len(text))
        self._changed()
        if self.on_finalized is not None:
            self.on_finalized(replace(segment))
        return replace(segment)

    def flush_render(self) -> None:
        """Apply the accumulator to the visible partial tail."""
        if not self._accumulator:
            return
        tail = self._segments[-1] if self._segments else None
        if tail is not None and not tail.is_final:
            tail.text = self._accumulator
        else:
            self._segments.append(Segment(id=self._new_id(), text=self._accumulator, is_final=False))
        self._changed()

    def cancel_pending_render(self) -> None:
        if self._render_handle is not None:
            self._render_handle.cancel()
            self._render_handle = None

    def _on_render_tick(self) -> None:
        self._render_handle = None
        self.flush_render()

    def _drop_partial_tail(self) -> None:
        if self._segments and not self._segments[-1].is_final:
            self._segments.pop()

    def _new_id(self) -> str:
        return f"{self._id_prefix}-{next(self._ids)}"

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
