from __future__ import annotations

import asyncio

from livetrans.contracts import Segment, TextAppend, TurnComplete
from livetrans.live.reconciler import TranscriptReconciler


def _non_final(segments) -> list[Segment]:
    return [s for s in segments if not s.is_final]


def test_appends_then_turn_complete_finalizes_one_segment() -> None:
    finalized: list[Segment] = []
    rec = TranscriptReconciler(render_interval=None, on_finalized=finalized.append)

    rec.handle(TextAppend("Hello"))
    rec.handle(TextAppend(" world"))
    (partial,) = rec.segments
    assert partial.text == "Hello world"
    assert partial.is_final is False

    seg = rec.handle(TurnComplete())
    assert seg is not None
    assert [(s.text, s.is_final) for s in rec.segments] == [("Hello world", True)]
    assert [s.text for s in finalized] == ["Hello world"]
    assert seg.id != partial.id
    assert rec.pending_text == ""


def test_whitespace_turn_produces_no_segment() -> None:
    finalized: list[Segment] = []
    rec = TranscriptReconciler(render_interval=None, on_finalized=finalized.append)
    rec.handle(TextAppend("   "))
    rec.handle(TextAppend("\n"))
    assert rec.handle(TurnComplete()) is None
    assert rec.segments == ()
    assert finalized == []


def test_turn_complete_without_text_is_ignored() -> None:
    rec = TranscriptReconciler(render_interval=None)
    assert rec.handle(TurnComplete()) is None
    assert rec.segments == ()


def test_at_most_one_partial_segment_at_tail() -> None:
    rec = TranscriptReconciler(render_interval=None)
    script = [
        TextAppend("one"),
        TextAppend(" two"),
        TurnComplete(),
        TextAppend("three"),
        TextAppend(" four"),
        TurnComplete(),
        TextAppend("five"),
    ]
    for event in script:
        rec.handle(event)
        segs = rec.segments
        assert len(_non_final(segs)) <= 1
        if _non_final(segs):
            assert segs[-1].is_final is False

    assert [(s.text, s.is_final) for s in rec.segments] == [
        ("one two", True),
        ("three four", True),
        ("five", False),
    ]


def test_ids_stay_unique_across_reset() -> None:
    rec = TranscriptReconciler(render_interval=None)
    rec.handle(TextAppend("a"))
    first = rec.handle(TurnComplete())
    rec.reset()
    assert rec.segments == ()
    rec.handle(TextAppend("b"))
    second = rec.handle(TurnComplete())
    assert first is not None and second is not None
    assert first.id != second.id


def test_unknown_and_malformed_events_are_ignored() -> None:
    rec = TranscriptReconciler(render_interval=None)
    assert rec.handle("not-an-event") is None  # type: ignore[arg-type]
    assert rec.handle(TextAppend(42)) is None  # type: ignore[arg-type]
    assert rec.segments == ()


def test_finalized_segments_are_snapshots() -> None:
    rec = TranscriptReconciler(render_interval=None)
    rec.handle(TextAppend("keep"))
    rec.handle(TurnComplete())
    snap = rec.segments
    snap[0].text = "changed"
    assert rec.segments[0].text == "keep"


def test_renders_are_coalesced_per_tick() -> None:
    async def scenario() -> None:
        changes: list[int] = []
        rec = TranscriptReconciler(render_interval=0.01, on_change=lambda: changes.append(1))
        rec.append_text("a")
        rec.append_text("b")
        rec.append_text("c")
        assert rec.render_pending is True
        assert rec.segments == ()
        assert rec.pending_text == "abc"

        await asyncio.sleep(0.05)
        assert rec.render_pending is False
        assert [s.text for s in rec.segments] == ["abc"]
        assert len(changes) == 1

    asyncio.run(scenario())


def test_turn_complete_cancels_pending_render() -> None:
    async def scenario() -> None:
        rec = TranscriptReconciler(render_interval=0.01)
        rec.append_text("Hello there ")
        rec.complete_turn()
        assert rec.render_pending is False
        await asyncio.sleep(0.05)
        assert [(s.text, s.is_final) for s in rec.segments] == [("Hello there", True)]

    asyncio.run(scenario())


def test_cancel_pending_render_keeps_accumulator() -> None:
    async def scenario() -> None:
        rec = TranscriptReconciler(render_interval=0.01)
        rec.append_text("partial")
        rec.cancel_pending_render()
        await asyncio.sleep(0.05)
        assert rec.segments == ()
        assert rec.pending_text == "partial"

    asyncio.run(scenario())
