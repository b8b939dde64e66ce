"""Tests for the session helpers behind the MCP tools."""

from __future__ import annotations

import asyncio

import pytest

from teleprompter_mcp.server import (
    AppContext,
    apply_configuration,
    exit_session_reveal,
    load_speech_text,
    require_engine,
    resume_session_reveal,
    start_session_reveal,
    wait_for_event,
)
from teleprompter_mcp.session import Session

SPEECH = " ".join(f"Senators, hear point {i}." for i in range(12)) + " In conclusion, go. Now. Truly."


def _context(timer) -> AppContext:
    return AppContext(session=Session(), call_later=timer.call_later)


def test_configure_updates_session(timer) -> None:
    ctx = _context(timer)
    status = apply_configuration(ctx, confidence="LOW", wpm=90, granularity="phrase", seed=3)

    assert status["confidence"] == "low"
    assert status["wpm"] == 90
    assert status["granularity"] == "phrase"
    assert status["mean_units_per_turn"] == 1.0
    assert ctx.session.seed == 3

    with pytest.raises(ValueError):
        apply_configuration(ctx, granularity="stanza")


def test_tools_need_a_loaded_speech(timer) -> None:
    ctx = _context(timer)

    with pytest.raises(ValueError, match="load_speech"):
        require_engine(ctx)
    with pytest.raises(ValueError):
        start_session_reveal(ctx)


def test_load_speech_schedules_turns_before_closing(timer) -> None:
    ctx = _context(timer)
    apply_configuration(ctx, seed=11)
    result = load_speech_text(ctx, SPEECH)

    assert result["token_count"] == 12 * 4 + 5
    assert result["sentence_count"] == 15
    assert result["closing_boundary"] == 48
    assert result["breakpoints"]
    assert all(b < 48 for b in result["breakpoints"])
    assert result["interval_ms"] == 480

    again = load_speech_text(ctx, SPEECH)
    assert again["breakpoints"] == result["breakpoints"]


def test_load_speech_can_add_closing_runway(timer) -> None:
    ctx = _context(timer)
    result = load_speech_text(ctx, "We gather. We argue. We eat. [FINISH]", ensure_runway=True)

    assert "[FINISH]" not in result["text"]
    assert result["closing_boundary"] == 6
    assert result["sentence_count"] == 7


def test_reveal_flow_through_session(timer) -> None:
    async def run() -> tuple[list, dict, dict]:
        ctx = _context(timer)
        apply_configuration(ctx, seed=5, grace_units=0, mean_units_per_turn=1)
        loaded = load_speech_text(ctx, SPEECH)
        first_turn = loaded["breakpoints"][0]

        start_session_reveal(ctx)
        with pytest.raises(ValueError, match="resume"):
            resume_session_reveal(ctx)

        timer.run_until_idle()
        paused = ctx.session.engine.snapshot().to_dict()
        assert paused["state"] == "paused"
        assert paused["revealed_count"] == first_turn

        resumed = resume_session_reveal(ctx)
        stopped = exit_session_reveal(ctx)
        timer.run_until_idle()

        await ctx.forwarder.drain()
        events = []
        while not ctx.events.empty():
            events.append(await wait_for_event(ctx, timeout_seconds=1))
        return events, resumed, stopped

    events, resumed, stopped = asyncio.run(run())

    assert resumed["state"] == "running"
    assert resumed["paragraph_breaks"] == [resumed["revealed_count"]]
    assert stopped["state"] == "idle"
    assert events[0] == {"event": "revealed", "revealed_count": 0, "total": 53}
    assert events[-1]["event"] == "paused"
    assert events[-1]["turn"] == 0


def test_wait_for_event_times_out(timer) -> None:
    async def run() -> dict:
        ctx = _context(timer)
        load_speech_text(ctx, "Ave.")
        return await wait_for_event(ctx, timeout_seconds=0.01)

    assert asyncio.run(run()) == {"event": "timeout"}


def test_reloading_stops_previous_engine(timer) -> None:
    async def run() -> tuple:
        ctx = _context(timer)
        load_speech_text(ctx, SPEECH)
        start_session_reveal(ctx)
        old = ctx.session.engine

        load_speech_text(ctx, "Fresh start. Again.")
        timer.run_until_idle()
        return old, ctx

    old, ctx = asyncio.run(run())

    assert old.state == "idle"
    assert old.revealed_count == 0
    assert ctx.session.engine is not old
    assert ctx.session.engine.state == "idle"


def test_reload_discards_undelivered_events_of_previous_speech(timer) -> None:
    async def run() -> list:
        ctx = _context(timer)
        load_speech_text(ctx, SPEECH)
        start_session_reveal(ctx)
        timer.advance(2)

        # deliveries for the old speech are scheduled but have not run yet
        load_speech_text(ctx, "Fresh start. Again.")
        await asyncio.sleep(0)
        await ctx.forwarder.drain()

        events = []
        while not ctx.events.empty():
            events.append(ctx.events.get_nowait())
        return events

    assert asyncio.run(run()) == []
