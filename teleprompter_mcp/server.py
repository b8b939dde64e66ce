"""MCP server exposing the teleprompter reveal using FastMCP."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from teleprompter_mcp.events import EventForwarder
from teleprompter_mcp.presets import list_presets
from teleprompter_mcp.reveal import EVENT_REVEALED, CallLater, InvalidTransition, RevealEngine, RevealEvent
from teleprompter_mcp.scheduler import schedule, validate_granularity
from teleprompter_mcp.segmenter import prepare_speech, segment
from teleprompter_mcp.session import Session

speech_logger = logging.getLogger("speech")
reveal_logger = logging.getLogger("reveal")


def configure_logging(stdio_mode: bool, log_dir: Optional[Path] = None) -> Path:
    """Sets up stderr and file logging; returns the log file path."""
    log_dir = log_dir or Path(__file__).parent.absolute() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"teleprompter_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    handlers = []
    # In stdio mode stdout/stderr belong to the MCP transport
    if not stdio_mode:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logging.getLogger().addHandler(file_handler)

    if stdio_mode:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    return log_file


@dataclass
class AppContext:
    """Application context with session state."""
    session: Session
    events: asyncio.Queue = field(default_factory=asyncio.Queue)
    call_later: Optional[CallLater] = None  # defaults to the running loop's call_later
    forwarder: Optional[EventForwarder] = None


# Global context (set by lifespan)
_app_context: AppContext | None = None


@asynccontextmanager
async def app_lifespan(mcp: FastMCP):
    """Initialize persistent session state."""
    global _app_context
    ctx = AppContext(session=Session.from_env())
    _app_context = ctx
    logging.info("🚀 Teleprompter MCP Server initialized")
    try:
        yield ctx
    finally:
        if ctx.session.engine is not None:
            ctx.session.engine.exit()
        _app_context = None
        logging.info("🛑 Teleprompter MCP Server shutting down")


# Create FastMCP server
mcp = FastMCP(name="teleprompter-mcp", lifespan=app_lifespan)


def get_context() -> AppContext:
    """Get the application context."""
    if _app_context is None:
        raise RuntimeError("Application context not initialized")
    return _app_context


def _log_event(event: RevealEvent) -> None:
    if event.kind == EVENT_REVEALED:
        reveal_logger.debug(f"📜 {event.revealed_count}/{event.total} tokens visible")
    else:
        reveal_logger.info(f"📣 {event.kind} at {event.revealed_count}/{event.total}")


def _drain_queue(queue: asyncio.Queue) -> int:
    dropped = 0
    while not queue.empty():
        queue.get_nowait()
        dropped += 1
    return dropped


def require_engine(ctx: AppContext) -> RevealEngine:
    if ctx.session.engine is None:
        raise ValueError("No speech loaded. Call 'load_speech' tool first")
    return ctx.session.engine


def apply_configuration(
    ctx: AppContext,
    confidence: str | None = None,
    wpm: float | None = None,
    granularity: str | None = None,
    mean_units_per_turn: float | None = None,
    grace_units: int | None = None,
    closing_phrase: str | None = None,
    seed: int | None = None,
) -> Dict[str, Any]:
    """Updates session settings. Takes effect on the next ``load_speech``."""
    session = ctx.session
    if confidence is not None:
        session.confidence = confidence.strip().lower()
    if granularity is not None:
        session.granularity = validate_granularity(granularity)
    if wpm is not None:
        session.wpm = wpm
    if mean_units_per_turn is not None:
        session.mean_units_per_turn = mean_units_per_turn
    if grace_units is not None:
        session.grace_units = grace_units
    if closing_phrase is not None:
        session.closing_phrase = closing_phrase
    if seed is not None:
        session.seed = seed

    status = session.describe()
    config_parts = [f"{k}={v}" for k, v in status.items() if k != "has_speech"]
    logging.info(f"✅ Session configured: {', '.join(config_parts)}")
    return status


def load_speech_text(ctx: AppContext, text: str, ensure_runway: bool = False) -> Dict[str, Any]:
    """Segments and schedules ``text`` and replaces the session's reveal engine."""
    session = ctx.session
    if session.engine is not None:
        session.engine.exit()

    if ensure_runway:
        text = prepare_speech(text, session.closing_phrase)

    speech_logger.info(f"📝 Speech loaded:\n{text}")

    pacing = session.pacing()
    segments = segment(text, session.closing_phrase)
    rng = random.Random(session.seed) if session.seed is not None else random.Random()
    breakpoints = schedule(segments, pacing.schedule_params(), rng)

    engine = RevealEngine(
        segments.tokens,
        breakpoints,
        wpm=pacing.wpm,
        settle_delay_ms=session.settle_delay_ms,
        finish_delay_ms=session.finish_delay_ms,
        call_later=ctx.call_later,
    )
    if ctx.forwarder is not None:
        cancelled = ctx.forwarder.cancel()
        if cancelled:
            logging.info(f"🧹 Cancelled {cancelled} undelivered event(s) from the previous speech")
    engine.add_listener(_log_event)
    ctx.forwarder = EventForwarder(ctx.events.put)
    engine.add_listener(ctx.forwarder)

    dropped = _drain_queue(ctx.events)
    if dropped:
        logging.info(f"🧹 Dropped {dropped} stale event(s) from the previous speech")

    session.segments = segments
    session.engine = engine

    closing = segments.closing_boundary if segments.has_closing else None
    logging.info(
        f"📦 Speech ready: {segments.token_count} tokens, {segments.sentence_count} sentences, "
        f"turns at {breakpoints}, closing at {closing}"
    )
    return {
        "text": text,
        "token_count": segments.token_count,
        "sentence_count": segments.sentence_count,
        "closing_boundary": closing,
        "breakpoints": breakpoints,
        "interval_ms": engine.interval_ms,
        "pacing": session.describe(),
    }


def _transition(ctx: AppContext, operation: str) -> Dict[str, Any]:
    engine = require_engine(ctx)
    try:
        getattr(engine, operation)()
    except InvalidTransition as e:
        logging.warning(f"⚠️ {e}")
        raise ValueError(str(e)) from e
    return engine.snapshot().to_dict()


def start_session_reveal(ctx: AppContext) -> Dict[str, Any]:
    return _transition(ctx, "start")


def resume_session_reveal(ctx: AppContext) -> Dict[str, Any]:
    return _transition(ctx, "resume")


def exit_session_reveal(ctx: AppContext) -> Dict[str, Any]:
    return _transition(ctx, "exit")


async def wait_for_event(ctx: AppContext, timeout_seconds: float = 30.0) -> Dict[str, Any]:
    """Returns the next engine event payload, or a timeout marker."""
    require_engine(ctx)
    try:
        return await asyncio.wait_for(ctx.events.get(), timeout=max(0.0, timeout_seconds))
    except asyncio.TimeoutError:
        return {"event": "timeout"}


@mcp.tool()
async def configure(
    confidence: str | None = None,
    wpm: float | None = None,
    granularity: str | None = None,
    mean_units_per_turn: float | None = None,
    grace_units: int | None = None,
    closing_phrase: str | None = None,
    seed: int | None = None,
) -> str:
    """Configure pacing for the next speech: confidence preset plus optional overrides."""
    status = apply_configuration(
        get_context(),
        confidence=confidence,
        wpm=wpm,
        granularity=granularity,
        mean_units_per_turn=mean_units_per_turn,
        grace_units=grace_units,
        closing_phrase=closing_phrase,
        seed=seed,
    )
    return json.dumps(status)


@mcp.tool()
async def list_confidence_presets() -> str:
    """List confidence presets and the pacing each one implies."""
    presets = list_presets()
    logging.info(f"📋 Listing {len(presets)} confidence presets")
    return json.dumps({"presets": presets})


@mcp.tool()
async def load_speech(text: str, ensure_runway: bool = False) -> str:
    """Load a speech, place the turn-around points and get ready to reveal it."""
    return json.dumps(load_speech_text(get_context(), text, ensure_runway=ensure_runway))


@mcp.tool()
async def start_reveal() -> str:
    """Start revealing the loaded speech from the first word."""
    return json.dumps(start_session_reveal(get_context()))


@mcp.tool()
async def resume_reveal() -> str:
    """Resume after a turn-around pause."""
    return json.dumps(resume_session_reveal(get_context()))


@mcp.tool()
async def exit_reveal() -> str:
    """Stop the reveal immediately."""
    return json.dumps(exit_session_reveal(get_context()))


@mcp.tool()
async def get_reveal_status() -> str:
    """Get the reveal state, visible text and progress."""
    ctx = get_context()
    status: Dict[str, Any] = {"session": ctx.session.describe()}
    if ctx.session.engine is not None:
        status["reveal"] = ctx.session.engine.snapshot().to_dict()
    return json.dumps(status)


@mcp.tool()
async def next_event(timeout_seconds: float = 30.0) -> str:
    """Wait for the next reveal event (revealed, paused or finished)."""
    return json.dumps(await wait_for_event(get_context(), timeout_seconds))


def main() -> None:
    load_dotenv()
    # Determine transport mode via environment variable, default to streamable-http (remote mode)
    transport = os.getenv("MCP_TRANSPORT", "streamable-http")
    log_file = configure_logging(stdio_mode=transport == "stdio")
    logging.info(f"📝 Logs will be written to: {log_file}")

    if transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport="streamable-http", port=8000, path="/mcp")


if __name__ == "__main__":
    main()


__all__ = ["AppContext", "configure_logging", "main", "mcp"]
