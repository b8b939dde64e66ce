#!/usr/bin/env python3
"""Terminal teleprompter for playing a round without an MCP client.

- The speech is read from a file (or stdin) and revealed word by word
- At every turn the reveal stops and shows TURN AROUND!
- Press Enter to resume, or type /quit to leave
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
import threading
from pathlib import Path
from typing import IO, Optional

from dotenv import load_dotenv

from teleprompter_mcp.reveal import EVENT_FINISHED, EVENT_PAUSED, EVENT_REVEALED, RevealEngine, RevealEvent
from teleprompter_mcp.scheduler import GRANULARITIES, schedule
from teleprompter_mcp.segmenter import prepare_speech, segment
from teleprompter_mcp.session import Session

logger = logging.getLogger(__name__)


class TerminalHost:
    """Prints revealed tokens and turn cues as the engine emits them."""

    def __init__(self, engine: RevealEngine, out=None) -> None:
        self.engine = engine
        self.out = out or sys.stdout
        self.paused = asyncio.Event()
        self.finished = asyncio.Event()

    def __call__(self, event: RevealEvent) -> None:
        if event.kind == EVENT_REVEALED and event.revealed_count > 0:
            token = self.engine.tokens[event.revealed_count - 1]
            starts_paragraph = event.revealed_count - 1 in self.engine.paragraph_breaks
            if starts_paragraph:
                self.out.write("\n\n")
            elif event.revealed_count > 1:
                self.out.write(" ")
            self.out.write(token)
            self.out.flush()
        elif event.kind == EVENT_PAUSED:
            self.out.write("\n\n🔄 TURN AROUND! (press Enter to resume)\n")
            self.out.flush()
            self.paused.set()
        elif event.kind == EVENT_FINISHED:
            self.out.write("\n\n🏛️ Congratulations, you survived!\n")
            self.out.flush()
            self.finished.set()


async def read_line(keys: IO[str]) -> str:
    """Reads one line from ``keys`` on a daemon thread; "" means end of input.

    Shutdown never waits on a pending read, so Ctrl+C exits during a turn.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def deliver(line: str, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line)

    def worker() -> None:
        try:
            line = keys.readline()
        except Exception as e:
            loop.call_soon_threadsafe(deliver, "", e)
        else:
            loop.call_soon_threadsafe(deliver, line, None)

    threading.Thread(target=worker, name="teleprompter-keys", daemon=True).start()
    return await future


async def play(engine: RevealEngine, host: TerminalHost, keys: Optional[IO[str]] = None) -> int:
    keys = keys or sys.stdin
    engine.add_listener(host)
    engine.start()

    while True:
        paused = asyncio.ensure_future(host.paused.wait())
        finished = asyncio.ensure_future(host.finished.wait())
        done, pending = await asyncio.wait({paused, finished}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        if finished in done:
            return 0

        host.paused.clear()
        answer = await read_line(keys)
        if not answer or answer.strip().lower() in ("/quit", "/exit"):
            engine.exit()
            print("👋 Goodbye!")
            return 0
        engine.resume()


def open_terminal() -> IO[str]:
    """Opens the controlling terminal for reading resume keystrokes."""
    return open("/dev/tty", encoding="utf-8")


def build_engine(text: str, session: Session, ensure_runway: bool) -> RevealEngine:
    if ensure_runway:
        text = prepare_speech(text, session.closing_phrase)
    pacing = session.pacing()
    segments = segment(text, session.closing_phrase)
    rng = random.Random(session.seed) if session.seed is not None else random.Random()
    breakpoints = schedule(segments, pacing.schedule_params(), rng)
    logger.info(f"📦 {segments.token_count} tokens, turns at {breakpoints}")
    return RevealEngine(
        segments.tokens,
        breakpoints,
        wpm=pacing.wpm,
        settle_delay_ms=session.settle_delay_ms,
        finish_delay_ms=session.finish_delay_ms,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reveal a speech in the terminal with turn-around pauses")
    parser.add_argument("speech", nargs="?", help="Path to the speech text (default: stdin)")
    parser.add_argument("--confidence", choices=["low", "medium", "high"])
    parser.add_argument("--wpm", type=float)
    parser.add_argument("--granularity", choices=GRANULARITIES)
    parser.add_argument("--mean-units-per-turn", type=float)
    parser.add_argument("--grace-units", type=int)
    parser.add_argument("--seed", type=int)
    parser.add_argument("--runway", action="store_true", help="Add a closing section if the speech lacks one")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(message)s")

    session = Session.from_env()
    if args.confidence:
        session.confidence = args.confidence
    if args.wpm is not None:
        session.wpm = args.wpm
    if args.granularity:
        session.granularity = args.granularity
    if args.mean_units_per_turn is not None:
        session.mean_units_per_turn = args.mean_units_per_turn
    if args.grace_units is not None:
        session.grace_units = args.grace_units
    if args.seed is not None:
        session.seed = args.seed

    keys: IO[str] = sys.stdin
    if args.speech:
        text = Path(args.speech).read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()
        # stdin is used up by the speech; Enter has to come from the terminal
        try:
            keys = open_terminal()
        except OSError as e:
            print(f"❌ Speech was read from stdin but no terminal is available for resuming: {e}", file=sys.stderr)
            return 2

    async def run() -> int:
        engine = build_engine(text, session, args.runway)
        return await play(engine, TerminalHost(engine), keys)

    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        print()
        print("👋 Goodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())
