"""Timed word-by-word reveal that freezes at each scheduled turn.

States::

    idle -> running -> paused -> running -> ... -> finished

``start()`` and ``resume()`` are the only ways into ``running``; ``exit()``
returns to ``idle`` from anywhere. Exactly one timer is pending while the
engine is running and none otherwise. Every callback is stamped with the
epoch it was scheduled in, so a callback that fires after ``exit()`` or a
restart finds a stale epoch and does nothing.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_PAUSED = "paused"
STATE_FINISHED = "finished"

EVENT_REVEALED = "revealed"
EVENT_PAUSED = "paused"
EVENT_FINISHED = "finished"

MIN_WPM = 60
DEFAULT_WPM = 125
DEFAULT_SETTLE_DELAY_MS = 800
DEFAULT_FINISH_DELAY_MS = 0


class InvalidTransition(RuntimeError):
    """Raised when an operation is not allowed in the engine's current state."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"Cannot {operation} while {state}")
        self.operation = operation
        self.state = state


class TimerHandle(Protocol):
    def cancel(self) -> Any:  # pragma: no cover - protocol marker
        ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


@dataclass(frozen=True)
class RevealEvent:
    """Something a host UI should react to."""

    kind: str
    revealed_count: int
    total: int
    turn: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "event": self.kind,
            "revealed_count": self.revealed_count,
            "total": self.total,
        }
        if self.turn is not None:
            payload["turn"] = self.turn
        return payload


Listener = Callable[[RevealEvent], None]


def tick_interval_ms(wpm: Any) -> float:
    """Milliseconds between two revealed tokens, with the pace floored at 60 wpm."""
    try:
        value = float(wpm)
    except (TypeError, ValueError):
        value = DEFAULT_WPM
    if math.isnan(value):
        value = DEFAULT_WPM
    return 60000 / max(MIN_WPM, value)


def _asyncio_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class RevealSnapshot:
    state: str
    revealed_count: int
    total: int
    progress: float
    next_breakpoint_index: int
    breakpoints: List[int] = field(default_factory=list)
    paragraph_breaks: List[int] = field(default_factory=list)
    displayed_text: str = ""
    paragraphs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "revealed_count": self.revealed_count,
            "total": self.total,
            "progress": self.progress,
            "next_breakpoint_index": self.next_breakpoint_index,
            "breakpoints": list(self.breakpoints),
            "paragraph_breaks": list(self.paragraph_breaks),
            "displayed_text": self.displayed_text,
            "paragraphs": list(self.paragraphs),
        }


class RevealEngine:
    """Reveals ``tokens`` one at a time and pauses at each breakpoint."""

    def __init__(
        self,
        tokens: Sequence[str],
        breakpoints: Sequence[int] = (),
        *,
        wpm: Any = DEFAULT_WPM,
        settle_delay_ms: float = DEFAULT_SETTLE_DELAY_MS,
        finish_delay_ms: float = DEFAULT_FINISH_DELAY_MS,
        call_later: Optional[CallLater] = None,
    ) -> None:
        self.tokens: tuple[str, ...] = tuple(tokens)
        self.breakpoints: tuple[int, ...] = tuple(breakpoints)
        self.wpm = wpm
        self.settle_delay_ms = max(0.0, float(settle_delay_ms))
        self.finish_delay_ms = max(0.0, float(finish_delay_ms))
        self._call_later: CallLater = call_later or _asyncio_call_later

        self.state: str = STATE_IDLE
        self.revealed_count = 0
        self.next_breakpoint_index = 0
        self.paragraph_breaks: List[int] = []

        self._listeners: List[Listener] = []
        self._pending: Optional[TimerHandle] = None
        self._epoch = 0

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.tokens)

    @property
    def interval_ms(self) -> float:
        return tick_interval_ms(self.wpm)

    @property
    def running(self) -> bool:
        return self.state in (STATE_RUNNING, STATE_PAUSED)

    @property
    def paused(self) -> bool:
        return self.state == STATE_PAUSED

    @property
    def has_pending_timer(self) -> bool:
        return self._pending is not None

    @property
    def displayed_text(self) -> str:
        return " ".join(self.tokens[: self.revealed_count])

    @property
    def progress(self) -> float:
        if not self.tokens:
            return 0.0
        return min(1.0, self.revealed_count / len(self.tokens))

    @property
    def paragraphs(self) -> List[str]:
        """Revealed text split into a new paragraph after every turn."""
        if not self.tokens or self.revealed_count == 0:
            return []
        breaks = list(self.paragraph_breaks)
        if not breaks or breaks[-1] != self.revealed_count:
            breaks.append(self.revealed_count)

        parts: List[str] = []
        prev = 0
        for b in breaks:
            if b > prev:
                parts.append(" ".join(self.tokens[prev:b]))
            prev = b
        return parts

    def snapshot(self) -> RevealSnapshot:
        return RevealSnapshot(
            state=self.state,
            revealed_count=self.revealed_count,
            total=self.total,
            progress=self.progress,
            next_breakpoint_index=self.next_breakpoint_index,
            breakpoints=list(self.breakpoints),
            paragraph_breaks=list(self.paragraph_breaks),
            displayed_text=self.displayed_text,
            paragraphs=self.paragraphs,
        )

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begins a fresh run from the first token."""
        if self.state not in (STATE_IDLE, STATE_FINISHED):
            raise InvalidTransition("start", self.state)
        self._cancel_pending()
        self.revealed_count = 0
        self.next_breakpoint_index = 0
        self.paragraph_breaks = []
        self.state = STATE_RUNNING
        logger.info(f"▶️ Reveal started: {self.total} token(s), {len(self.breakpoints)} turn(s)")
        self._emit(EVENT_REVEALED)
        self._schedule(self.interval_ms, self._tick)

    def resume(self) -> None:
        """Continues after a turn; the next revealed token opens a new paragraph."""
        if self.state != STATE_PAUSED:
            raise InvalidTransition("resume", self.state)
        self._cancel_pending()
        if not self.paragraph_breaks or self.paragraph_breaks[-1] != self.revealed_count:
            self.paragraph_breaks.append(self.revealed_count)
        self.next_breakpoint_index += 1
        self.state = STATE_RUNNING
        logger.info(f"⏯️ Reveal resumed at token {self.revealed_count}")
        self._schedule(self.interval_ms, self._tick)

    def exit(self) -> None:
        """Stops immediately from any state; no pending callback will run afterwards."""
        self._cancel_pending()
        if self.state != STATE_IDLE:
            logger.info(f"⏹️ Reveal exited at token {self.revealed_count}/{self.total}")
        self.state = STATE_IDLE

    cancel = exit

    # ------------------------------------------------------------------
    # Timer plumbing
    # ------------------------------------------------------------------

    def _cancel_pending(self) -> None:
        self._epoch += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule(self, delay_ms: float, action: Callable[[], None]) -> None:
        epoch = self._epoch

        def fire() -> None:
            if epoch != self._epoch:
                return
            self._pending = None
            action()

        self._pending = self._call_later(delay_ms / 1000.0, fire)

    def _tick(self) -> None:
        if self.state != STATE_RUNNING:
            return
        if self.revealed_count >= self.total:
            self._finish()
            return

        self.revealed_count += 1
        self._emit(EVENT_REVEALED)

        if self.revealed_count == self.total:
            if self.finish_delay_ms > 0:
                self._schedule(self.finish_delay_ms, self._finish)
            else:
                self._finish()
        elif self._at_breakpoint():
            self._schedule(self.settle_delay_ms, self._pause)
        else:
            self._schedule(self.interval_ms, self._tick)

    def _at_breakpoint(self) -> bool:
        return (
            self.next_breakpoint_index < len(self.breakpoints)
            and self.revealed_count == self.breakpoints[self.next_breakpoint_index]
        )

    def _pause(self) -> None:
        self.state = STATE_PAUSED
        logger.info(f"🔄 Turn {self.next_breakpoint_index + 1} at token {self.revealed_count}/{self.total}")
        self._emit(EVENT_PAUSED, turn=self.next_breakpoint_index)

    def _finish(self) -> None:
        self.state = STATE_FINISHED
        logger.info(f"🏁 Reveal finished ({self.total} token(s))")
        self._emit(EVENT_FINISHED)

    def _emit(self, kind: str, turn: Optional[int] = None) -> None:
        event = RevealEvent(kind=kind, revealed_count=self.revealed_count, total=self.total, turn=turn)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"❌ Reveal listener failed on {kind} at {self.revealed_count}/{self.total}")


__all__ = [
    "DEFAULT_FINISH_DELAY_MS",
    "DEFAULT_SETTLE_DELAY_MS",
    "EVENT_FINISHED",
    "EVENT_PAUSED",
    "EVENT_REVEALED",
    "InvalidTransition",
    "MIN_WPM",
    "RevealEngine",
    "RevealEvent",
    "RevealSnapshot",
    "STATE_FINISHED",
    "STATE_IDLE",
    "STATE_PAUSED",
    "STATE_RUNNING",
    "tick_interval_ms",
]
