"""Utilities for sending reveal events to a host UI."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Protocol, Set, Union

from teleprompter_mcp.reveal import EVENT_FINISHED, EVENT_PAUSED, EVENT_REVEALED, RevealEvent

logger = logging.getLogger(__name__)


class SenderProtocol(Protocol):
    async def send(self, message: str) -> Any:  # pragma: no cover - protocol marker
        ...


SendCallable = Callable[[Dict[str, Any]], Awaitable[None]]
SendTarget = Union[SenderProtocol, SendCallable]


async def _dispatch(target: SendTarget, payload: Dict[str, Any]) -> None:
    """Attempts to deliver a payload to the provided send target."""
    if hasattr(target, "send"):
        await target.send(json.dumps(payload))
        return

    result = target(payload)  # type: ignore[operator]
    if inspect.isawaitable(result):
        await result


async def send_revealed_event(send: SendTarget, revealed_count: int, total: int) -> None:
    """Sends the new number of visible tokens."""
    await _dispatch(
        send,
        {"event": EVENT_REVEALED, "revealed_count": revealed_count, "total": total},
    )


async def send_paused_event(send: SendTarget, revealed_count: int, total: int, turn: int) -> None:
    """Sends a turn-around cue; the host should offer a resume control."""
    await _dispatch(
        send,
        {"event": EVENT_PAUSED, "revealed_count": revealed_count, "total": total, "turn": turn},
    )


async def send_finished_event(send: SendTarget, total: int) -> None:
    await _dispatch(send, {"event": EVENT_FINISHED, "revealed_count": total, "total": total})


async def send_reveal_event(send: SendTarget, event: RevealEvent) -> None:
    """Sends any engine event using its own payload shape."""
    if event.kind == EVENT_PAUSED:
        await send_paused_event(send, event.revealed_count, event.total, event.turn or 0)
    elif event.kind == EVENT_FINISHED:
        await send_finished_event(send, event.total)
    elif event.kind == EVENT_REVEALED:
        await send_revealed_event(send, event.revealed_count, event.total)
    else:
        raise ValueError(f"Unsupported reveal event: {event.kind}")


class EventForwarder:
    """Engine listener that forwards each event to an async send target.

    Engine callbacks are synchronous, so each delivery is scheduled as a task on
    the running loop. Tasks start in creation order, which keeps events ordered
    for targets that do not suspend before recording them.
    """

    def __init__(self, send: SendTarget) -> None:
        self.send = send
        self._tasks: Set[asyncio.Task] = set()

    def __call__(self, event: RevealEvent) -> None:
        task = asyncio.get_running_loop().create_task(send_reveal_event(self.send, event))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"❌ Failed to deliver reveal event: {exc}", exc_info=exc)

    def cancel(self) -> int:
        """Drops deliveries that have not run yet; returns how many were dropped."""
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)

    async def drain(self) -> None:
        """Waits until every scheduled delivery has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = [
    "EventForwarder",
    "send_finished_event",
    "send_paused_event",
    "send_reveal_event",
    "send_revealed_event",
]
