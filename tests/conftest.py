"""Test configuration: import path and a manually driven timer."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure `teleprompter_mcp` is importable without installing the project
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


class FakeHandle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimer:
    """Stands in for ``loop.call_later``; time only moves when ``advance`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: List[FakeHandle] = []
        self.delays: List[float] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        self.delays.append(delay)
        return handle

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = max(self.now, handle.due)
            handle.callback()
        self.now = target

    def run_until_idle(self, limit: int = 100000) -> None:
        """Fires pending callbacks in due order until none remain."""
        for _ in range(limit):
            live = self.pending
            if not live:
                return
            handle = min(live, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = max(self.now, handle.due)
            handle.callback()
        raise AssertionError("timer never went idle")


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()
