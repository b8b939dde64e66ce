"""Session state for the teleprompter MCP server."""

from __future__ import annotations

import logging
import os
from typing import Callable, Mapping, Optional

from teleprompter_mcp.presets import DEFAULT_PRESET_ID, Pacing, resolve_pacing
from teleprompter_mcp.reveal import DEFAULT_FINISH_DELAY_MS, DEFAULT_SETTLE_DELAY_MS, RevealEngine
from teleprompter_mcp.scheduler import DEFAULT_GRANULARITY, validate_granularity
from teleprompter_mcp.segmenter import DEFAULT_CLOSING_PHRASE, Segments

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = DEFAULT_PRESET_ID

ENV_PREFIX = "TELEPROMPTER_"


def _env_number(environ: Mapping[str, str], name: str, cast: Callable[[str], float]) -> Optional[float]:
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning(f"⚠️ Ignoring {ENV_PREFIX}{name}={raw!r}: not a number")
        return None


class Session:
    """Represents the currently active teleprompter session (process-local)."""

    def __init__(self) -> None:
        self.confidence: str = DEFAULT_CONFIDENCE  # "low", "medium" or "high"
        self.granularity: str = DEFAULT_GRANULARITY  # "sentence", "phrase" or "word"
        self.wpm: Optional[float] = None  # overrides the preset pace when set
        self.mean_units_per_turn: Optional[float] = None  # overrides the preset turn frequency
        self.grace_units: Optional[int] = None  # overrides the preset grace period
        self.closing_phrase: str = DEFAULT_CLOSING_PHRASE
        self.settle_delay_ms: float = DEFAULT_SETTLE_DELAY_MS
        self.finish_delay_ms: float = DEFAULT_FINISH_DELAY_MS
        self.seed: Optional[int] = None  # fixed seed makes turn placement repeatable

        self.segments: Optional[Segments] = None
        self.engine: Optional[RevealEngine] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Session":
        """Builds a session from ``TELEPROMPTER_*`` variables."""
        environ = os.environ if environ is None else environ
        session = cls()

        confidence = environ.get(ENV_PREFIX + "CONFIDENCE")
        if confidence:
            session.confidence = confidence.strip().lower()

        granularity = environ.get(ENV_PREFIX + "GRANULARITY")
        if granularity:
            try:
                session.granularity = validate_granularity(granularity)
            except ValueError as e:
                logger.warning(f"⚠️ Ignoring {ENV_PREFIX}GRANULARITY: {e}")

        closing_phrase = environ.get(ENV_PREFIX + "CLOSING_PHRASE")
        if closing_phrase is not None:
            session.closing_phrase = closing_phrase

        session.wpm = _env_number(environ, "WPM", float)
        session.mean_units_per_turn = _env_number(environ, "MEAN_UNITS_PER_TURN", float)
        grace = _env_number(environ, "GRACE_UNITS", int)
        session.grace_units = int(grace) if grace is not None else None
        seed = _env_number(environ, "SEED", int)
        session.seed = int(seed) if seed is not None else None

        settle = _env_number(environ, "SETTLE_MS", float)
        if settle is not None:
            session.settle_delay_ms = settle
        finish = _env_number(environ, "FINISH_DELAY_MS", float)
        if finish is not None:
            session.finish_delay_ms = finish

        return session

    def pacing(self) -> Pacing:
        return resolve_pacing(
            confidence=self.confidence,
            wpm=self.wpm,
            mean_units_per_turn=self.mean_units_per_turn,
            granularity=self.granularity,
            grace_units=self.grace_units,
        )

    def describe(self) -> dict:
        pacing = self.pacing()
        return {
            "confidence": pacing.confidence,
            "wpm": pacing.wpm,
            "granularity": pacing.granularity,
            "mean_units_per_turn": pacing.mean_units_per_turn,
            "grace_units": pacing.grace_units,
            "closing_phrase": self.closing_phrase,
            "settle_delay_ms": self.settle_delay_ms,
            "finish_delay_ms": self.finish_delay_ms,
            "seed": self.seed,
            "has_speech": self.segments is not None,
        }


__all__ = ["DEFAULT_CONFIDENCE", "Session"]
