"""Chooses the token indices where the reveal stops and the speaker turns around."""

from __future__ import annotations

import logging
import math
import random
from bisect import bisect_left
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from teleprompter_mcp.segmenter import Segments

logger = logging.getLogger(__name__)

GRANULARITY_SENTENCE = "sentence"
GRANULARITY_PHRASE = "phrase"
GRANULARITY_WORD = "word"
GRANULARITIES = (GRANULARITY_SENTENCE, GRANULARITY_PHRASE, GRANULARITY_WORD)

DEFAULT_GRANULARITY = GRANULARITY_SENTENCE
DEFAULT_MEAN_UNITS_PER_TURN = 2.0
DEFAULT_GRACE_UNITS = 2

# Turns closer than this many tokens to the previous one are dropped
MIN_TURN_SPACING = 3

COUNT_JITTER_RANGE = (0.8, 1.2)
STEP_JITTER = (-1, 0, 1)


def validate_granularity(granularity: str) -> str:
    value = (granularity or "").strip().lower()
    if value not in GRANULARITIES:
        raise ValueError(
            f"Unsupported granularity: {granularity!r} (expected one of {', '.join(GRANULARITIES)})"
        )
    return value


def effective_mean(value: Any) -> float:
    """Average sentences per turn, floored at 1. Missing or zero means the default."""
    try:
        mean = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MEAN_UNITS_PER_TURN
    if not math.isfinite(mean) or mean == 0:
        return DEFAULT_MEAN_UNITS_PER_TURN
    return max(1.0, mean)


def effective_grace(value: Any) -> int:
    try:
        grace = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_GRACE_UNITS
    return max(0, grace)


def round_half_up(value: float) -> int:
    # round() is banker's rounding; pacing wants 2.5 -> 3
    return int(math.floor(value + 0.5))


@dataclass
class ScheduleParams:
    """Pacing policy for one schedule computation."""

    granularity: str = DEFAULT_GRANULARITY
    mean_units_per_turn: float = DEFAULT_MEAN_UNITS_PER_TURN
    grace_units: int = DEFAULT_GRACE_UNITS

    def __post_init__(self) -> None:
        self.granularity = validate_granularity(self.granularity)


def candidate_boundaries(segments: Segments, granularity: str) -> Sequence[int]:
    """Returns the boundary list that turns may snap to."""
    granularity = validate_granularity(granularity)
    if granularity == GRANULARITY_SENTENCE:
        return segments.sentence_ends
    if granularity == GRANULARITY_PHRASE:
        return segments.phrase_ends
    return segments.word_boundaries


def _first_at_or_after(candidates: Sequence[int], index: int) -> Optional[int]:
    pos = bisect_left(candidates, index)
    if pos >= len(candidates):
        return None
    return candidates[pos]


def schedule(
    segments: Segments,
    params: Optional[ScheduleParams] = None,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """Picks an increasing list of breakpoints for ``segments``.

    The count is jittered around ``(sentences - grace) / mean`` and each hop
    between turns is ``mean`` sentences give or take one, so two runs over the
    same speech differ. Pass a seeded ``random.Random`` for repeatable output.

    Every returned index is at or after the end of sentence ``grace_units``
    (zero-based), strictly before both ``segments.closing_boundary`` and
    ``segments.token_count``, and at least ``MIN_TURN_SPACING`` tokens after
    its predecessor. The list may be empty.
    """
    params = params or ScheduleParams()
    rng = rng or random.Random()

    candidates = candidate_boundaries(segments, params.granularity)
    total = segments.sentence_count
    grace = effective_grace(params.grace_units)

    if total <= grace or not candidates:
        logger.debug(f"No turns: {total} sentence(s), grace {grace}, {len(candidates)} candidate(s)")
        return []

    mean = effective_mean(params.mean_units_per_turn)
    # A turn on the final token would never pause; finishing wins
    limit = min(segments.closing_boundary, segments.token_count)

    low, high = COUNT_JITTER_RANGE
    target = max(1, round_half_up((total - grace) / mean * rng.uniform(low, high)))

    points: List[int] = []

    unit = min(total - 1, grace + rng.randint(0, 1))
    first = _first_at_or_after(candidates, segments.sentence_ends[unit])
    if first is not None and first < limit:
        points.append(first)

    while len(points) < target:
        step = max(1, round_half_up(mean + rng.choice(STEP_JITTER)))
        unit += step
        if unit >= total:
            break
        point = _first_at_or_after(candidates, segments.sentence_ends[unit])
        if point is None or point >= limit:
            break
        if not points or point - points[-1] >= MIN_TURN_SPACING:
            points.append(point)

    logger.debug(f"Scheduled {len(points)}/{target} turn(s) at {points}")
    return points


__all__ = [
    "DEFAULT_GRACE_UNITS",
    "DEFAULT_GRANULARITY",
    "DEFAULT_MEAN_UNITS_PER_TURN",
    "GRANULARITIES",
    "GRANULARITY_PHRASE",
    "GRANULARITY_SENTENCE",
    "GRANULARITY_WORD",
    "MIN_TURN_SPACING",
    "ScheduleParams",
    "candidate_boundaries",
    "effective_grace",
    "effective_mean",
    "schedule",
    "validate_granularity",
]
