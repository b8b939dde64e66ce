"""Confidence presets mapping a player's nerve to reading pace and turn frequency."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from teleprompter_mcp.scheduler import (
    DEFAULT_GRANULARITY,
    ScheduleParams,
    effective_grace,
    effective_mean,
)

logger = logging.getLogger(__name__)

DEFAULT_PRESET_ID = "medium"


@dataclass(frozen=True)
class ConfidencePreset:
    """Pacing defaults for one confidence level."""

    id: str
    name: str
    wpm: int
    mean_units_per_turn: float
    grace_units: int


# Low confidence reads slower and turns more often
PRESETS: Dict[str, ConfidencePreset] = {
    "low": ConfidencePreset(
        id="low",
        name="Low (many turns)",
        wpm=110,
        mean_units_per_turn=1.0,
        grace_units=2,
    ),
    "medium": ConfidencePreset(
        id="medium",
        name="Medium",
        wpm=125,
        mean_units_per_turn=2.0,
        grace_units=2,
    ),
    "high": ConfidencePreset(
        id="high",
        name="High (few turns)",
        wpm=140,
        mean_units_per_turn=3.0,
        grace_units=3,
    ),
}


@dataclass(frozen=True)
class Pacing:
    """Resolved pacing: the preset with any explicit overrides applied."""

    confidence: str
    wpm: float
    granularity: str
    mean_units_per_turn: float
    grace_units: int

    def schedule_params(self) -> ScheduleParams:
        return ScheduleParams(
            granularity=self.granularity,
            mean_units_per_turn=self.mean_units_per_turn,
            grace_units=self.grace_units,
        )


def get_preset(preset_id: Optional[str] = None) -> ConfidencePreset:
    """Get a preset by ID, or return the default preset if not specified."""
    if preset_id is None:
        return get_default_preset()
    key = preset_id.strip().lower()
    if key not in PRESETS:
        logger.warning(f"⚠️ Unknown confidence {preset_id!r}, using {DEFAULT_PRESET_ID!r}")
        return get_default_preset()
    return PRESETS[key]


def get_default_preset() -> ConfidencePreset:
    return PRESETS[DEFAULT_PRESET_ID]


def list_presets() -> list[dict[str, Any]]:
    """Get a list of all presets with their IDs, names and pacing."""
    return [
        {
            "id": preset.id,
            "name": preset.name,
            "wpm": preset.wpm,
            "mean_units_per_turn": preset.mean_units_per_turn,
            "grace_units": preset.grace_units,
        }
        for preset in PRESETS.values()
    ]


def resolve_pacing(
    confidence: Optional[str] = None,
    wpm: Optional[float] = None,
    mean_units_per_turn: Optional[float] = None,
    granularity: str = DEFAULT_GRANULARITY,
    grace_units: Optional[int] = None,
) -> Pacing:
    """Applies explicit overrides on top of the confidence preset."""
    preset = get_preset(confidence)
    params = ScheduleParams(
        granularity=granularity,
        mean_units_per_turn=(
            effective_mean(mean_units_per_turn) if mean_units_per_turn is not None else preset.mean_units_per_turn
        ),
        grace_units=effective_grace(grace_units) if grace_units is not None else preset.grace_units,
    )
    return Pacing(
        confidence=preset.id,
        wpm=wpm if wpm is not None else preset.wpm,
        granularity=params.granularity,
        mean_units_per_turn=params.mean_units_per_turn,
        grace_units=params.grace_units,
    )


__all__ = [
    "ConfidencePreset",
    "DEFAULT_PRESET_ID",
    "PRESETS",
    "Pacing",
    "get_default_preset",
    "get_preset",
    "list_presets",
    "resolve_pacing",
]
