"""Tests for confidence presets and pacing overrides."""

from __future__ import annotations

import logging

import pytest

from teleprompter_mcp.presets import get_preset, list_presets, resolve_pacing


def test_presets_trade_pace_for_turn_frequency() -> None:
    low, medium, high = get_preset("low"), get_preset("medium"), get_preset("high")

    assert (low.wpm, medium.wpm, high.wpm) == (110, 125, 140)
    assert (low.mean_units_per_turn, medium.mean_units_per_turn, high.mean_units_per_turn) == (1.0, 2.0, 3.0)
    assert (low.grace_units, medium.grace_units, high.grace_units) == (2, 2, 3)


def test_unknown_preset_falls_back_to_medium(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        preset = get_preset("reckless")

    assert preset.id == "medium"
    assert "reckless" in caplog.text
    assert get_preset(None).id == "medium"
    assert get_preset(" HIGH ").id == "high"


def test_list_presets() -> None:
    ids = [p["id"] for p in list_presets()]

    assert ids == ["low", "medium", "high"]
    assert {"id", "name", "wpm", "mean_units_per_turn", "grace_units"} <= set(list_presets()[0])


def test_overrides_are_independent() -> None:
    pacing = resolve_pacing("low", wpm=200)

    assert pacing.wpm == 200
    assert pacing.mean_units_per_turn == 1.0
    assert pacing.grace_units == 2

    pacing = resolve_pacing("high", mean_units_per_turn=1.5, grace_units=0, granularity="word")
    assert pacing.wpm == 140
    assert pacing.mean_units_per_turn == 1.5
    assert pacing.grace_units == 0
    assert pacing.schedule_params().granularity == "word"


def test_override_values_are_clamped() -> None:
    pacing = resolve_pacing("medium", mean_units_per_turn=-2, grace_units=-1)

    assert pacing.mean_units_per_turn == 1.0
    assert pacing.grace_units == 0


def test_bad_granularity_raises() -> None:
    with pytest.raises(ValueError):
        resolve_pacing("medium", granularity="syllable")
