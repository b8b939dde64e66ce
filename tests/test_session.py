"""Tests for session settings loaded from the environment."""

from __future__ import annotations

from teleprompter_mcp.session import Session


def test_defaults() -> None:
    session = Session()
    status = session.describe()

    assert status["confidence"] == "medium"
    assert status["wpm"] == 125
    assert status["granularity"] == "sentence"
    assert status["settle_delay_ms"] == 800
    assert status["has_speech"] is False


def test_from_env_reads_overrides() -> None:
    session = Session.from_env(
        {
            "TELEPROMPTER_CONFIDENCE": "High",
            "TELEPROMPTER_GRANULARITY": "phrase",
            "TELEPROMPTER_WPM": "150",
            "TELEPROMPTER_MEAN_UNITS_PER_TURN": "2.5",
            "TELEPROMPTER_GRACE_UNITS": "1",
            "TELEPROMPTER_CLOSING_PHRASE": "to conclude",
            "TELEPROMPTER_SETTLE_MS": "500",
            "TELEPROMPTER_FINISH_DELAY_MS": "250",
            "TELEPROMPTER_SEED": "7",
        }
    )
    pacing = session.pacing()

    assert pacing.confidence == "high"
    assert pacing.granularity == "phrase"
    assert pacing.wpm == 150
    assert pacing.mean_units_per_turn == 2.5
    assert pacing.grace_units == 1
    assert session.closing_phrase == "to conclude"
    assert session.settle_delay_ms == 500
    assert session.finish_delay_ms == 250
    assert session.seed == 7


def test_from_env_ignores_garbage(caplog) -> None:
    session = Session.from_env(
        {
            "TELEPROMPTER_WPM": "fast",
            "TELEPROMPTER_GRANULARITY": "chapter",
            "TELEPROMPTER_SEED": "1.5",
            "TELEPROMPTER_GRACE_UNITS": "  ",
        }
    )

    assert session.wpm is None
    assert session.granularity == "sentence"
    assert session.seed is None
    assert session.grace_units is None
    assert "TELEPROMPTER_WPM" in caplog.text
    assert "chapter" in caplog.text
