"""
Tests for real-time calibration hints.

Peer baseline for passing in the north center: 50, 55, 60, 65
(mean 57.5, dispersion ~5.59), so the notability threshold is the
8-point minimum.
"""

import pytest

from player_metrics.config import EngineConfig
from player_metrics.errors import InvalidMetricKey, RangeViolation
from player_metrics.hints import CalibrationHintGenerator
from player_metrics.schemas import (
    AssessmentContext,
    CalibrationHint,
    HintContext,
    HintFlag,
    InsufficientData,
    MetricCategory,
)

NORTH = AssessmentContext(center_id="north")


@pytest.fixture
def seeded(engine, make_draft):
    for day, (coach, value) in enumerate([("coach-b", 50), ("coach-c", 55), ("coach-b", 60), ("coach-c", 65)]):
        engine.record_snapshot(make_draft(coach_id=coach, values={"passing": value}, context=NORTH, day=day))
    return engine


def _hint(engine, value, coach_id="coach-a", context=NORTH):
    return engine.get_calibration_hints(
        "passing", value, HintContext(coach_id=coach_id, player_id="player-9", context=context)
    )


def test_insufficient_context_data(engine, make_draft):
    engine.record_snapshot(make_draft(values={"passing": 50}, context=NORTH))
    engine.record_snapshot(make_draft(values={"passing": 60}, context=NORTH))

    result = _hint(engine, 70)

    assert isinstance(result, InsufficientData)
    assert result.reason == "insufficient context data"
    assert result.sample_size == 2
    assert result.required == 3


def test_in_line_rating(seeded):
    hint = _hint(seeded, 60)

    assert isinstance(hint, CalibrationHint)
    assert hint.peer_average == pytest.approx(57.5)
    assert hint.peer_dispersion == pytest.approx(31.25 ** 0.5)
    assert hint.peer_sample_size == 4
    assert hint.delta_from_peers == pytest.approx(2.5)
    assert hint.flag == HintFlag.IN_LINE
    assert not hint.is_extreme
    assert hint.suggestion is None
    assert 50 < hint.percentile < 70


def test_notably_higher_and_extreme(seeded):
    hint = _hint(seeded, 75)

    assert hint.flag == HintFlag.NOTABLY_HIGHER
    assert hint.is_extreme
    assert hint.percentile > 99
    assert "Consider adding a note to explain the rating." in hint.suggestion
    assert "17.5 points above" in hint.message


def test_notably_lower(seeded):
    hint = _hint(seeded, 40)

    assert hint.flag == HintFlag.NOTABLY_LOWER
    assert hint.delta_from_peers == pytest.approx(-17.5)
    assert "below" in hint.message


def test_coach_bias_shifts_expectation(seeded, registry, fixed_profiles):
    """A coach who usually rates 12 points high is in line at 75."""
    profiles = fixed_profiles({"coach-a": {MetricCategory.TECHNICAL: (12.0, 0.8)}})
    generator = CalibrationHintGenerator(seeded.baselines, profiles, registry, EngineConfig())

    hint = generator.get_hints("passing", 75, HintContext(coach_id="coach-a", context=NORTH))

    assert hint.coach_bias == pytest.approx(12.0)
    assert hint.expected_for_coach == pytest.approx(69.5)
    assert hint.delta_from_coach_pattern == pytest.approx(5.5)
    assert hint.flag == HintFlag.IN_LINE
    # Still far from peers
    assert hint.is_extreme


def test_unknown_coach_has_no_bias(seeded):
    hint = _hint(seeded, 60, coach_id="coach-new")
    assert hint.coach_bias == 0.0
    assert hint.expected_for_coach == pytest.approx(57.5)


def test_anonymous_request(seeded):
    hint = seeded.get_calibration_hints("passing", 60, HintContext(context=NORTH))
    assert hint.coach_bias == 0.0


def test_other_context_is_insufficient(seeded):
    result = _hint(seeded, 60, context=AssessmentContext(center_id="south"))
    assert isinstance(result, InsufficientData)
    assert result.sample_size == 0


def test_invalid_input(seeded):
    with pytest.raises(InvalidMetricKey):
        seeded.get_calibration_hints("juggling", 50)
    with pytest.raises(RangeViolation):
        seeded.get_calibration_hints("passing", 101)
