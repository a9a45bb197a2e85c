"""
Tests for Pydantic schema validation and configuration.

Ensures that invalid models and configurations are rejected at
construction time.
"""

import pytest
from pydantic import ValidationError

from player_metrics.config import EngineConfig, ReadinessConfig, ReadinessWeights, Settings
from player_metrics.schemas import (
    Agreement,
    AssessmentContext,
    ConsensusRecord,
    MetricCategory,
    MetricDefinition,
    MetricValue,
    PlayerPosition,
    SnapshotDraft,
)


# ============================================================================
# Configuration
# ============================================================================

def test_readiness_weights_must_sum_to_one():
    """Test that weights not summing to 1.0 are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        ReadinessWeights(technical=0.5, physical=0.5, mental=0.5, attitude=0.1, tactical_fit=0.1)
    assert "must sum to 1.0" in str(exc_info.value)


def test_default_and_position_weights_are_valid():
    config = ReadinessConfig()
    assert sum(config.default_weights.as_dict().values()) == pytest.approx(1.0)
    for position in PlayerPosition:
        weights = config.weights_for(position)
        assert sum(weights.as_dict().values()) == pytest.approx(1.0)


def test_weights_fall_back_to_default_without_position():
    config = ReadinessConfig()
    assert config.weights_for(None) == config.default_weights


def test_engine_config_rejects_single_coach_consensus():
    with pytest.raises(ValidationError):
        EngineConfig(min_coaches=1)


def test_engine_config_rejects_inverted_agreement_bands():
    with pytest.raises(ValidationError) as exc_info:
        EngineConfig(strong_agreement_spread=15.0, moderate_agreement_spread=10.0)
    assert "strong_agreement_spread" in str(exc_info.value)


def test_engine_config_rejects_non_positive_ttl():
    with pytest.raises(ValidationError):
        EngineConfig(baseline_ttl_seconds=0)


def test_settings_read_environment(monkeypatch):
    """Test that PLAYER_METRICS_* variables override defaults."""
    monkeypatch.setenv("PLAYER_METRICS_MIN_COACHES", "3")
    monkeypatch.setenv("PLAYER_METRICS_DATABASE_URL", "sqlite://")

    settings = Settings()
    assert settings.database_url == "sqlite://"
    assert settings.engine_config().min_coaches == 3


# ============================================================================
# Models
# ============================================================================

def test_metric_key_must_be_snake_case():
    with pytest.raises(ValidationError):
        MetricDefinition(key="FirstTouch", display_name="First Touch", category=MetricCategory.TECHNICAL)


def test_metric_value_rejects_nan():
    with pytest.raises(ValidationError):
        MetricValue(metric_key="passing", value=float("nan"))


def test_snapshot_draft_requires_values():
    with pytest.raises(ValidationError):
        SnapshotDraft(player_id="player-1", coach_id="coach-a", values=[])


def test_context_filter_matching():
    """Unset filter dimensions match everything."""
    context = AssessmentContext(center_id="north", position=PlayerPosition.CM, age_group="U16")

    assert AssessmentContext().matches(context)
    assert AssessmentContext(center_id="north").matches(context)
    assert AssessmentContext(center_id="north", age_group="U16").matches(context)
    assert not AssessmentContext(center_id="south").matches(context)
    assert not AssessmentContext(season="2025-26").matches(context)


def test_context_cache_token():
    token = AssessmentContext(center_id="north", position=PlayerPosition.CM).cache_token()
    assert token == "center=north|position=CM|age_group=*|season=*"
    assert AssessmentContext().cache_token() == "center=*|position=*|age_group=*|season=*"


def test_consensus_record_has_no_room_for_identities():
    """The anonymized record rejects any extra (e.g. per-coach) field."""
    fields = dict(
        player_id="player-1",
        target="passing",
        target_kind="metric",
        rater_count=2,
        consensus_value=68.0,
        spread=0.0,
        agreement=Agreement.STRONG,
        formula_version="additive-bias/v1",
    )
    ConsensusRecord(**fields)

    with pytest.raises(ValidationError):
        ConsensusRecord(coach_ids=["coach-a"], **fields)
