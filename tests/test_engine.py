"""
Tests for the CalibrationEngine facade and build_engine.
"""

import pytest

from player_metrics.config import EngineConfig, Settings
from player_metrics.database import SqlSnapshotStore
from player_metrics.engine import PREVIEW_SNAPSHOT_ID, CalibrationEngine, build_engine
from player_metrics.errors import RangeViolation
from player_metrics.schemas import AssessmentContext, SnapshotReceipt, StatusBand
from player_metrics.store import InMemorySnapshotStore


def test_record_snapshot_receipt(engine, make_draft):
    first = engine.record_snapshot(make_draft(values={"passing": 60, "stamina": 70}, day=1))

    assert isinstance(first, SnapshotReceipt)
    assert first.changes == []
    assert first.readiness.snapshot_id == first.snapshot.id

    second = engine.record_snapshot(
        make_draft(coach_id="coach-b", values={"passing": 66, "stamina": 70}, day=2)
    )

    assert [(c.metric_key, c.old_value, c.new_value) for c in second.changes] == [("passing", 60, 66)]


def test_changes_only_against_same_player(engine, make_draft):
    engine.record_snapshot(make_draft("player-1", values={"passing": 60}, day=1))
    receipt = engine.record_snapshot(make_draft("player-2", values={"passing": 90}, day=2))
    assert receipt.changes == []


def test_record_snapshot_updates_cached_baselines(engine, make_draft):
    north = AssessmentContext(center_id="north")
    engine.record_snapshot(make_draft(values={"passing": 50}, context=north))
    assert engine.get_contextual_baseline("passing", north).count == 1

    engine.record_snapshot(make_draft(values={"passing": 70}, context=north))

    baseline = engine.get_contextual_baseline("passing", north)
    assert baseline.count == 2
    assert baseline.mean == pytest.approx(60)


def test_rejected_draft_is_not_recorded(engine, make_draft):
    with pytest.raises(RangeViolation):
        engine.record_snapshot(make_draft(values={"passing": 150}))
    assert engine.latest_snapshot("player-1") is None


def test_preview_readiness_does_not_store(engine, make_draft):
    readiness = engine.preview_readiness(make_draft(values={"passing": 80}))

    assert readiness.snapshot_id == PREVIEW_SNAPSHOT_ID
    assert readiness.overall == pytest.approx(59)
    assert readiness.status_band == StatusBand.DEVELOPING
    assert len(engine.store) == 0

    with pytest.raises(RangeViolation):
        engine.preview_readiness(make_draft(values={"passing": 101}))


def test_latest_snapshot(engine, make_draft):
    engine.record_snapshot(make_draft(values={"passing": 60}, day=2))
    engine.record_snapshot(make_draft(values={"passing": 70}, day=1))

    assert engine.latest_snapshot("player-1").value_of("passing") == 60
    assert engine.latest_snapshot("nobody") is None


def test_engines_do_not_share_caches(registry, clock, make_draft):
    one = CalibrationEngine(InMemorySnapshotStore(registry, clock=clock), registry, clock=clock)
    two = CalibrationEngine(InMemorySnapshotStore(registry, clock=clock), registry, clock=clock)
    one.record_snapshot(make_draft())

    assert one.get_contextual_baseline("passing").count == 1
    assert two.get_contextual_baseline("passing").count == 0
    assert one.baseline_cache is not two.baseline_cache


def test_build_engine_from_settings():
    engine = build_engine(Settings(database_url="sqlite://", min_coaches=3, trend_dead_band=2.0))

    assert isinstance(engine.store, SqlSnapshotStore)
    assert engine.config.min_coaches == 3
    assert engine.config.trend_dead_band == 2.0


def test_build_engine_with_store(store):
    engine = build_engine(Settings(database_url="sqlite://"), store=store)
    assert engine.store is store
    assert engine.config == EngineConfig()
