"""
Tests for player report building and export.
"""

import json

import pytest

from player_metrics.report import PlayerReport, PlayerReportBuilder, load_report_from_file
from player_metrics.schemas import MetricCategory, PlayerPosition


@pytest.fixture
def assessed(engine, make_draft):
    """player-1 assessed three times by two coaches."""
    engine.record_snapshot(make_draft(coach_id="coach-a", values={"passing": 60, "stamina": 70}, day=1))
    engine.record_snapshot(make_draft(coach_id="coach-b", values={"passing": 66, "stamina": 70}, day=2))
    engine.record_snapshot(make_draft(
        coach_id="coach-a",
        values={"passing": 72, "stamina": 68},
        day=3,
        positional={PlayerPosition.CM: 80, PlayerPosition.AM: 75},
    ))
    return engine


def test_build(assessed):
    report = PlayerReportBuilder(assessed, "player-1").build()

    assert report.snapshot_count == 3
    assert report.readiness.snapshot_id == report.latest_snapshot_id
    assert [(c.metric_key, c.old_value, c.new_value) for c in report.changes] == [
        ("passing", 66, 72),
        ("stamina", 70, 68),
    ]
    passing_trend = next(t for t in report.trends if t.metric_key == "passing")
    assert passing_trend.slope == pytest.approx(6)
    assert [p.position for p in report.positions] == [PlayerPosition.CM, PlayerPosition.AM]
    assert set(report.consensus) == {MetricCategory.TECHNICAL.value, MetricCategory.PHYSICAL.value}


def test_consensus_section_is_anonymized(assessed):
    builder = PlayerReportBuilder(assessed, "player-1")
    builder.build()

    consensus = json.dumps(builder.export_to_json()["consensus"])
    assert "coach" not in consensus


def test_empty_player(engine):
    builder = PlayerReportBuilder(engine, "nobody")
    report = builder.build()

    assert report.snapshot_count == 0
    assert report.readiness is None
    assert report.consensus == {}
    assert "*No snapshots recorded*" in builder.export_to_markdown()


def test_export_to_markdown(assessed):
    builder = PlayerReportBuilder(assessed, "player-1")
    builder.build()

    markdown = builder.export_to_markdown()

    assert markdown.startswith("# Player Report: `player-1`")
    assert "## Readiness" in markdown
    assert "| passing | 66 | 72 | +6 |" in markdown
    assert "## Positional Suitability" in markdown
    assert "1. **CM**: 80" in markdown


def test_save_and_load(assessed, tmp_path):
    builder = PlayerReportBuilder(assessed, "player-1")
    built = builder.build()

    json_path = builder.save_to_file(tmp_path, "json")
    md_path = builder.save_to_file(tmp_path, "markdown")

    assert json_path.suffix == ".json"
    assert md_path.read_text().startswith("# Player Report")

    loaded = load_report_from_file(json_path)
    assert isinstance(loaded, PlayerReport)
    assert loaded.model_dump(mode="json") == built.model_dump(mode="json")


def test_save_rejects_unknown_format(assessed, tmp_path):
    builder = PlayerReportBuilder(assessed, "player-1")
    builder.build()
    with pytest.raises(ValueError):
        builder.save_to_file(tmp_path, "pdf")


def test_load_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_report_from_file(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"player_id": "player-1"}))
    with pytest.raises(ValueError):
        load_report_from_file(bad)
