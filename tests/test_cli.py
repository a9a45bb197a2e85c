"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from player_metrics.cli import app

runner = CliRunner()


@pytest.fixture
def db_args(tmp_path):
    return ["--database-url", f"sqlite:///{tmp_path / 'cli.db'}"]


@pytest.fixture
def snapshots_file(tmp_path):
    path = tmp_path / "snapshots.json"
    path.write_text(json.dumps([
        {
            "player_id": "player-1",
            "coach_id": "coach-a",
            "values": [{"metric_key": "passing", "value": 80}],
            "positional": [{"position": "CM", "suitability": 75}],
            "created_at": "2025-01-01T10:00:00Z",
        },
        {
            "player_id": "player-1",
            "coach_id": "coach-b",
            "values": [{"metric_key": "passing", "value": 60}],
            "created_at": "2025-01-02T10:00:00Z",
        },
    ]))
    return path


def test_ingest_and_consensus(db_args, snapshots_file):
    result = runner.invoke(app, db_args + ["ingest", str(snapshots_file)])
    assert result.exit_code == 0, result.output
    assert "Recorded 2 snapshot(s)" in result.output

    result = runner.invoke(app, db_args + ["consensus", "player-1", "passing"])
    assert result.exit_code == 0, result.output
    assert "70.0" in result.output


def test_ingest_rejects_invalid_snapshot(db_args, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({
        "player_id": "player-1",
        "coach_id": "coach-a",
        "values": [{"metric_key": "passing", "value": 150}],
    }))

    result = runner.invoke(app, db_args + ["ingest", str(path)])

    assert result.exit_code == 1
    assert "rejected" in result.output


def test_consensus_insufficient_raters(db_args, snapshots_file):
    runner.invoke(app, db_args + ["ingest", str(snapshots_file)])

    result = runner.invoke(app, db_args + ["consensus", "player-1", "passing", "--min-coaches", "3"])

    assert result.exit_code == 0
    assert "3 required" in result.output


def test_metrics_listing(db_args):
    result = runner.invoke(app, db_args + ["metrics", "--category", "ATTITUDE"])

    assert result.exit_code == 0, result.output
    assert "8 metrics" in result.output


def test_unknown_metric_fails(db_args):
    result = runner.invoke(app, db_args + ["baseline", "juggling"])

    assert result.exit_code == 1
    assert "juggling" in result.output


def test_readiness_preview(db_args, tmp_path):
    path = tmp_path / "draft.json"
    path.write_text(json.dumps({
        "player_id": "player-1",
        "coach_id": "coach-a",
        "values": [{"metric_key": "passing", "value": 80}],
    }))

    result = runner.invoke(app, db_args + ["readiness", str(path)])

    assert result.exit_code == 0, result.output
    assert "59.0" in result.output


def test_report_saved(db_args, snapshots_file, tmp_path):
    runner.invoke(app, db_args + ["ingest", str(snapshots_file)])
    out_dir = tmp_path / "reports"

    result = runner.invoke(
        app, db_args + ["report", "player-1", "--output-dir", str(out_dir), "--format", "json"]
    )

    assert result.exit_code == 0, result.output
    saved = list(out_dir.glob("report_player-1_*.json"))
    assert len(saved) == 1
    assert json.loads(saved[0].read_text())["snapshot_count"] == 2


def test_timeline(db_args, snapshots_file):
    runner.invoke(app, db_args + ["ingest", str(snapshots_file)])

    result = runner.invoke(app, db_args + ["timeline", "player-1", "passing"])

    assert result.exit_code == 0, result.output
    assert "2025-01-02" in result.output
    assert "80.0" in result.output
