"""
Tests for the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient

from player_metrics.api.main import create_app
from player_metrics.config import EngineConfig, Settings
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import PlayerPosition

SETTINGS = Settings(database_url="sqlite://")


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine, settings=SETTINGS))


def _snapshot(player_id="player-1", coach_id="coach-a", values=None, **extra):
    body = {
        "player_id": player_id,
        "coach_id": coach_id,
        "values": [
            {"metric_key": key, "value": value}
            for key, value in (values or {"passing": 70}).items()
        ],
    }
    body.update(extra)
    return body


@pytest.fixture
def two_coaches(client):
    client.post("/api/snapshots", json=_snapshot(coach_id="coach-a", values={"passing": 80}))
    client.post("/api/snapshots", json=_snapshot(coach_id="coach-b", values={"passing": 60}))
    return client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "player-metrics-api"}


def test_list_metrics(client):
    assert client.get("/api/metrics").json()["count"] == 49
    assert client.get("/api/metrics", params={"player_visible": True}).json()["count"] == 41

    attitude = client.get("/api/metrics", params={"category": "ATTITUDE"}).json()
    assert attitude["count"] == 8
    assert all(m["is_coach_only"] for m in attitude["metrics"])


# ============================================================================
# Snapshots & readiness
# ============================================================================

def test_record_snapshot(client):
    response = client.post("/api/snapshots", json=_snapshot(values={"passing": 80}))

    assert response.status_code == 201
    data = response.json()
    assert data["snapshot"]["id"]
    assert data["readiness"]["overall"] == pytest.approx(59)
    assert data["readiness"]["status_band"] == "Developing"
    assert data["changes"] == []


def test_record_snapshot_unknown_metric(client):
    response = client.post("/api/snapshots", json=_snapshot(values={"juggling": 50}))

    assert response.status_code == 404
    assert response.json()["error"] == "InvalidMetricKey"


def test_record_snapshot_out_of_range(client):
    response = client.post("/api/snapshots", json=_snapshot(values={"passing": 150}))
    assert response.status_code == 422


def test_record_snapshot_missing_values(client):
    response = client.post("/api/snapshots", json={"player_id": "player-1", "coach_id": "coach-a", "values": []})
    assert response.status_code == 422


def test_preview_readiness(client, engine):
    response = client.post("/api/readiness", json=_snapshot(values={"passing": 80}))

    assert response.status_code == 200
    assert response.json()["snapshot_id"] == "preview"
    assert len(engine.store) == 0


# ============================================================================
# Baselines, hints & profiles
# ============================================================================

def test_get_baseline(two_coaches):
    data = two_coaches.get("/api/baselines/passing").json()
    assert data["count"] == 2
    assert data["mean"] == pytest.approx(70)

    empty = two_coaches.get("/api/baselines/passing", params={"center_id": "south"}).json()
    assert empty["count"] == 0
    assert empty["mean"] is None


def test_get_baseline_unknown_metric(client):
    assert client.get("/api/baselines/juggling").status_code == 404


def test_hints_insufficient_data(two_coaches):
    response = two_coaches.post("/api/hints", json={"metric_key": "passing", "raw_value": 70})

    assert response.status_code == 200
    assert response.json()["status"] == "insufficient_data"


def test_hints(two_coaches):
    two_coaches.post("/api/snapshots", json=_snapshot(coach_id="coach-c", values={"passing": 70}))

    data = two_coaches.post(
        "/api/hints", json={"metric_key": "passing", "raw_value": 70, "coach_id": "coach-a"}
    ).json()

    assert data["status"] == "ok"
    assert data["flag"] == "in_line"
    assert data["peer_average"] == pytest.approx(70)


def test_coach_profile(two_coaches):
    data = two_coaches.get("/api/coaches/coach-a/profile").json()

    assert data["coach_id"] == "coach-a"
    assert data["categories"]["TECHNICAL"]["neutral"] is True
    assert data["formula_version"] == "additive-bias/v1"


def test_recompute_failure_is_503(flaky_store, registry, clock, make_draft):
    engine = CalibrationEngine(flaky_store, registry, EngineConfig(), clock=clock)
    engine.record_snapshot(make_draft())
    client = TestClient(create_app(engine=engine, settings=SETTINGS))

    flaky_store.fail = True
    response = client.get("/api/coaches/coach-a/profile", params={"refresh": True})

    assert response.status_code == 503
    assert response.json()["error"] == "RecomputationFailed"


# ============================================================================
# Players
# ============================================================================

def test_consensus_is_anonymized(two_coaches):
    response = two_coaches.get("/api/players/player-1/consensus/passing")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["consensus_value"] == pytest.approx(70)
    assert data["rater_count"] == 2
    assert "coach" not in response.text


def test_consensus_breakdown(two_coaches):
    data = two_coaches.get(
        "/api/players/player-1/consensus/passing", params={"anonymize": False}
    ).json()

    assert [c["coach_id"] for c in data["contributions"]] == ["coach-a", "coach-b"]


def test_consensus_insufficient_raters(two_coaches):
    data = two_coaches.get("/api/players/player-1/consensus/passing", params={"min_coaches": 3}).json()

    assert data["status"] == "insufficient_raters"
    assert data["rater_count"] == 2


def test_consensus_unknown_target(two_coaches):
    assert two_coaches.get("/api/players/player-1/consensus/juggling").status_code == 404


def test_multi_coach_players(two_coaches):
    two_coaches.post("/api/snapshots", json=_snapshot(player_id="player-2"))

    data = two_coaches.get("/api/players/multi-coach").json()

    assert data["player_ids"] == ["player-1"]
    assert data["min_coaches"] == 2
    assert two_coaches.get("/api/players/multi-coach", params={"min_coaches": 1}).status_code == 422


def test_trend(client):
    for day, value in enumerate([50, 55, 60], start=1):
        body = _snapshot(values={"passing": value}, created_at=f"2025-01-0{day}T10:00:00Z")
        client.post("/api/snapshots", json=body)

    data = client.get("/api/players/player-1/trend/passing").json()
    assert data["direction"] == "improving"
    assert data["slope"] == pytest.approx(5)

    assert client.get("/api/players/player-1/trend/passing", params={"window": 1}).status_code == 422


def test_trend_insufficient_data(client):
    data = client.get("/api/players/nobody/trend/passing").json()
    assert data["status"] == "insufficient_data"


def test_positions(client):
    body = _snapshot(positional=[
        {"position": PlayerPosition.ST.value, "suitability": 60},
        {"position": PlayerPosition.W.value, "suitability": 85},
    ])
    client.post("/api/snapshots", json=body)

    data = client.get("/api/players/player-1/positions").json()
    assert [r["position"] for r in data["rankings"]] == ["W", "ST"]


def test_timeline(client):
    for day, value in enumerate([50, 55, 60], start=1):
        body = _snapshot(values={"passing": value}, created_at=f"2025-01-0{day}T10:00:00Z")
        client.post("/api/snapshots", json=body)

    data = client.get("/api/players/player-1/timeline/passing", params={"limit": 2}).json()

    assert data["count"] == 2
    assert [p["value"] for p in data["points"]] == [60, 55]
    assert data["points"][0]["readiness"] == pytest.approx(53.0)
    assert "coach_id" not in data["points"][0]


def test_timeline_errors(client):
    assert client.get("/api/players/player-1/timeline/juggling").status_code == 404
    assert client.get("/api/players/player-1/timeline/passing", params={"limit": 0}).status_code == 422
