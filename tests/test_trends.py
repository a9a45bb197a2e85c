"""
Tests for trend classification, metric timelines and positional suitability ranking.
"""

import pytest

from player_metrics.config import EngineConfig
from player_metrics.errors import InvalidMetricKey
from player_metrics.schemas import (
    InsufficientData,
    MetricValue,
    PlayerPosition,
    SourceContext,
    TrendDirection,
    TrendResult,
)
from player_metrics.trends import TrendAnalyzer, theil_sen_slope


@pytest.fixture
def analyzer(store, registry):
    return TrendAnalyzer(store, registry, EngineConfig())


@pytest.fixture
def rate_series(store, make_draft):
    def _rate(values, player_id="player-1", key="passing"):
        for day, value in enumerate(values):
            store.append_snapshot(make_draft(player_id=player_id, values={key: value}, day=day))

    return _rate


@pytest.mark.parametrize(
    "series,slope,direction",
    [
        ([40, 45, 50, 55, 60], 5.0, TrendDirection.IMPROVING),
        ([50, 51, 49, 50, 52], 5 / 12, TrendDirection.PLATEAU),
        ([70, 66, 62, 58, 54], -4.0, TrendDirection.DECLINING),
        ([50, 51], 1.0, TrendDirection.PLATEAU),
    ],
)
def test_classify_trend(analyzer, rate_series, series, slope, direction):
    rate_series(series)

    result = analyzer.classify_trend("player-1", "passing")

    assert isinstance(result, TrendResult)
    assert result.slope == pytest.approx(slope)
    assert result.direction == direction
    assert result.sample_count == len(series)
    assert result.window == 5


@pytest.mark.parametrize("series", [[], [60]])
def test_too_few_points(analyzer, rate_series, series):
    rate_series(series)

    result = analyzer.classify_trend("player-1", "passing")

    assert isinstance(result, InsufficientData)
    assert result.sample_size == len(series)
    assert result.required == 2


def test_window_uses_most_recent_snapshots(analyzer, rate_series):
    rate_series([10, 10, 10, 10, 20, 30, 40])

    result = analyzer.classify_trend("player-1", "passing", window=3)

    assert result.slope == pytest.approx(10.0)
    assert result.sample_count == 3


def test_single_outlier_does_not_move_slope(analyzer, rate_series):
    rate_series([50, 50, 90, 50, 50])
    result = analyzer.classify_trend("player-1", "passing")
    assert result.slope == pytest.approx(0.0)
    assert result.direction == TrendDirection.PLATEAU


def test_other_metrics_and_players_ignored(analyzer, rate_series):
    rate_series([40, 45, 50])
    rate_series([90, 20, 90], key="stamina")
    rate_series([90, 20, 90], player_id="player-2")

    assert analyzer.classify_trend("player-1", "passing").slope == pytest.approx(5.0)


def test_invalid_arguments(analyzer):
    with pytest.raises(InvalidMetricKey):
        analyzer.classify_trend("player-1", "juggling")
    with pytest.raises(ValueError):
        analyzer.classify_trend("player-1", "passing", window=1)


def test_theil_sen_requires_two_points():
    with pytest.raises(ValueError):
        theil_sen_slope([50])


# ============================================================================
# Positional suitability
# ============================================================================

def test_rank_positions(store, make_draft, analyzer):
    store.append_snapshot(make_draft(day=1, positional={PlayerPosition.ST: 90}))
    store.append_snapshot(make_draft(
        day=2,
        positional={PlayerPosition.CM: 80, PlayerPosition.ST: 60, PlayerPosition.AM: 80},
    ))

    ranking = analyzer.rank_positional_suitability("player-1")

    assert [r.position for r in ranking] == [PlayerPosition.AM, PlayerPosition.CM, PlayerPosition.ST]
    assert [r.suitability for r in ranking] == [80, 80, 60]


def test_rank_positions_without_snapshots(analyzer):
    assert analyzer.rank_positional_suitability("nobody") == []


def test_latest_snapshot_without_positions(store, make_draft, analyzer):
    store.append_snapshot(make_draft(day=1, positional={PlayerPosition.ST: 90}))
    store.append_snapshot(make_draft(day=2))

    assert analyzer.rank_positional_suitability("player-1") == []


# ============================================================================
# Metric timeline
# ============================================================================

def test_metric_timeline_newest_first(store, make_draft, analyzer):
    store.append_snapshot(make_draft(values={"passing": 60}, day=1))
    store.append_snapshot(make_draft(values={"stamina": 70}, day=2))
    detailed = make_draft(values={"passing": 80}, day=3).model_copy(update={
        "values": [MetricValue(metric_key="passing", value=80, confidence=90, comment="sharp in rondos")],
        "source_context": SourceContext.MATCH_BLOCK,
    })
    latest = store.append_snapshot(detailed)

    points = analyzer.metric_timeline("player-1", "passing")

    assert [p.value for p in points] == [80, 60]
    assert points[0].snapshot_id == latest.id
    assert points[0].confidence == 90
    assert points[0].comment == "sharp in rondos"
    assert points[0].source_context == SourceContext.MATCH_BLOCK
    assert points[0].readiness == pytest.approx(59.0)
    assert points[1].confidence is None
    assert points[1].recorded_at < points[0].recorded_at


def test_metric_timeline_limit_and_traits(rate_series, store, make_draft, analyzer):
    rate_series([50, 55, 60, 65])
    store.append_snapshot(make_draft(values={"stamina": 60}, traits={"work_rate": 85}, day=9))

    assert [p.value for p in analyzer.metric_timeline("player-1", "passing", limit=2)] == [65, 60]
    assert [p.value for p in analyzer.metric_timeline("player-1", "work_rate")] == [85]
    assert analyzer.metric_timeline("nobody", "passing") == []


def test_metric_timeline_invalid_arguments(analyzer):
    with pytest.raises(InvalidMetricKey):
        analyzer.metric_timeline("player-1", "juggling")
    with pytest.raises(ValueError):
        analyzer.metric_timeline("player-1", "passing", limit=0)
