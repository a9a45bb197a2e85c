"""
Trend & Positional Analyzer.

Classifies the direction of a metric over a player's recent snapshots,
lists the history of one metric and ranks positional suitability from the
latest snapshot.
"""

import logging
from typing import List, Optional, Union

from player_metrics.config import EngineConfig
from player_metrics.readiness import ReadinessComposer
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    InsufficientData,
    MetricSnapshot,
    PositionRanking,
    SnapshotOrdering,
    TimelinePoint,
    TrendDirection,
    TrendResult,
)
from player_metrics.store import SnapshotStore

logger = logging.getLogger(__name__)


def _median(values: List[float]) -> float:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2.0


def theil_sen_slope(series: List[float]) -> float:
    """
    Median of pairwise slopes, in points per snapshot step.

    Robust to a single outlying rating, unlike a least-squares fit.
    """
    if len(series) < 2:
        raise ValueError("at least two points are required for a slope")
    slopes = [
        (series[j] - series[i]) / (j - i)
        for i in range(len(series))
        for j in range(i + 1, len(series))
    ]
    return _median(slopes)


class TrendAnalyzer:
    """Metric trends, metric history and positional suitability for one player."""

    def __init__(
        self,
        store: SnapshotStore,
        registry: MetricRegistry,
        config: EngineConfig,
        readiness: Optional[ReadinessComposer] = None,
    ):
        self.store = store
        self.registry = registry
        self.config = config
        self.readiness = readiness or ReadinessComposer(registry, config.readiness)

    def classify_trend(
        self,
        player_id: str,
        metric_key: str,
        window: Optional[int] = None,
    ) -> Union[TrendResult, InsufficientData]:
        """
        Direction of a metric over the player's last `window` snapshots.

        Args:
            player_id: Player identifier
            metric_key: Metric to analyze
            window: Trailing snapshots considered (defaults to config.trend_window)

        Returns:
            TrendResult, or InsufficientData with fewer than two data points

        Raises:
            InvalidMetricKey: Unknown metric
            ValueError: window below 2
        """
        self.registry.get(metric_key)
        window = self.config.trend_window if window is None else window
        if window < 2:
            raise ValueError(f"window must be at least 2, got {window}")

        recent = self.store.get_snapshots_for(
            player_id=player_id,
            metric_key=metric_key,
            ordering=SnapshotOrdering.NEWEST_FIRST,
            limit=window,
        )
        series = [snapshot.value_of(metric_key) for snapshot in reversed(recent)]

        if len(series) < 2:
            return InsufficientData(
                reason="at least two snapshots are required for a trend",
                sample_size=len(series),
                required=2,
            )

        slope = theil_sen_slope(series)
        if slope > self.config.trend_dead_band:
            direction = TrendDirection.IMPROVING
        elif slope < -self.config.trend_dead_band:
            direction = TrendDirection.DECLINING
        else:
            direction = TrendDirection.PLATEAU

        logger.debug(
            "Trend for player %s on %s: slope=%.3f over %d points (%s)",
            player_id, metric_key, slope, len(series), direction.value,
        )
        return TrendResult(
            player_id=player_id,
            metric_key=metric_key,
            direction=direction,
            slope=slope,
            sample_count=len(series),
            window=window,
        )

    def metric_timeline(self, player_id: str, metric_key: str, limit: int = 50) -> List[TimelinePoint]:
        """
        The player's ratings of one metric, newest first.

        Args:
            player_id: Player identifier
            metric_key: Metric or attitude trait key
            limit: Maximum number of points

        Returns:
            One TimelinePoint per snapshot rating the metric, with that
            snapshot's overall readiness

        Raises:
            InvalidMetricKey: Unknown metric
            ValueError: limit below 1
        """
        self.registry.get(metric_key)
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        snapshots = self.store.get_snapshots_for(
            player_id=player_id,
            metric_key=metric_key,
            ordering=SnapshotOrdering.NEWEST_FIRST,
            limit=limit,
        )
        return [self._timeline_point(snapshot, metric_key) for snapshot in snapshots]

    def _timeline_point(self, snapshot: MetricSnapshot, metric_key: str) -> TimelinePoint:
        confidence = None
        comment = None
        for value in snapshot.values:
            if value.metric_key == metric_key:
                confidence, comment = value.confidence, value.comment
        for trait in snapshot.traits:
            if trait.trait_key == metric_key:
                comment = trait.comment

        return TimelinePoint(
            snapshot_id=snapshot.id,
            recorded_at=snapshot.created_at,
            value=snapshot.value_of(metric_key),
            confidence=confidence,
            comment=comment,
            readiness=self.readiness.compose(snapshot).overall,
            source_context=snapshot.source_context,
        )

    def rank_positional_suitability(self, player_id: str) -> List[PositionRanking]:
        """Positions from the player's latest snapshot, best fit first (ties by position name)."""
        latest = self.store.get_snapshots_for(
            player_id=player_id,
            ordering=SnapshotOrdering.NEWEST_FIRST,
            limit=1,
        )
        if not latest:
            return []
        entries = sorted(
            latest[0].positional,
            key=lambda entry: (-entry.suitability, entry.position.value),
        )
        return [PositionRanking(position=e.position, suitability=e.suitability) for e in entries]
