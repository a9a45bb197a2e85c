"""
Coach Scoring Profile Builder.

Measures how a coach rates relative to contextual baselines: a signed bias
and a bounded confidence per metric category. Profiles are cached with a
freshness window and recomputed single-flight per coach, so concurrent
refresh requests for one coach trigger one computation and all receive the
same profile object.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from player_metrics import calibration_model
from player_metrics.baseline import BaselineCalculator
from player_metrics.cache import Clock, TTLCache, cache_key, utc_now
from player_metrics.config import EngineConfig
from player_metrics.errors import MetricsEngineError, RecomputationFailed
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    CategoryCalibration,
    CoachScoringProfile,
    MetricCategory,
)
from player_metrics.store import SnapshotStore

logger = logging.getLogger(__name__)


class CoachProfileBuilder:
    """
    Builds CoachScoringProfile objects from a coach's snapshot history.

    For each category:
    - bias: mean of (rating - contextual baseline mean), the baseline taken in
      the context of the snapshot the rating came from
    - confidence: bounded inverse of the coach's own rating dispersion
    - fewer than `min_snapshots_per_category` snapshots: neutral entry
      (bias 0, low confidence)
    """

    def __init__(
        self,
        store: SnapshotStore,
        baselines: BaselineCalculator,
        registry: MetricRegistry,
        cache: TTLCache,
        config: EngineConfig,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.baselines = baselines
        self.registry = registry
        self.cache = cache
        self.config = config
        self.clock = clock or utc_now

    @staticmethod
    def _key(coach_id: str) -> str:
        return cache_key("profile", coach_id)

    def get_profile(self, coach_id: str, force_refresh: bool = False) -> CoachScoringProfile:
        """
        Cached profile for a coach, recomputed when stale or on request.

        Args:
            coach_id: Coach identifier
            force_refresh: Recompute even if the cached profile is fresh

        Returns:
            CoachScoringProfile (a fully neutral one for coaches with no snapshots)

        Raises:
            RecomputationFailed: The store failed; any cached profile is kept
        """
        key = self._key(coach_id)
        try:
            return self.cache.get_or_compute(
                key,
                lambda: self._compute(coach_id),
                force_refresh=force_refresh,
            )
        except MetricsEngineError:
            raise
        except Exception as exc:
            logger.warning("Profile recompute failed for coach %s: %s", coach_id, exc)
            raise RecomputationFailed("coach profile", coach_id, str(exc)) from exc

    def peek_profile(self, coach_id: str) -> Optional[CoachScoringProfile]:
        """Cached profile if fresh, without triggering a recompute."""
        return self.cache.peek(self._key(coach_id))

    def invalidate(self, coach_id: str) -> None:
        self.cache.invalidate(self._key(coach_id))

    def all_profiles(self, coach_ids: Iterable[str]) -> List[CoachScoringProfile]:
        """Profiles for several coaches (admin comparison view), in the given order."""
        return [self.get_profile(coach_id) for coach_id in coach_ids]

    def _compute(self, coach_id: str) -> CoachScoringProfile:
        snapshots = self.store.get_snapshots_for(coach_id=coach_id)

        ratings: Dict[MetricCategory, List[float]] = defaultdict(list)
        deviations: Dict[MetricCategory, List[float]] = defaultdict(list)
        snapshot_ids: Dict[MetricCategory, Set[str]] = defaultdict(set)

        for snapshot in snapshots:
            for metric_key, value in snapshot.scored_items():
                category = self.registry.category_of(metric_key)
                ratings[category].append(value)
                snapshot_ids[category].add(snapshot.id)

                baseline = self.baselines.get_baseline(metric_key, snapshot.context)
                if baseline.has_data:
                    deviations[category].append(value - baseline.mean)

        categories = {
            category: self._calibrate(
                category,
                ratings.get(category, []),
                deviations.get(category, []),
                len(snapshot_ids.get(category, ())),
            )
            for category in MetricCategory
        }

        profile = CoachScoringProfile(
            coach_id=coach_id,
            categories=categories,
            total_snapshots_observed=len(snapshots),
            last_computed_at=self.clock(),
            formula_version=calibration_model.FORMULA_VERSION,
        )
        logger.info(
            "Recomputed scoring profile for coach %s from %d snapshots", coach_id, len(snapshots)
        )
        return profile

    def _calibrate(
        self,
        category: MetricCategory,
        ratings: List[float],
        deviations: List[float],
        sample_count: int,
    ) -> CategoryCalibration:
        low = self.config.low_confidence_value
        dispersion = calibration_model.population_std(ratings) if ratings else None

        if sample_count < self.config.min_snapshots_per_category or not deviations:
            return CategoryCalibration(
                category=category,
                bias=0.0,
                confidence=low,
                dispersion=dispersion,
                sample_count=sample_count,
                low_confidence=True,
                neutral=True,
            )

        confidence, low_confidence = calibration_model.confidence_from_dispersion(
            dispersion,
            scale=self.config.confidence_scale,
            dispersion_floor=self.config.dispersion_floor,
            low=low,
        )
        return CategoryCalibration(
            category=category,
            bias=calibration_model.signed_bias(deviations),
            confidence=confidence,
            dispersion=dispersion,
            sample_count=sample_count,
            low_confidence=low_confidence,
            neutral=False,
        )
