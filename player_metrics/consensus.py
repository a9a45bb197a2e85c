"""
Multi-Coach Consensus Engine.

For a player rated by several coaches, combines one vote per coach (their
latest rating of the target) after removing each coach's additive bias and
weighting by their confidence. The full computation is built first; the
anonymizing projection to_public_view() is applied last, so the anonymized
record type never has per-coach fields to leak.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from player_metrics import calibration_model
from player_metrics.config import EngineConfig
from player_metrics.profiles import CoachProfileBuilder
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    Agreement,
    CoachContribution,
    ConsensusBreakdown,
    ConsensusRecord,
    InsufficientRaters,
    MetricCategory,
    MetricDefinition,
    MetricSnapshot,
    SnapshotOrdering,
)
from player_metrics.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsensusComputation:
    """Complete (non-anonymized) consensus result. Never returned to callers directly."""

    player_id: str
    target: str
    target_kind: str
    contributions: Tuple[CoachContribution, ...]
    consensus_value: float
    spread: float
    agreement: Agreement
    formula_version: str


def to_public_view(computation: ConsensusComputation, anonymize: bool = True) -> ConsensusRecord:
    """
    Project a computation onto the record handed to callers.

    anonymize=True yields a plain ConsensusRecord (aggregate and count only);
    anonymize=False yields a ConsensusBreakdown with per-coach contributions.
    """
    fields = dict(
        player_id=computation.player_id,
        target=computation.target,
        target_kind=computation.target_kind,
        rater_count=len(computation.contributions),
        consensus_value=computation.consensus_value,
        spread=computation.spread,
        agreement=computation.agreement,
        formula_version=computation.formula_version,
    )
    if anonymize:
        return ConsensusRecord(**fields)
    return ConsensusBreakdown(contributions=list(computation.contributions), **fields)


class ConsensusEngine:
    """Bias-corrected, confidence-weighted agreement across coaches."""

    def __init__(
        self,
        store: SnapshotStore,
        profiles: CoachProfileBuilder,
        registry: MetricRegistry,
        config: EngineConfig,
    ):
        self.store = store
        self.profiles = profiles
        self.registry = registry
        self.config = config

    def _min_coaches(self, min_coaches: Optional[int]) -> int:
        required = self.config.min_coaches if min_coaches is None else min_coaches
        if required < 2:
            raise ValueError(f"min_coaches must be at least 2, got {required}")
        return required

    def get_consensus(
        self,
        player_id: str,
        metric_key_or_category: str,
        anonymize: bool = True,
        min_coaches: Optional[int] = None,
    ) -> Union[ConsensusRecord, InsufficientRaters]:
        """
        Consensus of the player's distinct coaches on a metric or a category.

        Args:
            player_id: Player identifier
            metric_key_or_category: Metric key ("passing") or category ("TECHNICAL")
            anonymize: Drop per-coach identities and values (default)
            min_coaches: Distinct coaches required (defaults to config.min_coaches)

        Returns:
            ConsensusRecord (ConsensusBreakdown when anonymize=False), or
            InsufficientRaters when fewer than min_coaches coaches rated the target

        Raises:
            InvalidMetricKey: Target is neither a metric key nor a category
        """
        required = self._min_coaches(min_coaches)
        target = self.registry.resolve_target(metric_key_or_category)

        if isinstance(target, MetricDefinition):
            target_name, target_kind, category = target.key, "metric", target.category
            extract = self._metric_extractor(target.key)
            snapshots = self.store.get_snapshots_for(
                player_id=player_id,
                metric_key=target.key,
                ordering=SnapshotOrdering.NEWEST_FIRST,
            )
        else:
            target_name, target_kind, category = target.value, "category", target
            extract = self._category_extractor(target)
            snapshots = self.store.get_snapshots_for(
                player_id=player_id,
                ordering=SnapshotOrdering.NEWEST_FIRST,
            )

        # One vote per coach: their most recent snapshot that rates the target
        latest: Dict[str, Tuple[MetricSnapshot, float]] = {}
        for snapshot in snapshots:
            if snapshot.coach_id in latest:
                continue
            value = extract(snapshot)
            if value is not None:
                latest[snapshot.coach_id] = (snapshot, value)

        if len(latest) < required:
            logger.debug(
                "Consensus for player %s on %s: %d of %d required raters",
                player_id, target_name, len(latest), required,
            )
            return InsufficientRaters(
                player_id=player_id,
                target=target_name,
                rater_count=len(latest),
                min_coaches=required,
            )

        computation = self._combine(player_id, target_name, target_kind, category, latest)
        return to_public_view(computation, anonymize=anonymize)

    def _combine(
        self,
        player_id: str,
        target_name: str,
        target_kind: str,
        category: MetricCategory,
        latest: Dict[str, Tuple[MetricSnapshot, float]],
    ) -> ConsensusComputation:
        contributions: List[CoachContribution] = []
        for coach_id in sorted(latest):
            snapshot, raw_value = latest[coach_id]
            profile = self.profiles.get_profile(coach_id)
            bias = profile.bias_for(category)
            weight = profile.confidence_for(category, self.config.low_confidence_value)
            contributions.append(
                CoachContribution(
                    coach_id=coach_id,
                    snapshot_id=snapshot.id,
                    rated_at=snapshot.created_at,
                    raw_value=raw_value,
                    corrected_value=calibration_model.correct(raw_value, bias),
                    weight=weight,
                )
            )

        values = [c.corrected_value for c in contributions]
        weights = [c.weight for c in contributions]
        consensus_value = calibration_model.clamp(calibration_model.weighted_mean(values, weights))
        spread = calibration_model.weighted_std(values, weights, consensus_value)

        return ConsensusComputation(
            player_id=player_id,
            target=target_name,
            target_kind=target_kind,
            contributions=tuple(contributions),
            consensus_value=consensus_value,
            spread=spread,
            agreement=self._agreement(spread),
            formula_version=calibration_model.FORMULA_VERSION,
        )

    def _agreement(self, spread: float) -> Agreement:
        if spread <= self.config.strong_agreement_spread:
            return Agreement.STRONG
        elif spread <= self.config.moderate_agreement_spread:
            return Agreement.MODERATE
        return Agreement.WEAK

    @staticmethod
    def _metric_extractor(metric_key: str) -> Callable[[MetricSnapshot], Optional[float]]:
        return lambda snapshot: snapshot.value_of(metric_key)

    def _category_extractor(self, category: MetricCategory) -> Callable[[MetricSnapshot], Optional[float]]:
        keys = set(self.registry.keys_in(category))

        def extract(snapshot: MetricSnapshot) -> Optional[float]:
            values = [value for key, value in snapshot.scored_items() if key in keys]
            return calibration_model.mean(values) if values else None

        return extract

    def get_multi_coach_players(self, min_coaches: Optional[int] = None) -> List[str]:
        """
        Players rated by at least `min_coaches` distinct coaches.

        Only distinct-author counts are computed; nothing per coach is
        returned. Most recently assessed players first.
        """
        required = self._min_coaches(min_coaches)
        rows = self.store.get_player_rater_counts(required)
        rows.sort(key=lambda row: row.player_id)
        rows.sort(key=lambda row: row.latest_at, reverse=True)
        return [row.player_id for row in rows]
