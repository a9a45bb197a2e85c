"""
Readiness Index composition.

Computes a single explainable 0-100 readiness score for one snapshot from
five sub-scores (technical, physical, mental, attitude, tactical fit) using
the weights in ReadinessConfig.
"""

import math
from collections import defaultdict
from typing import Dict, List, Set, Tuple

from player_metrics.calibration_model import clamp, mean
from player_metrics.config import ReadinessConfig, ReadinessWeights
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    MetricCategory,
    MetricSnapshot,
    ReadinessExplanation,
    ReadinessIndex,
    StatusBand,
)

SUB_SCORES = ("technical", "physical", "mental", "attitude", "tactical_fit")

_CATEGORY_GROUPS = {
    MetricCategory.TECHNICAL: "technical",
    MetricCategory.GOALKEEPING: "technical",
    MetricCategory.PHYSICAL: "physical",
    MetricCategory.MENTAL: "mental",
    MetricCategory.ATTITUDE: "attitude",
}


class ReadinessComposer:
    """
    Composes ReadinessIndex objects.

    Overall = Σ(weight_i × sub_score_i), weights chosen by the snapshot's
    position (falling back to the default weights). Groups with no ratings
    score the neutral midpoint so incomplete snapshots are not penalized.
    """

    def __init__(self, registry: MetricRegistry, config: ReadinessConfig):
        """
        Initialize composer.

        Args:
            registry: Metric catalogue used to categorize ratings
            config: Weights, tactical metric keys and neutral score
        """
        self.registry = registry
        self.config = config
        self.tactical_keys = set(config.tactical_metric_keys)

    def weights_for(self, snapshot: MetricSnapshot) -> ReadinessWeights:
        return self.config.weights_for(snapshot.context.position)

    def compose(self, snapshot: MetricSnapshot) -> ReadinessIndex:
        """
        Calculate the readiness index of a snapshot.

        Args:
            snapshot: Snapshot to score

        Returns:
            ReadinessIndex with sub-scores, overall, status band and explanation
        """
        groups: Dict[str, List[float]] = defaultdict(list)
        for metric_key, value in snapshot.scored_items():
            category = self.registry.category_of(metric_key)
            groups[_CATEGORY_GROUPS[category]].append(clamp(value))
            if metric_key in self.tactical_keys:
                groups["tactical_fit"].append(clamp(value))

        rated: Set[str] = {name for name in SUB_SCORES if groups.get(name)}
        sub_scores = {
            name: clamp(mean(groups[name])) if name in rated else self.config.neutral_score
            for name in SUB_SCORES
        }

        weights = self.weights_for(snapshot).as_dict()
        overall = clamp(math.fsum(weights[name] * sub_scores[name] for name in SUB_SCORES))

        strengths, focus = self._explain(snapshot)

        return ReadinessIndex(
            snapshot_id=snapshot.id,
            overall=overall,
            weights_used=weights,
            status_band=self._interpret_score(overall),
            explanation=ReadinessExplanation(
                top_strengths=strengths,
                recommended_focus=focus,
                rule_triggers=self._rule_triggers(overall, sub_scores, rated),
            ),
            **sub_scores,
        )

    def _explain(self, snapshot: MetricSnapshot) -> Tuple[List[str], List[str]]:
        """
        Rank ratings by deviation from their category mean within the snapshot.

        Strengths are the largest positive deviations, focus areas the most
        negative; ties are broken by metric key.
        """
        by_category: Dict[MetricCategory, List[Tuple[str, float]]] = defaultdict(list)
        for metric_key, value in snapshot.scored_items():
            by_category[self.registry.category_of(metric_key)].append((metric_key, clamp(value)))

        deviations = []
        for items in by_category.values():
            category_mean = mean([value for _, value in items])
            deviations.extend((key, value - category_mean) for key, value in items)

        size = self.config.explanation_size
        strengths = sorted((d for d in deviations if d[1] > 0), key=lambda d: (-d[1], d[0]))
        focus = sorted((d for d in deviations if d[1] < 0), key=lambda d: (d[1], d[0]))
        return [key for key, _ in strengths[:size]], [key for key, _ in focus[:size]]

    def _interpret_score(self, score: float) -> StatusBand:
        """
        Interpret overall readiness into a status band.

        Args:
            score: Overall readiness (0-100)

        Returns:
            StatusBand
        """
        if score >= 85:
            return StatusBand.READY
        elif score >= 75:
            return StatusBand.ADVANCED
        elif score >= 60:
            return StatusBand.COMPETITIVE
        elif score >= 40:
            return StatusBand.DEVELOPING
        else:
            return StatusBand.FOUNDATION

    def _rule_triggers(self, overall: float, sub_scores: Dict[str, float], rated: Set[str]) -> List[str]:
        """Rule-based flags; only groups that were actually rated can trigger."""
        triggers = []
        if overall > 80:
            triggers.append("HIGH_READINESS")
        if "physical" in rated and sub_scores["physical"] < 60:
            triggers.append("PHYSICAL_CONCERN")
        if "attitude" in rated and sub_scores["attitude"] > 90:
            triggers.append("EXCELLENT_ATTITUDE")
        if "mental" in rated and sub_scores["mental"] < 50:
            triggers.append("MENTAL_DEVELOPMENT_NEEDED")
        if {"technical", "physical"} <= rated and sub_scores["technical"] > 85 and sub_scores["physical"] > 80:
            triggers.append("ELITE_POTENTIAL")
        return triggers
