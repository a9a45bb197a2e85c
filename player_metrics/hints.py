"""
Calibration Hint Generator.

While a coach is scoring, compares the in-progress rating to the peer
baseline for the same context and to what this coach would typically give
(baseline mean + the coach's category bias). Read-only: it never refreshes
or writes anything besides what the baseline/profile caches already do.
"""

import math
from typing import Optional, Union

from player_metrics import calibration_model
from player_metrics.baseline import BaselineCalculator
from player_metrics.config import EngineConfig
from player_metrics.profiles import CoachProfileBuilder
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    CalibrationHint,
    HintContext,
    HintFlag,
    InsufficientData,
)


def _normal_percentile(z: float) -> float:
    return calibration_model.clamp(50.0 * (1.0 + math.erf(z / math.sqrt(2.0))))


class CalibrationHintGenerator:
    """Produces CalibrationHint payloads, or InsufficientData when the context is too thin."""

    def __init__(
        self,
        baselines: BaselineCalculator,
        profiles: CoachProfileBuilder,
        registry: MetricRegistry,
        config: EngineConfig,
    ):
        self.baselines = baselines
        self.profiles = profiles
        self.registry = registry
        self.config = config

    def get_hints(
        self,
        metric_key: str,
        raw_value: float,
        context: Optional[HintContext] = None,
    ) -> Union[CalibrationHint, InsufficientData]:
        """
        Hint for a rating that is being entered.

        Args:
            metric_key: Metric being rated
            raw_value: Value the coach is about to enter
            context: Coach and assessment context

        Returns:
            CalibrationHint, or InsufficientData if the baseline has fewer
            than `min_baseline_samples` ratings

        Raises:
            InvalidMetricKey: Unknown metric
            RangeViolation: raw_value outside the metric's range
        """
        context = context or HintContext()
        definition = self.registry.get(metric_key)
        self.registry.validate_value(metric_key, raw_value)

        baseline = self.baselines.get_baseline(metric_key, context.context)
        required = self.config.min_baseline_samples
        if baseline.count < required:
            return InsufficientData(
                reason="insufficient context data",
                sample_size=baseline.count,
                required=required,
            )

        coach_bias = 0.0
        if context.coach_id is not None:
            profile = self.profiles.get_profile(context.coach_id)
            coach_bias = profile.bias_for(definition.category)

        peer_average = baseline.mean
        expected = calibration_model.clamp(peer_average + coach_bias)
        delta_from_peers = raw_value - peer_average
        delta_from_coach = raw_value - expected

        effective_dispersion = max(baseline.dispersion, self.config.dispersion_floor)
        z_score = delta_from_peers / effective_dispersion
        is_extreme = abs(z_score) >= self.config.extreme_z_score

        threshold = max(
            self.config.hint_min_delta,
            self.config.hint_dispersion_multiplier * baseline.dispersion,
        )
        if delta_from_coach > threshold:
            flag = HintFlag.NOTABLY_HIGHER
        elif delta_from_coach < -threshold:
            flag = HintFlag.NOTABLY_LOWER
        else:
            flag = HintFlag.IN_LINE

        return CalibrationHint(
            metric_key=metric_key,
            entered_value=raw_value,
            peer_average=peer_average,
            peer_dispersion=baseline.dispersion,
            peer_sample_size=baseline.count,
            coach_bias=coach_bias,
            expected_for_coach=expected,
            delta_from_peers=delta_from_peers,
            delta_from_coach_pattern=delta_from_coach,
            percentile=_normal_percentile(z_score),
            is_extreme=is_extreme,
            flag=flag,
            message=self._message(definition.display_name, raw_value, peer_average, delta_from_peers, flag),
            suggestion=self._suggestion(z_score) if is_extreme else None,
        )

    @staticmethod
    def _message(display_name, raw_value, peer_average, delta_from_peers, flag) -> str:
        direction = "above" if delta_from_peers >= 0 else "below"
        message = (
            f"{display_name} {raw_value:.0f} is {abs(delta_from_peers):.1f} points {direction} "
            f"the peer average ({peer_average:.1f}) for this context."
        )
        if flag == HintFlag.NOTABLY_HIGHER:
            message += " This is notably higher than your usual rating for this context."
        elif flag == HintFlag.NOTABLY_LOWER:
            message += " This is notably lower than your usual rating for this context."
        return message

    @staticmethod
    def _suggestion(z_score: float) -> str:
        where = "above" if z_score > 0 else "below"
        return (
            f"This rating is far {where} the usual range for this context. "
            "Consider adding a note to explain the rating."
        )
