"""
Additive-bias / confidence-weight calibration model.

Every formula that turns raw coach ratings into calibrated numbers lives
here, behind FORMULA_VERSION. Changing the weighting scheme means changing
this module and bumping the version; profiles and consensus records carry
the version they were computed with.

    bias        = mean(value_i - baseline_mean_i)
    confidence  = clamp(1 / (1 + dispersion / scale), low, 1)
                  (dispersion < floor -> low: constant raters do not discriminate)
    corrected   = clamp(raw - bias, 0, 100)
    consensus   = sum(w_i * corrected_i) / sum(w_i),  w_i = confidence_i
    spread      = sqrt(sum(w_i * (corrected_i - consensus)^2) / sum(w_i))
"""

import math
from typing import Sequence, Tuple

FORMULA_VERSION = "additive-bias/v1"

SCORE_MIN = 0.0
SCORE_MAX = 100.0


def clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    if not values:
        raise ValueError("mean of empty sequence")
    return math.fsum(values) / len(values)


def population_std(values: Sequence[float]) -> float:
    center = mean(values)
    return math.sqrt(math.fsum((v - center) ** 2 for v in values) / len(values))


def signed_bias(deviations: Sequence[float]) -> float:
    """Average signed deviation of a coach's ratings from their contextual baselines."""
    return mean(deviations)


def confidence_from_dispersion(
    dispersion: float,
    scale: float,
    dispersion_floor: float,
    low: float,
) -> Tuple[float, bool]:
    """
    Map rating dispersion to a bounded confidence weight.

    Args:
        dispersion: Standard deviation of the coach's raw ratings
        scale: Dispersion at which the unbounded confidence is 0.5
        dispersion_floor: Below this the coach is treated as a constant rater
        low: Confidence floor

    Returns:
        (confidence in [low, 1], low_confidence flag)
    """
    if dispersion < dispersion_floor:
        return low, True
    raw = 1.0 / (1.0 + dispersion / scale)
    confidence = clamp(raw, low, 1.0)
    return confidence, confidence <= low


def correct(raw_value: float, bias: float) -> float:
    """Remove a coach's additive bias from a raw rating."""
    return clamp(raw_value - bias)


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    total_weight = math.fsum(weights)
    if total_weight <= 0:
        raise ValueError("weights must sum to a positive number")
    return math.fsum(v * w for v, w in zip(values, weights)) / total_weight


def weighted_std(values: Sequence[float], weights: Sequence[float], center: float) -> float:
    total_weight = math.fsum(weights)
    if total_weight <= 0:
        raise ValueError("weights must sum to a positive number")
    variance = math.fsum(w * (v - center) ** 2 for v, w in zip(values, weights)) / total_weight
    return math.sqrt(max(0.0, variance))
