"""
Error taxonomy for the metrics engine.

Caller mistakes (unknown metric keys, out-of-range values, malformed
snapshots) fail fast with an exception. Sparse data is never an exception:
see InsufficientData and InsufficientRaters in player_metrics.schemas.
"""

from typing import Optional


class MetricsEngineError(Exception):
    """Base class for all engine errors."""


class InvalidMetricKey(MetricsEngineError):
    """Raised when a metric key (or consensus target) is not in the registry."""

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f'Metric key "{key}" not found or inactive')


class RangeViolation(MetricsEngineError, ValueError):
    """Raised when a value falls outside its metric's valid range at ingestion."""

    def __init__(self, field: str, value: float, min_value: float, max_value: float):
        self.field = field
        self.value = value
        self.min_value = min_value
        self.max_value = max_value
        super().__init__(
            f'"{field}" value {value} is outside range [{min_value}, {max_value}]'
        )


class InvalidSnapshot(MetricsEngineError, ValueError):
    """Raised when a snapshot draft is structurally invalid."""


class RecomputationFailed(MetricsEngineError):
    """
    Raised when a baseline or profile recompute fails.

    The previously cached value (if any) is left in place; the original
    exception is chained as __cause__.
    """

    def __init__(self, entity: str, entity_id: str, reason: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"Recomputation of {entity} '{entity_id}' failed: {reason}")
