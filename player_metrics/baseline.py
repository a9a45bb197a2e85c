"""
Contextual Baseline Calculator.

Aggregates raw ratings of one metric within a context filter (any subset of
center / position / age group / season) into {count, mean, dispersion}.

Aggregation is exact: the accumulator keeps the count and the exact rational
sums of values and squared values. Addition of rationals is commutative and
associative, so any ordering or partitioning of the same snapshot set
produces bit-identical means and dispersions, and accumulators can be merged
for incremental refreshes.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction
from typing import FrozenSet, Iterable, Optional

from player_metrics.cache import Clock, TTLCache, cache_key, utc_now
from player_metrics.errors import MetricsEngineError, RecomputationFailed
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import AssessmentContext, ContextualBaseline, MetricSnapshot
from player_metrics.store import SnapshotStore

logger = logging.getLogger(__name__)

_ZERO = Fraction(0)


@dataclass(frozen=True)
class BaselineAccumulator:
    """Mergeable running aggregate of ratings."""

    count: int = 0
    total: Fraction = _ZERO
    total_sq: Fraction = _ZERO

    @classmethod
    def from_values(cls, values: Iterable[float]) -> "BaselineAccumulator":
        count = 0
        total = _ZERO
        total_sq = _ZERO
        for value in values:
            exact = Fraction(value)
            count += 1
            total += exact
            total_sq += exact * exact
        return cls(count=count, total=total, total_sq=total_sq)

    def with_value(self, value: float) -> "BaselineAccumulator":
        exact = Fraction(value)
        return BaselineAccumulator(
            count=self.count + 1,
            total=self.total + exact,
            total_sq=self.total_sq + exact * exact,
        )

    def merge(self, other: "BaselineAccumulator") -> "BaselineAccumulator":
        return BaselineAccumulator(
            count=self.count + other.count,
            total=self.total + other.total,
            total_sq=self.total_sq + other.total_sq,
        )

    @property
    def mean(self) -> Optional[float]:
        if self.count == 0:
            return None
        return float(self.total / self.count)

    @property
    def dispersion(self) -> Optional[float]:
        """Population standard deviation."""
        if self.count == 0:
            return None
        exact_mean = self.total / self.count
        variance = self.total_sq / self.count - exact_mean * exact_mean
        return math.sqrt(max(0.0, float(variance)))


@dataclass(frozen=True)
class _BaselineState:
    filters: AssessmentContext
    accumulator: BaselineAccumulator
    computed_at: datetime
    snapshot_ids: FrozenSet[str] = frozenset()


class BaselineCalculator:
    """
    Computes and caches contextual baselines.

    Recomputation reads only the snapshots matching (metric, filters) from
    the store. observe() folds newly appended snapshots into cached
    baselines without any store read.
    """

    def __init__(
        self,
        store: SnapshotStore,
        registry: MetricRegistry,
        cache: TTLCache,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.registry = registry
        self.cache = cache
        self.clock = clock or utc_now

    @staticmethod
    def _key(metric_key: str, filters: AssessmentContext) -> str:
        return cache_key("baseline", metric_key, filters.cache_token())

    def get_baseline(
        self,
        metric_key: str,
        filters: Optional[AssessmentContext] = None,
        force_refresh: bool = False,
    ) -> ContextualBaseline:
        """
        Baseline for a metric within a context filter.

        Args:
            metric_key: Registry key
            filters: Context filter; None or unset dimensions mean "all"
            force_refresh: Recompute even if a fresh cached value exists

        Returns:
            ContextualBaseline; count=0 with mean/dispersion None when nothing matches

        Raises:
            InvalidMetricKey: Unknown metric
            RecomputationFailed: The store failed while recomputing
        """
        self.registry.get(metric_key)
        filters = filters or AssessmentContext()
        key = self._key(metric_key, filters)

        try:
            state = self.cache.get_or_compute(
                key,
                lambda: self._aggregate(metric_key, filters),
                force_refresh=force_refresh,
            )
        except MetricsEngineError:
            raise
        except Exception as exc:
            logger.warning("Baseline recompute failed for %s: %s", key, exc)
            raise RecomputationFailed("baseline", key, str(exc)) from exc

        return self._to_baseline(metric_key, state)

    def refresh(self, metric_key: str, filters: Optional[AssessmentContext] = None) -> ContextualBaseline:
        return self.get_baseline(metric_key, filters, force_refresh=True)

    def _aggregate(self, metric_key: str, filters: AssessmentContext) -> _BaselineState:
        snapshots = self.store.get_snapshots_for(metric_key=metric_key, filters=filters)
        rated = [s for s in snapshots if s.value_of(metric_key) is not None]
        accumulator = BaselineAccumulator.from_values(s.value_of(metric_key) for s in rated)
        logger.debug(
            "Computed baseline %s over %d ratings", self._key(metric_key, filters), accumulator.count
        )
        return _BaselineState(
            filters=filters,
            accumulator=accumulator,
            computed_at=self.clock(),
            snapshot_ids=frozenset(s.id for s in rated),
        )

    @staticmethod
    def _to_baseline(metric_key: str, state: _BaselineState) -> ContextualBaseline:
        return ContextualBaseline(
            metric_key=metric_key,
            context=state.filters,
            count=state.accumulator.count,
            mean=state.accumulator.mean,
            dispersion=state.accumulator.dispersion,
            computed_at=state.computed_at,
        )

    def observe(self, snapshot: MetricSnapshot) -> int:
        """
        Fold a newly appended snapshot into every cached baseline it matches.

        Baselines recomputed after the append already cover the snapshot and
        are left alone. A recomputation still running for a matching key is
        discarded, since it may have read the store before the append.

        Returns:
            Number of cached baselines updated
        """
        updated = 0
        for metric_key, value in snapshot.scored_items():
            prefix = cache_key("baseline", metric_key) + ":"
            for key in self.cache.keys(prefix, include_pending=True):
                state = self.cache.peek(key)
                if state is None:
                    self.cache.invalidate(key)
                    continue
                if not state.filters.matches(snapshot.context) or snapshot.id in state.snapshot_ids:
                    continue

                def fold(old: _BaselineState, value=value) -> _BaselineState:
                    if snapshot.id in old.snapshot_ids:
                        return old
                    return _BaselineState(
                        filters=old.filters,
                        accumulator=old.accumulator.with_value(value),
                        computed_at=old.computed_at,
                        snapshot_ids=old.snapshot_ids | {snapshot.id},
                    )

                if self.cache.update(key, fold):
                    updated += 1
        return updated
