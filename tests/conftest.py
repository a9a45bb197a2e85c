"""
Pytest configuration and shared fixtures for player metrics tests.

Provides a frozen clock, the default registry, an in-memory store, a
snapshot-draft factory and stand-ins for the baseline and profile
providers so calibration math can be tested against fixed inputs.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import pytest

from player_metrics.cache import FrozenClock
from player_metrics.config import EngineConfig
from player_metrics.engine import CalibrationEngine
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    AssessmentContext,
    CategoryCalibration,
    CoachScoringProfile,
    ContextualBaseline,
    MetricCategory,
    MetricValue,
    PositionalSuitability,
    SnapshotDraft,
    TraitScore,
)
from player_metrics.store import InMemorySnapshotStore

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ============================================================================
# Stand-in collaborators
# ============================================================================

class FixedBaselines:
    """Baseline provider returning the same baseline for every metric and context."""

    def __init__(self, mean: float = 60.0, dispersion: float = 5.0, count: int = 50):
        self.mean = mean
        self.dispersion = dispersion
        self.count = count

    def get_baseline(self, metric_key, filters=None, force_refresh=False):
        return ContextualBaseline(
            metric_key=metric_key,
            context=filters or AssessmentContext(),
            count=self.count,
            mean=self.mean,
            dispersion=self.dispersion,
        )


class FixedProfiles:
    """Profile provider with preset (bias, confidence) per coach and category."""

    def __init__(self, calibrations: Dict[str, Dict[MetricCategory, Tuple[float, float]]]):
        self.calibrations = calibrations
        self.requested = []

    def get_profile(self, coach_id, force_refresh=False):
        self.requested.append(coach_id)
        categories = {
            category: CategoryCalibration(category=category, bias=bias, confidence=confidence, sample_count=10)
            for category, (bias, confidence) in self.calibrations.get(coach_id, {}).items()
        }
        return CoachScoringProfile(
            coach_id=coach_id,
            categories=categories,
            last_computed_at=START,
            formula_version="additive-bias/v1",
        )


class FlakyStore(InMemorySnapshotStore):
    """In-memory store whose reads can be switched to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = False
        self.reads = 0

    def get_snapshots_for(self, *args, **kwargs):
        self.reads += 1
        if self.fail:
            raise RuntimeError("database unavailable")
        return super().get_snapshots_for(*args, **kwargs)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at 2025-01-01 UTC."""
    return FrozenClock(START)


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry()


@pytest.fixture
def store(registry, clock) -> InMemorySnapshotStore:
    return InMemorySnapshotStore(registry, clock=clock)


@pytest.fixture
def flaky_store(registry, clock) -> FlakyStore:
    return FlakyStore(registry, clock=clock)


@pytest.fixture
def engine(store, registry, clock) -> CalibrationEngine:
    return CalibrationEngine(store, registry, EngineConfig(), clock=clock)


@pytest.fixture
def fixed_baselines():
    """Factory for FixedBaselines."""
    return FixedBaselines


@pytest.fixture
def fixed_profiles():
    """Factory for FixedProfiles."""
    return FixedProfiles


@pytest.fixture
def make_draft():
    """
    Factory for snapshot drafts.

    `day` sets created_at to START + day days; without it the store clock
    stamps the snapshot.
    """

    def _make(
        player_id: str = "player-1",
        coach_id: str = "coach-a",
        values: Optional[Dict[str, float]] = None,
        context: Optional[AssessmentContext] = None,
        day: Optional[float] = None,
        traits: Optional[Dict[str, float]] = None,
        positional: Optional[Dict] = None,
    ) -> SnapshotDraft:
        values = values if values is not None else {"passing": 60.0}
        return SnapshotDraft(
            player_id=player_id,
            coach_id=coach_id,
            context=context or AssessmentContext(),
            created_at=START + timedelta(days=day) if day is not None else None,
            values=[MetricValue(metric_key=k, value=v) for k, v in values.items()],
            traits=[TraitScore(trait_key=k, value=v) for k, v in (traits or {}).items()],
            positional=[
                PositionalSuitability(position=p, suitability=s) for p, s in (positional or {}).items()
            ],
        )

    return _make
