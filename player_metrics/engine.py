"""
Calibration engine facade.

Wires the registry, snapshot store, caches and calculators together and
exposes the engine's operations under one object. The API, CLI and report
builder only talk to CalibrationEngine.
"""

import logging
from typing import List, Optional, Union

from player_metrics.baseline import BaselineCalculator
from player_metrics.cache import Clock, TTLCache, utc_now
from player_metrics.config import EngineConfig, Settings, get_settings
from player_metrics.consensus import ConsensusEngine
from player_metrics.database import SqlSnapshotStore
from player_metrics.hints import CalibrationHintGenerator
from player_metrics.profiles import CoachProfileBuilder
from player_metrics.readiness import ReadinessComposer
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    AssessmentContext,
    CalibrationHint,
    CoachScoringProfile,
    ConsensusRecord,
    ContextualBaseline,
    HintContext,
    InsufficientData,
    InsufficientRaters,
    MetricSnapshot,
    PositionRanking,
    ReadinessIndex,
    SnapshotDraft,
    SnapshotOrdering,
    SnapshotReceipt,
    TimelinePoint,
    TrendResult,
)
from player_metrics.store import SnapshotStore, diff_snapshots, validate_draft
from player_metrics.trends import TrendAnalyzer

logger = logging.getLogger(__name__)

PREVIEW_SNAPSHOT_ID = "preview"


class CalibrationEngine:
    """
    Single entry point for baselines, profiles, hints, readiness, consensus and trends.

    Each engine owns its own baseline and profile caches; nothing is shared
    at module level.
    """

    def __init__(
        self,
        store: SnapshotStore,
        registry: Optional[MetricRegistry] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.registry = registry or MetricRegistry()
        self.config = config or EngineConfig()
        self.clock = clock or utc_now

        self.baseline_cache = TTLCache(self.config.baseline_ttl_seconds, clock=self.clock, name="baselines")
        self.profile_cache = TTLCache(self.config.profile_ttl_seconds, clock=self.clock, name="profiles")

        self.baselines = BaselineCalculator(self.store, self.registry, self.baseline_cache, clock=self.clock)
        self.profiles = CoachProfileBuilder(
            self.store, self.baselines, self.registry, self.profile_cache, self.config, clock=self.clock
        )
        self.hints = CalibrationHintGenerator(self.baselines, self.profiles, self.registry, self.config)
        self.readiness = ReadinessComposer(self.registry, self.config.readiness)
        self.consensus = ConsensusEngine(self.store, self.profiles, self.registry, self.config)
        self.trends = TrendAnalyzer(self.store, self.registry, self.config, readiness=self.readiness)

    # ------------------------------------------------------------------
    # Baselines & profiles
    # ------------------------------------------------------------------

    def get_contextual_baseline(
        self,
        metric_key: str,
        filters: Optional[AssessmentContext] = None,
        force_refresh: bool = False,
    ) -> ContextualBaseline:
        return self.baselines.get_baseline(metric_key, filters, force_refresh=force_refresh)

    def get_coach_profile(self, coach_id: str, force_refresh: bool = False) -> CoachScoringProfile:
        return self.profiles.get_profile(coach_id, force_refresh=force_refresh)

    def get_calibration_hints(
        self,
        metric_key: str,
        raw_value: float,
        context: Optional[HintContext] = None,
    ) -> Union[CalibrationHint, InsufficientData]:
        return self.hints.get_hints(metric_key, raw_value, context)

    # ------------------------------------------------------------------
    # Readiness & snapshots
    # ------------------------------------------------------------------

    def compose_readiness(self, snapshot: MetricSnapshot) -> ReadinessIndex:
        return self.readiness.compose(snapshot)

    def preview_readiness(self, draft: SnapshotDraft) -> ReadinessIndex:
        """Readiness of a draft without storing it (validated like an append)."""
        validate_draft(draft, self.registry)
        snapshot = MetricSnapshot(
            id=PREVIEW_SNAPSHOT_ID,
            player_id=draft.player_id,
            coach_id=draft.coach_id,
            created_at=draft.created_at or self.clock(),
            source_context=draft.source_context,
            context=draft.context,
            values=tuple(draft.values),
            positional=tuple(draft.positional),
            traits=tuple(draft.traits),
            notes=draft.notes,
        )
        return self.readiness.compose(snapshot)

    def record_snapshot(self, draft: SnapshotDraft) -> SnapshotReceipt:
        """
        Append a snapshot and fold it into cached baselines.

        Args:
            draft: Validated on append

        Returns:
            SnapshotReceipt with the stored snapshot, its readiness index and
            the values that changed since the player's previous snapshot

        Raises:
            InvalidMetricKey, RangeViolation, InvalidSnapshot: Draft rejected
        """
        previous = self.store.get_snapshots_for(
            player_id=draft.player_id,
            ordering=SnapshotOrdering.NEWEST_FIRST,
            limit=1,
        )
        snapshot = self.store.append_snapshot(draft)
        updated = self.baselines.observe(snapshot)
        logger.info(
            "Recorded snapshot %s for player %s by coach %s (%d cached baselines updated)",
            snapshot.id, snapshot.player_id, snapshot.coach_id, updated,
        )
        return SnapshotReceipt(
            snapshot=snapshot,
            readiness=self.readiness.compose(snapshot),
            changes=diff_snapshots(previous[0] if previous else None, snapshot),
        )

    # ------------------------------------------------------------------
    # Consensus
    # ------------------------------------------------------------------

    def get_consensus(
        self,
        player_id: str,
        metric_key_or_category: str,
        anonymize: bool = True,
        min_coaches: Optional[int] = None,
    ) -> Union[ConsensusRecord, InsufficientRaters]:
        return self.consensus.get_consensus(
            player_id, metric_key_or_category, anonymize=anonymize, min_coaches=min_coaches
        )

    def get_multi_coach_players(self, min_coaches: Optional[int] = None) -> List[str]:
        return self.consensus.get_multi_coach_players(min_coaches)

    # ------------------------------------------------------------------
    # Trends & positions
    # ------------------------------------------------------------------

    def classify_trend(
        self,
        player_id: str,
        metric_key: str,
        window: Optional[int] = None,
    ) -> Union[TrendResult, InsufficientData]:
        return self.trends.classify_trend(player_id, metric_key, window)

    def metric_timeline(self, player_id: str, metric_key: str, limit: int = 50) -> List[TimelinePoint]:
        return self.trends.metric_timeline(player_id, metric_key, limit)

    def rank_positional_suitability(self, player_id: str) -> List[PositionRanking]:
        return self.trends.rank_positional_suitability(player_id)

    def latest_snapshot(self, player_id: str) -> Optional[MetricSnapshot]:
        latest = self.store.get_snapshots_for(
            player_id=player_id,
            ordering=SnapshotOrdering.NEWEST_FIRST,
            limit=1,
        )
        return latest[0] if latest else None


def build_engine(
    settings: Optional[Settings] = None,
    store: Optional[SnapshotStore] = None,
    clock: Optional[Clock] = None,
) -> CalibrationEngine:
    """
    Build an engine from deployment settings.

    Args:
        settings: Defaults to get_settings() (environment / .env)
        store: Defaults to a SqlSnapshotStore at settings.database_url
        clock: Defaults to the wall clock

    Returns:
        Configured CalibrationEngine
    """
    settings = settings or get_settings()
    registry = MetricRegistry()
    if store is None:
        store = SqlSnapshotStore.from_url(settings.database_url, registry=registry, clock=clock)
    return CalibrationEngine(store, registry=registry, config=settings.engine_config(), clock=clock)
