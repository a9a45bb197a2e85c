"""
Snapshot Store interface.

The store is the append-only ledger of assessments. The engine consumes
exactly two operations from it:

- get_snapshots_for(...): filtered, ordered reads
- append_snapshot(draft): validated append (never edit, never delete)

Filtering happens inside the store so that callers only ever touch the
snapshots that match their query.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from itertools import count
from typing import Dict, List, NamedTuple, Optional, Tuple

from player_metrics.cache import Clock, utc_now
from player_metrics.errors import InvalidSnapshot, RangeViolation
from player_metrics.registry import MetricRegistry
from player_metrics.schemas import (
    AssessmentContext,
    MetricCategory,
    MetricChange,
    MetricSnapshot,
    SnapshotDraft,
    SnapshotOrdering,
)

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 100.0


class PlayerRaters(NamedTuple):
    """Distinct-author count for one player."""

    player_id: str
    coach_count: int
    latest_at: datetime


def validate_draft(draft: SnapshotDraft, registry: MetricRegistry) -> None:
    """
    Reject a snapshot draft before it can enter the ledger.

    Args:
        draft: Incoming snapshot payload
        registry: Metric catalogue providing keys, categories and ranges

    Raises:
        InvalidMetricKey: Unknown metric or trait key
        RangeViolation: Any value, confidence or suitability outside its range
        InvalidSnapshot: Duplicate keys/positions or a trait that is not an ATTITUDE metric
    """
    seen = set()
    for value in draft.values:
        if value.metric_key in seen:
            raise InvalidSnapshot(f'Metric "{value.metric_key}" rated more than once')
        seen.add(value.metric_key)
        registry.validate_value(value.metric_key, value.value)
        if value.confidence is not None and not (SCORE_MIN <= value.confidence <= SCORE_MAX):
            raise RangeViolation(f"{value.metric_key}.confidence", value.confidence, SCORE_MIN, SCORE_MAX)

    for trait in draft.traits:
        definition = registry.get(trait.trait_key)
        if definition.category != MetricCategory.ATTITUDE:
            raise InvalidSnapshot(f'Trait key "{trait.trait_key}" is not an attitude metric')
        if trait.trait_key in seen:
            raise InvalidSnapshot(f'Metric "{trait.trait_key}" rated more than once')
        seen.add(trait.trait_key)
        registry.validate_value(trait.trait_key, trait.value)

    positions = set()
    for entry in draft.positional:
        if entry.position in positions:
            raise InvalidSnapshot(f"Position {entry.position.value} listed more than once")
        positions.add(entry.position)
        if not (SCORE_MIN <= entry.suitability <= SCORE_MAX):
            raise RangeViolation(f"positional.{entry.position.value}", entry.suitability, SCORE_MIN, SCORE_MAX)


def diff_snapshots(previous: Optional[MetricSnapshot], current: MetricSnapshot) -> List[MetricChange]:
    """
    Metric values that changed from `previous` to `current`.

    Metrics rated in only one of the two snapshots are not reported.
    """
    if previous is None:
        return []
    old_values = dict(previous.scored_items())
    comments = {v.metric_key: v.comment for v in current.values}
    comments.update({t.trait_key: t.comment for t in current.traits})

    changes = []
    for key, new_value in current.scored_items():
        old_value = old_values.get(key)
        if old_value is not None and old_value != new_value:
            changes.append(
                MetricChange(
                    metric_key=key,
                    old_value=old_value,
                    new_value=new_value,
                    comment=comments.get(key),
                )
            )
    return changes


class SnapshotStore(ABC):
    """Append-only ledger of metric snapshots."""

    @abstractmethod
    def get_snapshots_for(
        self,
        player_id: Optional[str] = None,
        coach_id: Optional[str] = None,
        filters: Optional[AssessmentContext] = None,
        metric_key: Optional[str] = None,
        ordering: SnapshotOrdering = SnapshotOrdering.OLDEST_FIRST,
        limit: Optional[int] = None,
    ) -> List[MetricSnapshot]:
        """
        Snapshots matching every given criterion.

        Args:
            player_id: Only snapshots of this player
            coach_id: Only snapshots authored by this coach
            filters: Context filter; unset dimensions match everything
            metric_key: Only snapshots rating this metric (as a value or a trait)
            ordering: Chronological order of the result
            limit: Maximum number of snapshots returned (after ordering)
        """

    @abstractmethod
    def append_snapshot(self, draft: SnapshotDraft) -> MetricSnapshot:
        """Validate and append a new snapshot; return the stored, immutable record."""

    @abstractmethod
    def get_player_rater_counts(self, min_coaches: int = 1) -> List[PlayerRaters]:
        """
        Players rated by at least `min_coaches` distinct coaches.

        Returns one row per player with the distinct coach count and the time
        of the newest snapshot, in no particular order.
        """


class InMemorySnapshotStore(SnapshotStore):
    """
    Thread-safe process-local store.

    Keeps per-player, per-coach and per-metric indexes so filtered reads
    only visit matching snapshots.
    """

    def __init__(self, registry: Optional[MetricRegistry] = None, clock: Optional[Clock] = None):
        self.registry = registry or MetricRegistry()
        self.clock = clock or utc_now
        self._lock = threading.Lock()
        self._sequence = count()
        self._all: List[Tuple[int, MetricSnapshot]] = []
        self._by_player: Dict[str, List[Tuple[int, MetricSnapshot]]] = defaultdict(list)
        self._by_coach: Dict[str, List[Tuple[int, MetricSnapshot]]] = defaultdict(list)
        self._by_metric: Dict[str, List[Tuple[int, MetricSnapshot]]] = defaultdict(list)

    def __len__(self) -> int:
        with self._lock:
            return len(self._all)

    def append_snapshot(self, draft: SnapshotDraft) -> MetricSnapshot:
        validate_draft(draft, self.registry)
        created_at: datetime = draft.created_at or self.clock()
        snapshot = MetricSnapshot(
            id=uuid.uuid4().hex,
            player_id=draft.player_id,
            coach_id=draft.coach_id,
            created_at=created_at,
            source_context=draft.source_context,
            context=draft.context,
            values=tuple(draft.values),
            positional=tuple(draft.positional),
            traits=tuple(draft.traits),
            notes=draft.notes,
        )
        with self._lock:
            row = (next(self._sequence), snapshot)
            self._all.append(row)
            self._by_player[snapshot.player_id].append(row)
            self._by_coach[snapshot.coach_id].append(row)
            for key, _ in snapshot.scored_items():
                self._by_metric[key].append(row)

        logger.debug(
            "Appended snapshot %s (player=%s, coach=%s, %d ratings)",
            snapshot.id, snapshot.player_id, snapshot.coach_id, len(snapshot.scored_items()),
        )
        return snapshot

    def get_player_rater_counts(self, min_coaches: int = 1) -> List[PlayerRaters]:
        with self._lock:
            by_player = {player_id: list(rows) for player_id, rows in self._by_player.items()}

        counts = []
        for player_id, rows in by_player.items():
            coach_count = len({snapshot.coach_id for _, snapshot in rows})
            if rows and coach_count >= min_coaches:
                latest_at = max(snapshot.created_at for _, snapshot in rows)
                counts.append(PlayerRaters(player_id, coach_count, latest_at))
        return counts

    def get_snapshots_for(
        self,
        player_id: Optional[str] = None,
        coach_id: Optional[str] = None,
        filters: Optional[AssessmentContext] = None,
        metric_key: Optional[str] = None,
        ordering: SnapshotOrdering = SnapshotOrdering.OLDEST_FIRST,
        limit: Optional[int] = None,
    ) -> List[MetricSnapshot]:
        with self._lock:
            # Start from the narrowest index available
            candidates = [self._all]
            if player_id is not None:
                candidates.append(self._by_player.get(player_id, []))
            if coach_id is not None:
                candidates.append(self._by_coach.get(coach_id, []))
            if metric_key is not None:
                candidates.append(self._by_metric.get(metric_key, []))
            rows = list(min(candidates, key=len))

        def keep(snapshot: MetricSnapshot) -> bool:
            if player_id is not None and snapshot.player_id != player_id:
                return False
            if coach_id is not None and snapshot.coach_id != coach_id:
                return False
            if filters is not None and not filters.matches(snapshot.context):
                return False
            if metric_key is not None and snapshot.value_of(metric_key) is None:
                return False
            return True

        rows = [row for row in rows if keep(row[1])]
        rows.sort(
            key=lambda row: (row[1].created_at, row[0]),
            reverse=ordering == SnapshotOrdering.NEWEST_FIRST,
        )
        snapshots = [snapshot for _, snapshot in rows]
        if limit is not None:
            snapshots = snapshots[:limit]
        return snapshots
