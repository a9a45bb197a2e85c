"""
Snapshots & Readiness API Routes

Endpoints for recording snapshots and scoring readiness.
"""

from fastapi import APIRouter, Depends, status

from player_metrics.api.dependencies import get_engine
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import ReadinessIndex, SnapshotDraft, SnapshotReceipt

router = APIRouter()


@router.post("/snapshots", response_model=SnapshotReceipt, status_code=status.HTTP_201_CREATED)
def record_snapshot(
    draft: SnapshotDraft,
    engine: CalibrationEngine = Depends(get_engine),
) -> SnapshotReceipt:
    """
    Record a new snapshot.

    Snapshots are immutable; corrections are recorded as new snapshots.
    The response carries the readiness index computed at creation time and
    the values that changed since the player's previous snapshot.

    Raises:
        404: Unknown metric key
        422: Value out of range or structurally invalid snapshot
    """
    return engine.record_snapshot(draft)


@router.post("/readiness", response_model=ReadinessIndex)
def preview_readiness(
    draft: SnapshotDraft,
    engine: CalibrationEngine = Depends(get_engine),
) -> ReadinessIndex:
    """Score a snapshot without storing it."""
    return engine.preview_readiness(draft)
