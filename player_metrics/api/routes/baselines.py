"""
Baselines & Hints API Routes

Endpoints for contextual baselines and real-time calibration hints.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

from player_metrics.api.dependencies import get_engine
from player_metrics.api.models.requests import HintRequest
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import (
    AssessmentContext,
    CalibrationHint,
    ContextualBaseline,
    InsufficientData,
    PlayerPosition,
)

router = APIRouter()


@router.get("/baselines/{metric_key}", response_model=ContextualBaseline)
def get_baseline(
    metric_key: str,
    center_id: Optional[str] = Query(None, description="Training center"),
    position: Optional[PlayerPosition] = Query(None, description="Player position"),
    age_group: Optional[str] = Query(None, description="Age group (e.g., 'U14')"),
    season: Optional[str] = Query(None, description="Season identifier"),
    refresh: bool = Query(False, description="Recompute even if cached"),
    engine: CalibrationEngine = Depends(get_engine),
) -> ContextualBaseline:
    """
    Get the peer baseline for a metric within a context.

    Unset filters mean "all". A baseline with no matching ratings has
    count=0 and null mean/dispersion.
    """
    filters = AssessmentContext(
        center_id=center_id,
        position=position,
        age_group=age_group,
        season=season,
    )
    return engine.get_contextual_baseline(metric_key, filters, force_refresh=refresh)


@router.post("/hints", response_model=Union[CalibrationHint, InsufficientData])
def get_hints(
    request: HintRequest,
    engine: CalibrationEngine = Depends(get_engine),
) -> Union[CalibrationHint, InsufficientData]:
    """
    Compare an in-progress rating to peers and to the coach's own pattern.

    Returns status "insufficient_data" when the context has too few ratings.
    """
    return engine.get_calibration_hints(request.metric_key, request.raw_value, request.hint_context())
