"""
Players API Routes

Endpoints for multi-coach consensus, trends, metric history and positional suitability.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

from player_metrics.api.dependencies import get_engine
from player_metrics.api.models.responses import MultiCoachPlayersResponse, PositionsResponse, TimelineResponse
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import InsufficientData, TrendResult

router = APIRouter()


# Registered before /players/{player_id}/... so "multi-coach" is never read as a player id
@router.get("/players/multi-coach", response_model=MultiCoachPlayersResponse)
def list_multi_coach_players(
    min_coaches: Optional[int] = Query(None, ge=2, description="Distinct coaches required"),
    engine: CalibrationEngine = Depends(get_engine),
) -> MultiCoachPlayersResponse:
    """Players assessed by at least `min_coaches` distinct coaches, most recent first."""
    required = min_coaches if min_coaches is not None else engine.config.min_coaches
    player_ids = engine.get_multi_coach_players(required)
    return MultiCoachPlayersResponse(player_ids=player_ids, count=len(player_ids), min_coaches=required)


# response_model=None: the consensus body is either the anonymized record,
# the de-anonymized breakdown, or insufficient_raters, each serialized as-is.
@router.get("/players/{player_id}/consensus/{target}", response_model=None)
def get_consensus(
    player_id: str,
    target: str,
    anonymize: bool = Query(True, description="Hide per-coach values"),
    min_coaches: Optional[int] = Query(None, ge=2, description="Distinct coaches required"),
    engine: CalibrationEngine = Depends(get_engine),
):
    """
    Bias-corrected, confidence-weighted consensus on a metric or category.

    `target` is a metric key ("passing") or a category ("TECHNICAL").
    Returns status "insufficient_raters" when too few coaches rated it.
    """
    result = engine.get_consensus(player_id, target, anonymize=anonymize, min_coaches=min_coaches)
    return result.model_dump(mode="json")


@router.get(
    "/players/{player_id}/trend/{metric_key}",
    response_model=Union[TrendResult, InsufficientData],
)
def get_trend(
    player_id: str,
    metric_key: str,
    window: Optional[int] = Query(None, ge=2, description="Trailing snapshots considered"),
    engine: CalibrationEngine = Depends(get_engine),
) -> Union[TrendResult, InsufficientData]:
    """Improving / plateau / declining over the player's recent snapshots."""
    return engine.classify_trend(player_id, metric_key, window)


@router.get("/players/{player_id}/positions", response_model=PositionsResponse)
def get_positions(
    player_id: str,
    engine: CalibrationEngine = Depends(get_engine),
) -> PositionsResponse:
    """Positional suitability from the player's latest snapshot, best fit first."""
    return PositionsResponse(
        player_id=player_id,
        rankings=engine.rank_positional_suitability(player_id),
    )


@router.get("/players/{player_id}/timeline/{metric_key}", response_model=TimelineResponse)
def get_timeline(
    player_id: str,
    metric_key: str,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of points"),
    engine: CalibrationEngine = Depends(get_engine),
) -> TimelineResponse:
    """History of one metric for a player, newest first, with each snapshot's readiness."""
    points = engine.metric_timeline(player_id, metric_key, limit)
    return TimelineResponse(player_id=player_id, metric_key=metric_key, points=points, count=len(points))
