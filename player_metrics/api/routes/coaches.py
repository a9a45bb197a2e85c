"""
Coach Profile API Routes
"""

from fastapi import APIRouter, Depends, Query

from player_metrics.api.dependencies import get_engine
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import CoachScoringProfile

router = APIRouter()


@router.get("/coaches/{coach_id}/profile", response_model=CoachScoringProfile)
def get_coach_profile(
    coach_id: str,
    refresh: bool = Query(False, description="Recompute even if the cached profile is fresh"),
    engine: CalibrationEngine = Depends(get_engine),
) -> CoachScoringProfile:
    """Per-category bias and confidence for a coach."""
    return engine.get_coach_profile(coach_id, force_refresh=refresh)
