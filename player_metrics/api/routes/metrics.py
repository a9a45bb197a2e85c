"""
Metrics API Routes

Endpoints for listing the metric catalogue.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from player_metrics.api.dependencies import get_engine
from player_metrics.api.models.responses import MetricInfo, MetricsListResponse
from player_metrics.engine import CalibrationEngine
from player_metrics.schemas import MetricCategory

router = APIRouter()


@router.get("/metrics", response_model=MetricsListResponse)
def list_metrics(
    category: Optional[MetricCategory] = Query(None, description="Only this category"),
    player_visible: bool = Query(False, description="Hide coach-only metrics"),
    engine: CalibrationEngine = Depends(get_engine),
) -> MetricsListResponse:
    """
    List metric definitions in display order.

    Coach-only metrics (attitude) are omitted when player_visible=true.
    """
    registry = engine.registry
    definitions = registry.visible_to_players() if player_visible else list(registry)
    if category is not None:
        definitions = [d for d in definitions if d.category == category]

    metrics = [
        MetricInfo(
            key=d.key,
            display_name=d.display_name,
            category=d.category,
            description=d.description,
            is_coach_only=d.is_coach_only,
        )
        for d in definitions
    ]
    return MetricsListResponse(metrics=metrics, count=len(metrics))
