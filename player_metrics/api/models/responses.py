"""
API Response Models

Pydantic models for API responses.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from player_metrics.schemas import MetricCategory, PositionRanking, TimelinePoint


class MetricInfo(BaseModel):
    """Brief metric information for listing."""

    key: str = Field(..., description="Metric key")
    display_name: str = Field(..., description="Human-readable name")
    category: MetricCategory = Field(..., description="Metric category")
    description: Optional[str] = Field(None, description="What the metric measures")
    is_coach_only: bool = Field(..., description="Hidden from players and parents")


class MetricsListResponse(BaseModel):
    """Response for GET /api/metrics."""

    metrics: List[MetricInfo] = Field(..., description="Active metric definitions")
    count: int = Field(..., description="Total number of metrics")


class MultiCoachPlayersResponse(BaseModel):
    """Response for GET /api/players/multi-coach."""

    player_ids: List[str] = Field(..., description="Players, most recently assessed first")
    count: int = Field(..., description="Number of players")
    min_coaches: int = Field(..., description="Distinct coaches required")


class PositionsResponse(BaseModel):
    """Response for GET /api/players/{player_id}/positions."""

    player_id: str = Field(..., description="Player identifier")
    rankings: List[PositionRanking] = Field(..., description="Positions, best fit first")


class TimelineResponse(BaseModel):
    """Response for GET /api/players/{player_id}/timeline/{metric_key}."""

    player_id: str = Field(..., description="Player identifier")
    metric_key: str = Field(..., description="Metric key")
    points: List[TimelinePoint] = Field(..., description="Ratings, newest first")
    count: int = Field(..., description="Number of points")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
