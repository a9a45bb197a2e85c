"""
API Request Models

Pydantic models for API request validation.
"""

from typing import Optional

from pydantic import BaseModel, Field

from player_metrics.schemas import AssessmentContext, HintContext


class HintRequest(BaseModel):
    """Request model for a real-time calibration hint."""

    metric_key: str = Field(..., description="Metric being rated (e.g., 'passing')")
    raw_value: float = Field(..., allow_inf_nan=False, description="Value the coach is about to enter")
    coach_id: Optional[str] = Field(None, description="Coach entering the rating")
    player_id: Optional[str] = Field(None, description="Player being rated")
    context: AssessmentContext = Field(
        default_factory=AssessmentContext,
        description="Center / position / age group / season of the assessment"
    )

    def hint_context(self) -> HintContext:
        return HintContext(coach_id=self.coach_id, player_id=self.player_id, context=self.context)
