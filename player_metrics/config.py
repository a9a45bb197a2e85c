"""
Engine configuration.

EngineConfig holds every product-tuned constant (cache TTLs, sample
minimums, the confidence model, hint thresholds, trend dead-band and the
readiness weights) as named, validated fields so an invalid configuration
fails at construction time. Settings reads deployment configuration from
the environment (PLAYER_METRICS_*) and builds an EngineConfig from it.
"""

from functools import lru_cache
from typing import Dict, List

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from player_metrics.schemas import PlayerPosition


class ReadinessWeights(BaseModel):
    """Weights of the five readiness sub-scores. Must sum to 1.0."""

    technical: float = Field(..., ge=0.0, le=1.0)
    physical: float = Field(..., ge=0.0, le=1.0)
    mental: float = Field(..., ge=0.0, le=1.0)
    attitude: float = Field(..., ge=0.0, le=1.0)
    tactical_fit: float = Field(..., ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_weights_sum(self):
        """Ensure sub-score weights sum to 1.0."""
        total = (
            self.technical
            + self.physical
            + self.mental
            + self.attitude
            + self.tactical_fit
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(
                f"Readiness weights must sum to 1.0, got {total:.4f}. "
                f"Technical={self.technical}, Physical={self.physical}, Mental={self.mental}, "
                f"Attitude={self.attitude}, TacticalFit={self.tactical_fit}"
            )
        return self

    def as_dict(self) -> Dict[str, float]:
        return self.model_dump()


def _weights(technical, physical, mental, attitude, tactical_fit) -> ReadinessWeights:
    return ReadinessWeights(
        technical=technical,
        physical=physical,
        mental=mental,
        attitude=attitude,
        tactical_fit=tactical_fit,
    )


def default_position_weights() -> Dict[PlayerPosition, ReadinessWeights]:
    """Position-aware weights: goalkeepers and creators lean technical, defenders physical."""
    return {
        PlayerPosition.GK: _weights(0.35, 0.20, 0.25, 0.10, 0.10),
        PlayerPosition.CB: _weights(0.25, 0.30, 0.25, 0.10, 0.10),
        PlayerPosition.FB: _weights(0.30, 0.30, 0.20, 0.10, 0.10),
        PlayerPosition.WB: _weights(0.30, 0.30, 0.20, 0.10, 0.10),
        PlayerPosition.DM: _weights(0.30, 0.25, 0.25, 0.10, 0.10),
        PlayerPosition.CM: _weights(0.30, 0.25, 0.25, 0.10, 0.10),
        PlayerPosition.AM: _weights(0.35, 0.20, 0.25, 0.10, 0.10),
        PlayerPosition.W: _weights(0.30, 0.30, 0.20, 0.10, 0.10),
        PlayerPosition.ST: _weights(0.35, 0.25, 0.20, 0.10, 0.10),
    }


DEFAULT_TACTICAL_METRICS = [
    "positioning",
    "decisions",
    "anticipation",
    "off_the_ball",
    "teamwork",
    "marking",
    "interceptions",
]


class ReadinessConfig(BaseModel):
    """Which metrics compose readiness and how the sub-scores are weighted."""

    default_weights: ReadinessWeights = Field(
        default_factory=lambda: _weights(0.30, 0.25, 0.25, 0.10, 0.10),
        description="Weights used when the snapshot has no position or no position override"
    )

    position_weights: Dict[PlayerPosition, ReadinessWeights] = Field(
        default_factory=default_position_weights,
        description="Per-position weight overrides"
    )

    tactical_metric_keys: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TACTICAL_METRICS),
        min_length=1,
        description="Metrics averaged into the tactical-fit sub-score"
    )

    neutral_score: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Sub-score used when a snapshot has no ratings for a group"
    )

    explanation_size: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum metric keys listed as strengths / focus areas"
    )

    def weights_for(self, position) -> ReadinessWeights:
        if position is not None and position in self.position_weights:
            return self.position_weights[position]
        return self.default_weights


class EngineConfig(BaseModel):
    """Product-tuned constants for baselines, profiles, hints, consensus and trends."""

    # Cache
    baseline_ttl_seconds: float = Field(default=300.0, gt=0.0)
    profile_ttl_seconds: float = Field(default=900.0, gt=0.0)

    # Sample minimums
    min_snapshots_per_category: int = Field(
        default=5,
        ge=1,
        description="Below this a coach gets a neutral profile entry for the category"
    )
    min_baseline_samples: int = Field(
        default=3,
        ge=1,
        description="Below this hints report insufficient context data"
    )
    min_coaches: int = Field(
        default=2,
        ge=2,
        description="Distinct coaches required for a consensus"
    )

    # Confidence model
    low_confidence_value: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Confidence floor, also used for neutral and constant-rating profiles"
    )
    confidence_scale: float = Field(
        default=15.0,
        gt=0.0,
        description="Dispersion at which confidence falls to 0.5"
    )
    dispersion_floor: float = Field(
        default=1.0,
        ge=0.0,
        description="Rating dispersion below this marks a constant rater"
    )

    # Hints
    hint_min_delta: float = Field(default=8.0, ge=0.0)
    hint_dispersion_multiplier: float = Field(default=1.0, ge=0.0)
    extreme_z_score: float = Field(default=2.0, gt=0.0)

    # Consensus agreement bands (spread in rating points)
    strong_agreement_spread: float = Field(default=5.0, ge=0.0)
    moderate_agreement_spread: float = Field(default=12.0, ge=0.0)

    # Trends
    trend_window: int = Field(default=5, ge=2)
    trend_dead_band: float = Field(
        default=1.0,
        ge=0.0,
        description="|slope| at or below this (points per snapshot) is a plateau"
    )

    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)

    @model_validator(mode="after")
    def validate_agreement_bands(self):
        if self.strong_agreement_spread > self.moderate_agreement_spread:
            raise ValueError(
                "strong_agreement_spread must not exceed moderate_agreement_spread "
                f"(got {self.strong_agreement_spread} > {self.moderate_agreement_spread})"
            )
        return self


class Settings(BaseSettings):
    """Deployment settings, read from PLAYER_METRICS_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="PLAYER_METRICS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///player_metrics.db"
    log_level: str = "INFO"
    log_format: str = "text"
    api_prefix: str = "/api"
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
        ]
    )

    baseline_ttl_seconds: float = 300.0
    profile_ttl_seconds: float = 900.0
    min_snapshots_per_category: int = 5
    min_baseline_samples: int = 3
    min_coaches: int = 2
    trend_dead_band: float = 1.0

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            baseline_ttl_seconds=self.baseline_ttl_seconds,
            profile_ttl_seconds=self.profile_ttl_seconds,
            min_snapshots_per_category=self.min_snapshots_per_category,
            min_baseline_samples=self.min_baseline_samples,
            min_coaches=self.min_coaches,
            trend_dead_band=self.trend_dead_band,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
