"""
Pydantic models for the player metrics engine.

This module defines the core data structures for:
- Metric Definitions: Catalogue entries for scoreable metrics
- Metric Snapshots: Immutable coach assessments of a player
- Baselines & Profiles: Derived calibration statistics
- Readiness & Consensus: Composite, explainable outputs
- Typed "not enough data" results returned instead of degraded values
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enumerations
# ============================================================================

class MetricCategory(str, Enum):
    """Dimension a metric belongs to."""
    TECHNICAL = "TECHNICAL"
    PHYSICAL = "PHYSICAL"
    MENTAL = "MENTAL"
    ATTITUDE = "ATTITUDE"
    GOALKEEPING = "GOALKEEPING"


class PlayerPosition(str, Enum):
    """Pitch positions used for suitability and position-aware weighting."""
    GK = "GK"
    CB = "CB"
    FB = "FB"
    WB = "WB"
    DM = "DM"
    CM = "CM"
    AM = "AM"
    W = "W"
    ST = "ST"


class SourceContext(str, Enum):
    """Assessment event a snapshot was taken in."""
    TRAINING_BLOCK = "TRAINING_BLOCK"
    MATCH_BLOCK = "MATCH_BLOCK"
    TRIAL = "TRIAL"
    MONTHLY_REVIEW = "MONTHLY_REVIEW"
    QUARTERLY_ASSESSMENT = "QUARTERLY_ASSESSMENT"
    SEASON_START = "SEASON_START"
    SEASON_END = "SEASON_END"
    CUSTOM = "CUSTOM"


class SnapshotOrdering(str, Enum):
    """Chronological ordering requested from the snapshot store."""
    OLDEST_FIRST = "oldest_first"
    NEWEST_FIRST = "newest_first"


class HintFlag(str, Enum):
    """Qualitative comparison of an entered rating to the coach's usual pattern."""
    IN_LINE = "in_line"
    NOTABLY_HIGHER = "notably_higher"
    NOTABLY_LOWER = "notably_lower"


class StatusBand(str, Enum):
    """Readiness band shown next to the overall score."""
    FOUNDATION = "Foundation"
    DEVELOPING = "Developing"
    COMPETITIVE = "Competitive"
    ADVANCED = "Advanced"
    READY = "Ready"


class Agreement(str, Enum):
    """How closely contributing coaches agree after bias correction."""
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class TrendDirection(str, Enum):
    """Direction of a metric over the trailing window."""
    IMPROVING = "improving"
    PLATEAU = "plateau"
    DECLINING = "declining"


# ============================================================================
# Metric Registry
# ============================================================================

class MetricDefinition(BaseModel):
    """Immutable catalogue entry for a scoreable metric."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        ...,
        pattern=r"^[a-z][a-z0-9_]*$",
        description="Unique snake_case metric key (e.g., 'first_touch')"
    )

    display_name: str = Field(..., description="Human-readable name")

    category: MetricCategory = Field(..., description="Metric category")

    min_value: float = Field(default=0.0, description="Lowest valid value")

    max_value: float = Field(default=100.0, description="Highest valid value")

    description: Optional[str] = Field(default=None, description="What the metric measures")

    is_coach_only: bool = Field(
        default=False,
        description="Hidden from players and parents when True"
    )

    display_order: int = Field(default=0, ge=0, description="Position on the assessment sheet")


# ============================================================================
# Snapshot Components
# ============================================================================

class AssessmentContext(BaseModel):
    """
    Center / position / age group / season a rating was given in.

    Used both as the context attached to a snapshot and as a baseline filter,
    where an unset dimension means "all".
    """

    model_config = ConfigDict(frozen=True)

    center_id: Optional[str] = Field(default=None, description="Training center")
    position: Optional[PlayerPosition] = Field(default=None, description="Player position")
    age_group: Optional[str] = Field(default=None, description="Age group (e.g., 'U14')")
    season: Optional[str] = Field(default=None, description="Season identifier (e.g., '2025-26')")

    def matches(self, other: "AssessmentContext") -> bool:
        """True if every dimension set on this filter equals the same dimension of `other`."""
        return (
            (self.center_id is None or self.center_id == other.center_id)
            and (self.position is None or self.position == other.position)
            and (self.age_group is None or self.age_group == other.age_group)
            and (self.season is None or self.season == other.season)
        )

    def cache_token(self) -> str:
        position = self.position.value if self.position else None
        parts = [
            f"center={self.center_id or '*'}",
            f"position={position or '*'}",
            f"age_group={self.age_group or '*'}",
            f"season={self.season or '*'}",
        ]
        return "|".join(parts)


class MetricValue(BaseModel):
    """
    A single metric rating inside a snapshot.

    Ranges are checked against the registry at ingestion (RangeViolation),
    not here, so out-of-range input is reported with the metric's own bounds.
    """

    model_config = ConfigDict(frozen=True)

    metric_key: str = Field(..., description="Registry key (e.g., 'passing')")
    value: float = Field(..., allow_inf_nan=False, description="Rating 0-100")
    confidence: Optional[float] = Field(
        default=None,
        allow_inf_nan=False,
        description="Coach's confidence in the rating, 0-100"
    )
    comment: Optional[str] = Field(default=None, description="Optional rating comment")


class PositionalSuitability(BaseModel):
    """How well a player fits a position, 0-100."""

    model_config = ConfigDict(frozen=True)

    position: PlayerPosition = Field(..., description="Pitch position")
    suitability: float = Field(..., allow_inf_nan=False, description="Suitability 0-100")
    comment: Optional[str] = Field(default=None)


class TraitScore(BaseModel):
    """Attitude trait rating (trait keys are ATTITUDE metrics)."""

    model_config = ConfigDict(frozen=True)

    trait_key: str = Field(..., description="ATTITUDE metric key (e.g., 'work_rate')")
    value: float = Field(..., allow_inf_nan=False, description="Rating 0-100")
    comment: Optional[str] = Field(default=None)


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive input is taken to be UTC already."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class SnapshotDraft(BaseModel):
    """Ingestion payload for a new snapshot. Validated by the snapshot store."""

    player_id: str = Field(..., min_length=1, description="Rated player")
    coach_id: str = Field(..., min_length=1, description="Rating coach")
    source_context: SourceContext = Field(
        default=SourceContext.CUSTOM,
        description="Assessment event type"
    )
    context: AssessmentContext = Field(
        default_factory=AssessmentContext,
        description="Center / position / age group / season"
    )
    values: List[MetricValue] = Field(..., min_length=1, description="Metric ratings")
    positional: List[PositionalSuitability] = Field(default_factory=list)
    traits: List[TraitScore] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, description="Free-text note")
    created_at: Optional[datetime] = Field(
        default=None,
        description="Assessment time for backfilled records; the store clock is used when unset"
    )

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class MetricSnapshot(BaseModel):
    """
    One immutable assessment event for a player by a coach.

    Corrections are new snapshots; nothing in the engine mutates one.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Snapshot identifier")
    player_id: str = Field(..., description="Rated player")
    coach_id: str = Field(..., description="Rating coach")
    created_at: datetime = Field(..., description="When the assessment was recorded")
    source_context: SourceContext = Field(default=SourceContext.CUSTOM)
    context: AssessmentContext = Field(default_factory=AssessmentContext)
    values: Tuple[MetricValue, ...] = Field(..., min_length=1)
    positional: Tuple[PositionalSuitability, ...] = Field(default=())
    traits: Tuple[TraitScore, ...] = Field(default=())
    notes: Optional[str] = Field(default=None)

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    def scored_items(self) -> List[Tuple[str, float]]:
        """(metric_key, value) for every metric value and trait score."""
        items = [(v.metric_key, v.value) for v in self.values]
        items.extend((t.trait_key, t.value) for t in self.traits)
        return items

    def value_of(self, metric_key: str) -> Optional[float]:
        for key, value in self.scored_items():
            if key == metric_key:
                return value
        return None


class MetricChange(BaseModel):
    """A metric whose value changed between two consecutive snapshots."""

    metric_key: str
    old_value: float
    new_value: float
    comment: Optional[str] = None

    @property
    def delta(self) -> float:
        return self.new_value - self.old_value


# ============================================================================
# Baselines & Coach Profiles
# ============================================================================

class ContextualBaseline(BaseModel):
    """Aggregate of raw ratings for one metric within one context filter."""

    metric_key: str = Field(..., description="Metric the baseline describes")
    context: AssessmentContext = Field(..., description="Filter the baseline was computed for")
    count: int = Field(..., ge=0, description="Number of ratings aggregated")
    mean: Optional[float] = Field(default=None, description="Mean rating (None when count=0)")
    dispersion: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Population standard deviation (None when count=0)"
    )
    computed_at: Optional[datetime] = Field(default=None)

    @property
    def has_data(self) -> bool:
        return self.count > 0


class CategoryCalibration(BaseModel):
    """A coach's measured bias and confidence for one metric category."""

    category: MetricCategory
    bias: float = Field(
        default=0.0,
        description="Signed average deviation from contextual baselines"
    )
    confidence: float = Field(..., ge=0.0, le=1.0, description="Consistency weight 0-1")
    dispersion: Optional[float] = Field(default=None, description="Std dev of the coach's raw ratings")
    sample_count: int = Field(default=0, ge=0, description="Distinct snapshots rating this category")
    low_confidence: bool = Field(default=False, description="Confidence is at the floor")
    neutral: bool = Field(
        default=False,
        description="Too few snapshots; bias forced to 0"
    )


class CoachScoringProfile(BaseModel):
    """
    Calibration profile for a coach.

    Recomputing from the same snapshot set yields the same profile apart
    from last_computed_at.
    """

    coach_id: str
    categories: Dict[MetricCategory, CategoryCalibration] = Field(default_factory=dict)
    total_snapshots_observed: int = Field(default=0, ge=0)
    last_computed_at: datetime
    formula_version: str

    def calibration_for(self, category: MetricCategory) -> Optional[CategoryCalibration]:
        return self.categories.get(category)

    def bias_for(self, category: MetricCategory) -> float:
        entry = self.categories.get(category)
        return entry.bias if entry else 0.0

    def confidence_for(self, category: MetricCategory, default: float) -> float:
        entry = self.categories.get(category)
        return entry.confidence if entry else default


# ============================================================================
# Typed "not enough data" results
# ============================================================================

class InsufficientData(BaseModel):
    """Too few samples to produce a baseline-backed answer."""

    status: Literal["insufficient_data"] = "insufficient_data"
    reason: str
    sample_size: int = Field(..., ge=0)
    required: int = Field(..., ge=0)


class InsufficientRaters(BaseModel):
    """Fewer distinct coaches than required for a consensus."""

    status: Literal["insufficient_raters"] = "insufficient_raters"
    player_id: str
    target: str
    rater_count: int = Field(..., ge=0)
    min_coaches: int = Field(..., ge=1)


# ============================================================================
# Calibration Hints
# ============================================================================

class HintContext(BaseModel):
    """Who is scoring, and where, while a hint is requested."""

    coach_id: Optional[str] = Field(default=None, description="Coach entering the rating")
    player_id: Optional[str] = Field(default=None, description="Player being rated")
    context: AssessmentContext = Field(default_factory=AssessmentContext)


class CalibrationHint(BaseModel):
    """Real-time comparison of an in-progress rating to peers and to the coach's own pattern."""

    status: Literal["ok"] = "ok"
    metric_key: str
    entered_value: float
    peer_average: float
    peer_dispersion: float
    peer_sample_size: int
    coach_bias: float
    expected_for_coach: float
    delta_from_peers: float
    delta_from_coach_pattern: float
    percentile: float = Field(..., ge=0.0, le=100.0)
    is_extreme: bool
    flag: HintFlag
    message: str
    suggestion: Optional[str] = None


# ============================================================================
# Readiness Index
# ============================================================================

class ReadinessExplanation(BaseModel):
    """Why the readiness index came out the way it did."""

    top_strengths: List[str] = Field(default_factory=list)
    recommended_focus: List[str] = Field(default_factory=list)
    rule_triggers: List[str] = Field(default_factory=list)


class ReadinessIndex(BaseModel):
    """Composite 0-100 score for exactly one snapshot."""

    snapshot_id: str
    technical: float = Field(..., ge=0.0, le=100.0)
    physical: float = Field(..., ge=0.0, le=100.0)
    mental: float = Field(..., ge=0.0, le=100.0)
    attitude: float = Field(..., ge=0.0, le=100.0)
    tactical_fit: float = Field(..., ge=0.0, le=100.0)
    overall: float = Field(..., ge=0.0, le=100.0)
    weights_used: Dict[str, float] = Field(default_factory=dict)
    status_band: StatusBand
    explanation: ReadinessExplanation = Field(default_factory=ReadinessExplanation)


class SnapshotReceipt(BaseModel):
    """What recording a snapshot returns: the stored record, its readiness, and what changed."""

    snapshot: MetricSnapshot
    readiness: ReadinessIndex
    changes: List[MetricChange] = Field(
        default_factory=list,
        description="Values changed since the player's previous snapshot"
    )


# ============================================================================
# Consensus
# ============================================================================

class ConsensusRecord(BaseModel):
    """
    Anonymized multi-coach agreement for one player and target.

    Carries only aggregates; there is no field for coach identities.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["ok"] = "ok"
    player_id: str
    target: str = Field(..., description="Metric key or category name")
    target_kind: Literal["metric", "category"]
    rater_count: int = Field(..., ge=1, description="Distinct contributing coaches")
    consensus_value: float = Field(..., ge=0.0, le=100.0)
    spread: float = Field(..., ge=0.0, description="Weighted std dev of corrected values")
    agreement: Agreement
    formula_version: str


class CoachContribution(BaseModel):
    """One coach's vote in a consensus (only exposed when not anonymized)."""

    coach_id: str
    snapshot_id: str
    rated_at: datetime
    raw_value: float
    corrected_value: float
    weight: float


class ConsensusBreakdown(ConsensusRecord):
    """Consensus with the per-coach breakdown, for explicitly de-anonymized requests."""

    contributions: List[CoachContribution] = Field(default_factory=list)


# ============================================================================
# Trends & Positions
# ============================================================================

class TrendResult(BaseModel):
    """Classified direction of a metric over a player's recent snapshots."""

    player_id: str
    metric_key: str
    direction: TrendDirection
    slope: float = Field(..., description="Points per snapshot")
    sample_count: int = Field(..., ge=2)
    window: int = Field(..., ge=2)


class TimelinePoint(BaseModel):
    """One rating of a metric in a player's history."""

    snapshot_id: str
    recorded_at: datetime
    value: float
    confidence: Optional[float] = Field(default=None, description="Coach's confidence, 0-100")
    comment: Optional[str] = None
    readiness: Optional[float] = Field(default=None, description="Overall readiness of the snapshot")
    source_context: SourceContext


class PositionRanking(BaseModel):
    """One row of a positional suitability ranking."""

    position: PlayerPosition
    suitability: float
