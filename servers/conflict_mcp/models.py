"""
Pydantic models for conflict analysis data structures.

These models define the core data types used throughout the engine:
- Event: Normalized competing event produced by a provider adapter
- DedupeResult: Canonical event set with audit trail
- CategoryConflictWeight, SeasonalMultiplier, HolidayImpact: cached factors
- ConflictScore: Final score with per-factor breakdown
- AnalysisRequest / AnalysisResult: Public entry point contract
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
import hashlib
import unicodedata


def fold_text(value: Optional[str]) -> str:
    """Lowercase and strip accents so 'Brno' and 'BRNO ' compare equal."""
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKD", value)
    stripped = "".join(c for c in normalized if not unicodedata.combining(c))
    return " ".join(stripped.lower().split())


class MatchMethod(str, Enum):
    """How a category conflict weight was resolved."""

    EXACT = "exact"
    RULE = "rule"
    AI = "ai"


class DemandLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TotalImpact(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


class AnalysisDepth(str, Enum):
    SHALLOW = "shallow"
    MEDIUM = "medium"
    DEEP = "deep"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Event(BaseModel):
    """Represents a single competing event. Immutable once built by an adapter."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None

    # Timing
    date: datetime
    end_date: Optional[datetime] = None

    # Location
    city: str
    venue: Optional[str] = None

    # Classification
    category: str
    subcategory: Optional[str] = None
    expected_attendees: Optional[int] = None

    # Source tracking
    source: str  # ticketmaster, predicthq, firecrawl, manual
    source_id: Optional[str] = None  # Provider-native id
    source_ids: tuple[str, ...] = ()  # source:source_id of every merged record

    # Media
    url: Optional[str] = None
    image_url: Optional[str] = None

    @computed_field
    @property
    def unique_key(self) -> str:
        """Generate unique key for distinct-event counting."""
        normalized_title = fold_text(self.title)
        date_str = self.date.strftime("%Y-%m-%d")
        key_string = f"{normalized_title}|{date_str}|{fold_text(self.city)}"
        return hashlib.md5(key_string.encode()).hexdigest()

    @property
    def duration_days(self) -> int:
        """Length in days, inclusive of both endpoints."""
        if not self.end_date:
            return 1
        days = (self.end_date.date() - self.date.date()).days + 1
        return max(1, days)

    @property
    def provenance(self) -> tuple[str, ...]:
        """All source tags this record stands for."""
        if self.source_ids:
            return self.source_ids
        return (f"{self.source}:{self.source_id or self.id}",)

    def is_active_on(self, day: date) -> bool:
        """True when the event runs on the given calendar day."""
        start = self.date.date()
        end = self.end_date.date() if self.end_date else start
        return start <= day <= max(start, end)


class DuplicateMatch(BaseModel):
    """Records a duplicate match for audit trail."""

    kept_event_id: str
    merged_event_id: str
    similarity_score: float
    reason: str


class DedupeResult(BaseModel):
    """Canonical event set: deduplicated events with audit trail."""

    events: list[Event]
    original_count: int
    duplicates_removed: int
    dropped_over_cap: int = 0
    audit_trail: list[DuplicateMatch] = Field(default_factory=list)

    @computed_field
    @property
    def dedup_rate(self) -> float:
        """Percentage of events that were duplicates."""
        if self.original_count == 0:
            return 0.0
        return self.duplicates_removed / self.original_count * 100


class SearchQuery(BaseModel):
    """Input to the aggregator."""

    city: Optional[str] = None
    keyword: Optional[str] = None
    category: Optional[str] = None
    date_from: date
    date_to: date
    radius: Optional[str] = None


class StrategyStats(BaseModel):
    """Statistics from a single strategy run."""

    strategy: str
    count: int
    status: str  # success, error, timeout, skipped
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None


class ProviderReport(BaseModel):
    """Per-provider diagnostics for one aggregation."""

    provider: str
    status: str  # ok, partial, unavailable, disabled
    event_count: int = 0
    early_return: bool = False
    strategies: list[StrategyStats] = Field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.status in ("ok", "partial")


class AggregationResult(BaseModel):
    """Raw events from all providers, concatenated before dedup."""

    events: list[Event]
    providers: list[ProviderReport]
    total: int

    @property
    def unavailable_providers(self) -> list[str]:
        return [p.provider for p in self.providers if p.status == "unavailable"]


class CategoryMatch(BaseModel):
    """Structured answer of an AI category matcher."""

    is_match: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    suggested_category: Optional[str] = None
    language_detected: Optional[str] = None


class CategoryConflictWeight(BaseModel):
    """Conflict weight between a competing and a planned category."""

    weight: float
    confidence: float
    method: MatchMethod
    reasoning: list[str] = Field(default_factory=list)


class SeasonalMultiplier(BaseModel):
    """Seasonal demand for a (month, category, subcategory, region)."""

    multiplier: float = Field(ge=0.0)
    demand_level: DemandLevel
    confidence: float
    reasoning: list[str] = Field(default_factory=list)
    data_source: str = "expert_rules"
    expert_source: Optional[str] = None
    coverage_warning: bool = False


class MonthDemand(BaseModel):
    """One month of a demand curve."""

    month: int = Field(ge=1, le=12)
    month_name: str
    demand_multiplier: float
    demand_level: DemandLevel
    reasoning: str = ""


class DemandCurve(BaseModel):
    """Twelve-month demand curve for a category in a region."""

    category: str
    subcategory: Optional[str] = None
    region: str
    months: list[MonthDemand]
    pattern: str  # spring_peak, summer_peak, fall_peak, winter_peak, year_round
    optimal_months: list[int] = Field(default_factory=list)
    avoid_months: list[int] = Field(default_factory=list)
    confidence: float = 0.0
    coverage_warning: bool = False


class HolidayInfo(BaseModel):
    """A holiday or cultural observance on a specific date."""

    name: str
    name_native: Optional[str] = None
    holiday_type: str  # public_holiday, cultural_event, observance
    date: date
    country: str
    region: Optional[str] = None
    business_impact: TotalImpact = TotalImpact.NONE
    venue_closure_expected: bool = False


class HolidayConflict(BaseModel):
    """A holiday whose impact window covers the analysed date."""

    holiday: HolidayInfo
    impact_multiplier: float
    days_before: int
    days_after: int
    reasoning: Optional[str] = None


class HolidayImpact(BaseModel):
    """Holiday impact on a (date, category, subcategory, country, region)."""

    multiplier: float = 1.0
    total_impact: TotalImpact = TotalImpact.NONE
    holidays: list[HolidayConflict] = Field(default_factory=list)
    reasoning: list[str] = Field(default_factory=list)
    impact_window: dict[str, int] = Field(
        default_factory=lambda: {"days_before": 0, "days_after": 0}
    )
    coverage_warning: bool = False


class ConflictFactors(BaseModel):
    """Per-factor breakdown shown to users."""

    category_weight: float = 0.0
    duration_multiplier: float = 1.0
    attendance_multiplier: float = 1.0
    seasonal_multiplier: float = 1.0
    holiday_multiplier: float = 1.0


class EventScore(BaseModel):
    """Contribution of one fully scored competing event."""

    event_id: str
    title: str
    significance: float
    category_weight: float
    duration_multiplier: float
    subtotal: float


class ConflictScore(BaseModel):
    """Final conflict score for one candidate date."""

    score: float = Field(ge=0.0, le=20.0)
    factors: ConflictFactors = Field(default_factory=ConflictFactors)
    events_considered: int = 0
    events_truncated: int = 0
    event_scores: list[EventScore] = Field(default_factory=list)
    processing_time_ms: float = 0.0


class ScoringConfig(BaseModel):
    """Knobs for one scoring pass."""

    depth: AnalysisDepth = AnalysisDepth.MEDIUM
    max_comparisons: int = 50


class ScoringPayload(BaseModel):
    """Everything the pure scoring function needs."""

    competing_events: list[Event]
    category_weights: dict[str, float] = Field(default_factory=dict)
    expected_attendees: int
    config: ScoringConfig = Field(default_factory=ScoringConfig)
    seasonal_multiplier: float = 1.0
    holiday_multiplier: float = 1.0


class ScoringTask(BaseModel):
    """Message sent to the scoring worker pool."""

    task_id: str
    type: str = "calculate_conflict_score"
    payload: ScoringPayload


class ScoringResult(BaseModel):
    """Message returned by the scoring worker pool."""

    task_id: str
    type: str = "calculate_conflict_score"
    result: Optional[ConflictScore] = None
    error: Optional[str] = None


class DateRange(BaseModel):
    start: date
    end: date


class AnalysisRequest(BaseModel):
    """Input of the engine's public entry point."""

    city: str
    category: str
    subcategory: Optional[str] = None
    expected_attendees: int = 0
    candidate_dates: list[date]
    date_range: Optional[DateRange] = None  # Context window for competing events
    country: str = "CZ"
    region: Optional[str] = None
    keyword: Optional[str] = None
    depth: AnalysisDepth = AnalysisDepth.MEDIUM


class DateAnalysis(BaseModel):
    """Analysis of one candidate date."""

    date: date
    conflict_score: ConflictScore
    risk: RiskLevel
    competing_events: list[Event] = Field(default_factory=list)
    seasonal_factors: SeasonalMultiplier
    holiday_warnings: list[str] = Field(default_factory=list)
    holiday_impact: HolidayImpact = Field(default_factory=HolidayImpact)
    recommendation: str = ""


class AnalysisResult(BaseModel):
    """Output of the engine's public entry point."""

    recommended_dates: list[DateAnalysis]
    high_risk_dates: list[DateAnalysis]
    all_events: list[Event] = Field(default_factory=list)
    providers: list[ProviderReport] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=datetime.now)

    def summary(self) -> dict[str, Any]:
        """Short dict for logging."""
        scored = self.recommended_dates + self.high_risk_dates
        return {
            "recommended": len(self.recommended_dates),
            "high_risk": len(self.high_risk_dates),
            "events": len(self.all_events),
            "avg_score": (
                round(sum(d.conflict_score.score for d in scored) / len(scored), 2)
                if scored else 0.0
            ),
        }
