"""
Conflict analysis engine: the public entry point.

analyze() aggregates competing events once for the context window,
deduplicates them, classifies every distinct category pair, then scores
each candidate date with that day's active events and its seasonal and
holiday multipliers. Only InvalidQuery escapes; every other failure
becomes a neutral value plus an entry in ``warnings``.
"""

import asyncio
from datetime import date
from typing import Optional

import structlog

from .aggregator import SourceAggregator
from .cache import (
    CATEGORY_CACHE,
    HOLIDAY_CACHE,
    SEASONAL_CACHE,
    CacheStore,
    InMemoryCache,
    JsonFileCache,
)
from .classifier import CategoryConflictClassifier
from .config.settings import EngineConfig, build_config
from .dedup import deduplicate
from .errors import InvalidQuery
from .holidays import HolidayConflictDetector
from .matchers import KeywordCategoryMatcher, OpenAICategoryMatcher
from .models import (
    AnalysisRequest,
    AnalysisResult,
    CategoryConflictWeight,
    DateAnalysis,
    Event,
    HolidayImpact,
    MatchMethod,
    RiskLevel,
    ScoringConfig,
    ScoringPayload,
    ScoringTask,
    SearchQuery,
    TotalImpact,
)
from .resilience import HealthMonitor
from .seasonality import SeasonalityEngine
from .sources import FirecrawlSource, PredictHQSource, TicketmasterSource
from .sources.base import EventSource
from .worker import ScoringWorkerPool

logger = structlog.get_logger()

MEDIUM_RISK_THRESHOLD = 6.0


def risk_level(score: float, high_risk_threshold: float = 14.0) -> RiskLevel:
    if score >= high_risk_threshold:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommendation_for(risk: RiskLevel, competing: int, holiday: HolidayImpact) -> str:
    if risk == RiskLevel.HIGH:
        text = f"High conflict risk: {competing} competing event(s), consider another date"
    elif risk == RiskLevel.MEDIUM:
        text = f"Moderate conflict risk: review the {competing} competing event(s)"
    elif competing:
        text = "Low conflict risk: good date choice"
    else:
        text = "No competing events found: excellent date choice"

    if holiday.total_impact == TotalImpact.FULL:
        names = sorted({c.holiday.name for c in holiday.holidays})
        text += f". Venue closures expected ({', '.join(names)})"
    return text


class ConflictAnalysisEngine:
    """Scores candidate dates against competing events."""

    def __init__(
        self,
        aggregator: SourceAggregator,
        classifier: CategoryConflictClassifier,
        seasonality: SeasonalityEngine,
        holidays: HolidayConflictDetector,
        workers: ScoringWorkerPool,
        config: Optional[EngineConfig] = None,
    ):
        self.aggregator = aggregator
        self.classifier = classifier
        self.seasonality = seasonality
        self.holidays = holidays
        self.workers = workers
        self.config = config or aggregator.config

    @staticmethod
    def validate(request: AnalysisRequest) -> tuple[date, date]:
        """Check the request and return the context window."""
        if not request.city or not request.city.strip():
            raise InvalidQuery("city is required")
        if not request.category or not request.category.strip():
            raise InvalidQuery("category is required")
        if not request.candidate_dates:
            raise InvalidQuery("at least one candidate date is required")
        if request.expected_attendees < 0:
            raise InvalidQuery("expected_attendees must not be negative")

        start = min(request.candidate_dates)
        end = max(request.candidate_dates)
        if request.date_range is not None:
            if request.date_range.start > request.date_range.end:
                raise InvalidQuery(
                    f"date range start {request.date_range.start} is after end {request.date_range.end}"
                )
            start = min(start, request.date_range.start)
            end = max(end, request.date_range.end)

        return start, end

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        date_from, date_to = self.validate(request)

        aggregation = await self.aggregator.aggregate(SearchQuery(
            city=request.city,
            keyword=request.keyword,
            category=request.category,
            date_from=date_from,
            date_to=date_to,
        ))

        dedup_config = self.config.deduplication
        deduped = deduplicate(
            aggregation.events,
            threshold=dedup_config.threshold,
            max_events=dedup_config.max_events or self.config.aggregation.max_events_per_strategy,
            source_priority=dedup_config.source_priority or None,
        )

        warnings: list[str] = []
        for provider in aggregation.unavailable_providers:
            warnings.append(f"Provider {provider} unavailable, its events are missing")
        if deduped.dropped_over_cap:
            warnings.append(f"{deduped.dropped_over_cap} event(s) dropped over the dedup cap")

        weights = await self.classifier.classify_events(
            deduped.events, request.category, request.subcategory
        )
        failed = {
            f"{e.category}/{e.subcategory or '-'}" for e in deduped.events
            if weights[e.id].method == MatchMethod.RULE and weights[e.id].confidence == 0.0
        }
        if failed:
            warnings.append(
                f"Category match unavailable for {', '.join(sorted(failed))}; scored with zero weight"
            )

        outcomes = await asyncio.gather(*(
            self._analyze_date(day, request, deduped.events, weights)
            for day in sorted(set(request.candidate_dates))
        ))
        analyses = []
        for analysis, date_warnings in outcomes:
            analyses.append(analysis)
            warnings.extend(date_warnings)

        threshold = self.config.scoring.high_risk_threshold
        recommended = sorted(
            (a for a in analyses if a.conflict_score.score < threshold),
            key=lambda a: (a.conflict_score.score, a.date),
        )
        high_risk = sorted(
            (a for a in analyses if a.conflict_score.score >= threshold),
            key=lambda a: (-a.conflict_score.score, a.date),
        )

        result = AnalysisResult(
            recommended_dates=recommended,
            high_risk_dates=high_risk,
            all_events=deduped.events,
            providers=aggregation.providers,
            warnings=warnings,
        )
        logger.info("analysis_complete", city=request.city, category=request.category, **result.summary())
        return result

    async def _analyze_date(
        self,
        day: date,
        request: AnalysisRequest,
        events: list[Event],
        weights: dict[str, CategoryConflictWeight],
    ) -> tuple[DateAnalysis, list[str]]:
        warnings: list[str] = []
        competing = [e for e in events if e.is_active_on(day)]

        seasonal, holiday = await asyncio.gather(
            self.seasonality.get_seasonal_multiplier(
                day, request.category, request.subcategory, request.country
            ),
            self.holidays.get_holiday_impact(
                day, request.category, request.subcategory, request.country, request.region
            ),
        )

        payload = ScoringPayload(
            competing_events=competing,
            category_weights={e.id: weights[e.id].weight for e in competing},
            expected_attendees=request.expected_attendees,
            config=ScoringConfig(
                depth=request.depth,
                max_comparisons=self.config.scoring.max_comparisons,
            ),
            seasonal_multiplier=seasonal.multiplier,
            holiday_multiplier=holiday.multiplier,
        )
        scored = await self.workers.submit(ScoringTask(task_id=day.isoformat(), payload=payload))
        if scored.error:
            warnings.append(f"Scoring failed for {day.isoformat()}: {scored.error}")

        if seasonal.coverage_warning:
            warnings.append(f"{day.isoformat()}: {seasonal.reasoning[0]}")
        if holiday.coverage_warning:
            warnings.append(f"{day.isoformat()}: {holiday.reasoning[0]}")

        holiday_warnings = [
            f"{c.holiday.name} on {c.holiday.date.isoformat()}: {c.reasoning or c.holiday.holiday_type}"
            for c in holiday.holidays
        ]

        risk = risk_level(scored.result.score, self.config.scoring.high_risk_threshold)
        return DateAnalysis(
            date=day,
            conflict_score=scored.result,
            risk=risk,
            competing_events=competing,
            seasonal_factors=seasonal,
            holiday_warnings=holiday_warnings,
            holiday_impact=holiday,
            recommendation=recommendation_for(risk, len(competing), holiday),
        ), warnings

    def close(self) -> None:
        self.workers.shutdown()

    async def __aenter__(self) -> "ConflictAnalysisEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


def _cache(config: EngineConfig, namespace: str) -> CacheStore:
    if config.cache.backend == "json" and config.cache.path:
        return JsonFileCache(config.cache.path, namespace)
    return InMemoryCache(namespace)


def build_engine(
    config: Optional[EngineConfig] = None,
    sources: Optional[list[EventSource]] = None,
    health: Optional[HealthMonitor] = None,
) -> ConflictAnalysisEngine:
    """Wire the default components for a configuration."""
    config = config or build_config()

    if sources is None:
        sources = [
            TicketmasterSource(api_key=config.api_key("ticketmaster")),
            PredictHQSource(api_key=config.api_key("predicthq")),
            FirecrawlSource(api_key=config.api_key("firecrawl")),
        ]

    classification = config.classification
    matcher = None
    if classification.ai_enabled:
        if config.api_key("openai"):
            matcher = OpenAICategoryMatcher(
                api_key=config.api_key("openai"),
                model=classification.model,
                timeout=classification.timeout,
            )
        else:
            matcher = KeywordCategoryMatcher()

    return ConflictAnalysisEngine(
        aggregator=SourceAggregator(sources, config, health),
        classifier=CategoryConflictClassifier(matcher, _cache(config, CATEGORY_CACHE)),
        seasonality=SeasonalityEngine(
            cache=_cache(config, SEASONAL_CACHE), default_region=config.default_region
        ),
        holidays=HolidayConflictDetector(cache=_cache(config, HOLIDAY_CACHE)),
        workers=ScoringWorkerPool(max_workers=config.scoring.workers),
        config=config,
    )
