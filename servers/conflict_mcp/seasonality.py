"""
Seasonal demand engine.

Looks up monthly demand multipliers for a category/subcategory/region.
Lookup order: subcategory rule, category-level rule, neutral default
(1.0, low confidence, coverage warning). Results are cached per month,
never per exact date.
"""

import calendar
from datetime import date
from typing import Optional

import structlog

from .cache import CacheStore, get_or_compute
from .models import DemandCurve, DemandLevel, MonthDemand, SeasonalMultiplier, fold_text
from .seasonal_rules import (
    SeasonalRule,
    build_rule_table,
    rule_key,
    validate_seasonal_rules,
)

logger = structlog.get_logger()

DEFAULT_REGION = "CZ"
DEFAULT_CONFIDENCE = 0.3
OPTIMAL_THRESHOLD = 1.3
AVOID_THRESHOLD = 0.7


def demand_level(multiplier: float) -> DemandLevel:
    """Collapse a multiplier into low / medium / high demand."""
    if multiplier >= 1.5:
        return DemandLevel.HIGH
    if multiplier >= 1.0:
        return DemandLevel.MEDIUM
    return DemandLevel.LOW


def seasonal_cache_key(
    category: str, subcategory: Optional[str], region: str, month: int
) -> str:
    return (
        f"seasonal:{fold_text(category)}:{fold_text(subcategory) or 'null'}:"
        f"{fold_text(region)}:{month}"
    )


def classify_pattern(multipliers: list[float]) -> str:
    """Name a curve by the season of its peak month."""
    mean = sum(multipliers) / len(multipliers)
    variance = sum((m - mean) ** 2 for m in multipliers) / len(multipliers)
    if variance < 0.01:
        return "year_round"

    peak_month = multipliers.index(max(multipliers)) + 1
    if 3 <= peak_month <= 5:
        return "spring_peak"
    if 6 <= peak_month <= 8:
        return "summer_peak"
    if 9 <= peak_month <= 11:
        return "fall_peak"
    return "winter_peak"


class SeasonalityEngine:
    """Monthly seasonal multipliers backed by expert rules and a cache."""

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        extra_rules: Optional[list[SeasonalRule]] = None,
        default_region: str = DEFAULT_REGION,
    ):
        self.cache = cache
        self.default_region = default_region
        self.rules = build_rule_table(extra_rules)

        errors = validate_seasonal_rules(self.rules)
        if errors:
            raise ValueError(f"Inconsistent seasonal rules: {'; '.join(errors)}")

    def _find_rule(
        self, category: str, subcategory: Optional[str], region: str, month: int
    ) -> Optional[SeasonalRule]:
        if subcategory:
            rule = self.rules.get(rule_key(category, subcategory, region, month))
            if rule:
                return rule
        return self.rules.get(rule_key(category, None, region, month))

    def lookup(
        self,
        month: int,
        category: str,
        subcategory: Optional[str] = None,
        region: Optional[str] = None,
    ) -> SeasonalMultiplier:
        """Uncached rule lookup for one month."""
        region = region or self.default_region
        rule = self._find_rule(category, subcategory, region, month)

        if rule is None:
            label = f"{category}{f' ({subcategory})' if subcategory else ''}"
            return SeasonalMultiplier(
                multiplier=1.0,
                demand_level=DemandLevel.MEDIUM,
                confidence=DEFAULT_CONFIDENCE,
                reasoning=[f"No seasonal data available for {label} in {region}"],
                data_source="default",
                coverage_warning=True,
            )

        reasoning = [rule.reasoning] if rule.reasoning else []
        if subcategory and not rule.subcategory:
            reasoning.append(f"No {subcategory} rule, using {category} category pattern")

        return SeasonalMultiplier(
            multiplier=rule.demand_multiplier,
            demand_level=demand_level(rule.demand_multiplier),
            confidence=rule.confidence,
            reasoning=reasoning,
            data_source=rule.data_source,
            expert_source=rule.expert_source,
        )

    async def get_seasonal_multiplier(
        self,
        day: date,
        category: str,
        subcategory: Optional[str] = None,
        region: Optional[str] = None,
    ) -> SeasonalMultiplier:
        """Seasonal multiplier for the month containing ``day``."""
        region = region or self.default_region
        key = seasonal_cache_key(category, subcategory, region, day.month)
        return await get_or_compute(
            self.cache,
            key,
            SeasonalMultiplier,
            lambda: self.lookup(day.month, category, subcategory, region),
        )

    def get_demand_curve(
        self,
        category: str,
        subcategory: Optional[str] = None,
        region: Optional[str] = None,
    ) -> DemandCurve:
        """Twelve-month curve with pattern, optimal and avoid months."""
        region = region or self.default_region
        lookups = [self.lookup(m, category, subcategory, region) for m in range(1, 13)]

        months = [
            MonthDemand(
                month=m,
                month_name=calendar.month_name[m],
                demand_multiplier=result.multiplier,
                demand_level=result.demand_level,
                reasoning=result.reasoning[0] if result.reasoning else "",
            )
            for m, result in zip(range(1, 13), lookups)
        ]
        multipliers = [m.demand_multiplier for m in months]

        return DemandCurve(
            category=category,
            subcategory=subcategory,
            region=region,
            months=months,
            pattern=classify_pattern(multipliers),
            optimal_months=sorted(m.month for m in months if m.demand_multiplier >= OPTIMAL_THRESHOLD),
            avoid_months=sorted(m.month for m in months if m.demand_multiplier <= AVOID_THRESHOLD),
            confidence=round(sum(r.confidence for r in lookups) / 12, 2),
            coverage_warning=any(r.coverage_warning for r in lookups),
        )

    def suggest_optimal_months(
        self,
        category: str,
        subcategory: Optional[str] = None,
        region: Optional[str] = None,
        limit: int = 3,
    ) -> list[MonthDemand]:
        """Months with the strongest demand, highest first (ties keep calendar order)."""
        curve = self.get_demand_curve(category, subcategory, region)
        ranked = sorted(curve.months, key=lambda m: -m.demand_multiplier)
        return ranked[:limit]
