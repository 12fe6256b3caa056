"""
Holiday impact detection.

A holiday affects a planned date when the date falls inside the impact
window of a rule for the planned category:

    holiday - days_before <= date <= holiday + days_after

A holiday with expected venue closures on the date itself always
counts; without a rule for it the default multiplier applies.

The multiplier is the product of every matching entry, capped at 5.0.
Countries the provider has no calendar for, and provider failures, get
a neutral multiplier and a coverage warning.
"""

from datetime import date, timedelta
from typing import Optional, Protocol

import structlog
from dateutil.easter import easter

from .cache import CacheStore, get_or_compute
from .holiday_rules import (
    CZECH_CULTURAL_EVENTS,
    CZECH_HOLIDAYS,
    DEFAULT_IMPACT_WINDOW,
    DEFAULT_UPCOMING_MULTIPLIER,
    HOLIDAY_IMPACT_RULES,
    MAX_HOLIDAY_MULTIPLIER,
    HolidayDefinition,
    HolidayImpactRule,
)
from .models import HolidayConflict, HolidayImpact, HolidayInfo, TotalImpact, fold_text

logger = structlog.get_logger()


class HolidayProvider(Protocol):
    def covers(self, country: str) -> bool: ...

    def get_holidays_for_date(
        self, day: date, country: str, region: Optional[str] = None
    ) -> list[HolidayInfo]: ...

    def get_holidays_between(
        self, start: date, end: date, country: str, region: Optional[str] = None
    ) -> list[HolidayInfo]: ...


def holiday_cache_key(
    day: date,
    category: str,
    subcategory: Optional[str],
    country: str,
    region: Optional[str],
) -> str:
    return (
        f"holiday:{day.isoformat()}:{fold_text(category)}:{fold_text(subcategory) or 'null'}:"
        f"{fold_text(country)}:{fold_text(region) or 'null'}"
    )


class StaticHolidayProvider:
    """Holiday calendar computed from recurring definitions."""

    def __init__(self, definitions: Optional[list[HolidayDefinition]] = None):
        self.definitions = (
            definitions if definitions is not None else CZECH_HOLIDAYS + CZECH_CULTURAL_EVENTS
        )
        self._countries = {fold_text(d.country) for d in self.definitions}
        self._years: dict[tuple[int, str], list[HolidayInfo]] = {}

    def covers(self, country: str) -> bool:
        return fold_text(country) in self._countries

    def _resolve(self, definition: HolidayDefinition, year: int) -> Optional[date]:
        if year < definition.year_start:
            return None
        if definition.year_end is not None and year > definition.year_end:
            return None
        if definition.easter_offset is not None:
            return easter(year) + timedelta(days=definition.easter_offset)
        if definition.month and definition.day:
            return date(year, definition.month, definition.day)
        return None

    def holidays_for_year(self, year: int, country: str) -> list[HolidayInfo]:
        """All observances of a country in one year, sorted by date."""
        key = (year, fold_text(country))
        if key not in self._years:
            holidays = []
            for definition in self.definitions:
                if fold_text(definition.country) != key[1]:
                    continue
                day = self._resolve(definition, year)
                if day is None:
                    continue
                holidays.append(HolidayInfo(
                    name=definition.name,
                    name_native=definition.name_native,
                    holiday_type=definition.holiday_type,
                    date=day,
                    country=definition.country,
                    region=definition.region,
                    business_impact=definition.business_impact,
                    venue_closure_expected=definition.venue_closure_expected,
                ))
            self._years[key] = sorted(holidays, key=lambda h: h.date)
        return self._years[key]

    def get_holidays_between(
        self, start: date, end: date, country: str, region: Optional[str] = None
    ) -> list[HolidayInfo]:
        """Nationwide observances plus those of ``region``, inclusive range."""
        wanted_region = fold_text(region)
        result = []
        for year in range(start.year, end.year + 1):
            for holiday in self.holidays_for_year(year, country):
                if not start <= holiday.date <= end:
                    continue
                if holiday.region and fold_text(holiday.region) != wanted_region:
                    continue
                result.append(holiday)
        return result

    def get_holidays_for_date(
        self, day: date, country: str, region: Optional[str] = None
    ) -> list[HolidayInfo]:
        return self.get_holidays_between(day, day, country, region)


class HolidayConflictDetector:
    """Holiday impact multipliers for a planned date and category."""

    def __init__(
        self,
        provider: Optional[HolidayProvider] = None,
        cache: Optional[CacheStore] = None,
        rules: Optional[list[HolidayImpactRule]] = None,
    ):
        self.provider = provider or StaticHolidayProvider()
        self.cache = cache
        self.rules = rules if rules is not None else list(HOLIDAY_IMPACT_RULES)

    def rules_for(
        self,
        category: str,
        subcategory: Optional[str],
        country: str,
        region: Optional[str] = None,
    ) -> list[HolidayImpactRule]:
        """
        Rules for a category, most confident first.

        Without a subcategory only category-wide rules apply. Regional
        rules apply only when the request names that region.
        """
        wanted = fold_text(category)
        wanted_sub = fold_text(subcategory)
        places = {fold_text(country), fold_text(region)} - {""}

        matched = [
            rule for rule in self.rules
            if fold_text(rule.category) == wanted
            and (rule.subcategory is None or fold_text(rule.subcategory) == wanted_sub)
            and fold_text(rule.region) in places
        ]
        return sorted(matched, key=lambda r: -r.confidence)

    @staticmethod
    def _applies(rule: HolidayImpactRule, holiday: HolidayInfo) -> bool:
        if rule.holiday_type != holiday.holiday_type:
            return False
        return not rule.holidays or holiday.name in rule.holidays

    def detect_conflicts(
        self,
        day: date,
        category: str,
        subcategory: Optional[str],
        country: str,
        region: Optional[str] = None,
    ) -> list[HolidayConflict]:
        """Holidays whose rule window covers ``day``, plus closures on ``day``."""
        rules = self.rules_for(category, subcategory, country, region)
        reach_before = max((r.days_before for r in rules), default=0)
        reach_after = max((r.days_after for r in rules), default=0)
        # A holiday h covers day when day - after <= h <= day + before
        holidays = self.provider.get_holidays_between(
            day - timedelta(days=reach_after),
            day + timedelta(days=reach_before),
            country,
            region,
        )

        conflicts = []
        for holiday in holidays:
            offset = (holiday.date - day).days
            for rule in rules:
                if not self._applies(rule, holiday):
                    continue
                if -rule.days_after <= offset <= rule.days_before:
                    conflicts.append(HolidayConflict(
                        holiday=holiday,
                        impact_multiplier=rule.multiplier,
                        days_before=rule.days_before,
                        days_after=rule.days_after,
                        reasoning=rule.reasoning,
                    ))

        covered = {c.holiday.name for c in conflicts}
        for holiday in holidays:
            if holiday.date != day or not holiday.venue_closure_expected:
                continue
            if holiday.name in covered:
                continue
            conflicts.append(HolidayConflict(
                holiday=holiday,
                impact_multiplier=DEFAULT_UPCOMING_MULTIPLIER,
                days_before=DEFAULT_IMPACT_WINDOW["days_before"],
                days_after=DEFAULT_IMPACT_WINDOW["days_after"],
                reasoning="Venue closures expected on this holiday",
            ))
        return conflicts

    def compute_impact(
        self,
        day: date,
        category: str,
        subcategory: Optional[str] = None,
        country: str = "CZ",
        region: Optional[str] = None,
    ) -> HolidayImpact:
        """Uncached holiday impact for one date."""
        if not self.provider.covers(country):
            return HolidayImpact(
                reasoning=[f"No holiday data available for {country}"],
                coverage_warning=True,
            )

        conflicts = self.detect_conflicts(day, category, subcategory, country, region)
        if not conflicts:
            return HolidayImpact(reasoning=["No holiday conflicts detected"])

        multiplier = 1.0
        for conflict in conflicts:
            multiplier *= conflict.impact_multiplier
        multiplier = round(min(multiplier, MAX_HOLIDAY_MULTIPLIER), 3)

        if any(c.holiday.venue_closure_expected for c in conflicts):
            total_impact = TotalImpact.FULL
        else:
            total_impact = TotalImpact.PARTIAL

        return HolidayImpact(
            multiplier=multiplier,
            total_impact=total_impact,
            holidays=conflicts,
            reasoning=self._reasoning(conflicts, multiplier),
            impact_window={
                "days_before": max(c.days_before for c in conflicts),
                "days_after": max(c.days_after for c in conflicts),
            },
        )

    def _reasoning(self, conflicts: list[HolidayConflict], multiplier: float) -> list[str]:
        lines = [f"{len(conflicts)} holiday conflict(s) detected"]
        for conflict in conflicts:
            lines.append(
                f"{conflict.holiday.name} ({conflict.holiday.holiday_type}) - "
                f"{conflict.impact_multiplier}x impact"
            )
        if multiplier >= 2.0:
            lines.append("High combined holiday impact - consider alternative dates")
        elif multiplier >= 1.5:
            lines.append("Moderate holiday impact - expect reduced attendance")
        else:
            lines.append("Low holiday impact expected")
        return lines

    async def get_holiday_impact(
        self,
        day: date,
        category: str,
        subcategory: Optional[str] = None,
        country: str = "CZ",
        region: Optional[str] = None,
    ) -> HolidayImpact:
        """
        Cached holiday impact for one date.

        A failing holiday provider yields a neutral, uncached impact with
        a coverage warning.
        """
        key = holiday_cache_key(day, category, subcategory, country, region)
        try:
            impact = await get_or_compute(
                self.cache,
                key,
                HolidayImpact,
                lambda: self.compute_impact(day, category, subcategory, country, region),
            )
        except Exception as e:
            logger.warning(
                "holiday_data_unavailable",
                date=day.isoformat(),
                country=country,
                error_type=type(e).__name__,
                error=str(e),
            )
            return HolidayImpact(
                reasoning=[f"Holiday data unavailable: {e}"],
                coverage_warning=True,
            )
        if impact.holidays:
            logger.debug(
                "holiday_conflicts_detected",
                date=day.isoformat(),
                category=category,
                count=len(impact.holidays),
                multiplier=impact.multiplier,
            )
        return impact

    def get_upcoming_holidays(
        self,
        start: date,
        end: date,
        country: str = "CZ",
        region: Optional[str] = None,
    ) -> list[HolidayConflict]:
        """Every observance in the range with the default window and multiplier."""
        if not self.provider.covers(country):
            return []
        return [
            HolidayConflict(
                holiday=holiday,
                impact_multiplier=DEFAULT_UPCOMING_MULTIPLIER,
                days_before=DEFAULT_IMPACT_WINDOW["days_before"],
                days_after=DEFAULT_IMPACT_WINDOW["days_after"],
            )
            for holiday in self.provider.get_holidays_between(start, end, country, region)
        ]

    def get_impact_window(
        self,
        holiday_type: str,
        category: str,
        subcategory: Optional[str] = None,
        country: str = "CZ",
        region: Optional[str] = None,
    ) -> dict[str, int]:
        """Window of the most confident rule for a holiday type."""
        for rule in self.rules_for(category, subcategory, country, region):
            if rule.holiday_type == holiday_type:
                return {"days_before": rule.days_before, "days_after": rule.days_after}
        return dict(DEFAULT_IMPACT_WINDOW)
