"""Tests for holiday calendars and holiday impact."""

from datetime import date

import pytest

from servers.conflict_mcp.cache import InMemoryCache
from servers.conflict_mcp.holiday_rules import HolidayDefinition, HolidayImpactRule
from servers.conflict_mcp.holidays import (
    HolidayConflictDetector,
    StaticHolidayProvider,
    holiday_cache_key,
)
from servers.conflict_mcp.models import TotalImpact


class UnreachableCalendar:
    """Holiday provider whose backing service is down."""

    def covers(self, country):
        return True

    def get_holidays_for_date(self, day, country, region=None):
        raise RuntimeError("calendar service down")

    def get_holidays_between(self, start, end, country, region=None):
        raise RuntimeError("calendar service down")


@pytest.fixture
def provider() -> StaticHolidayProvider:
    return StaticHolidayProvider()


@pytest.fixture
def detector() -> HolidayConflictDetector:
    return HolidayConflictDetector(cache=InMemoryCache())


class TestStaticHolidayProvider:
    """Tests for the computed calendar."""

    def test_fixed_date_holiday(self, provider):
        holidays = provider.get_holidays_for_date(date(2026, 12, 24), "CZ")
        assert [h.name for h in holidays] == ["Christmas Eve"]
        assert holidays[0].name_native == "Štědrý den"
        assert holidays[0].business_impact == TotalImpact.FULL
        assert holidays[0].venue_closure_expected is True

    @pytest.mark.parametrize("year,good_friday,easter_monday", [
        (2026, date(2026, 4, 3), date(2026, 4, 6)),
        (2027, date(2027, 3, 26), date(2027, 3, 29)),
    ])
    def test_easter_dates(self, provider, year, good_friday, easter_monday):
        by_name = {h.name: h.date for h in provider.holidays_for_year(year, "CZ")}
        assert by_name["Good Friday"] == good_friday
        assert by_name["Easter Monday"] == easter_monday

    def test_good_friday_only_from_2016(self, provider):
        names_2015 = {h.name for h in provider.holidays_for_year(2015, "CZ")}
        names_2016 = {h.name for h in provider.holidays_for_year(2016, "CZ")}
        assert "Good Friday" not in names_2015
        assert "Good Friday" in names_2016

    def test_year_sorted_and_complete(self, provider):
        holidays = provider.holidays_for_year(2026, "cz")
        public = [h for h in holidays if h.holiday_type == "public_holiday"]
        assert len(public) == 13
        assert [h.date for h in holidays] == sorted(h.date for h in holidays)

    def test_regional_events_need_region(self, provider):
        nationwide = provider.get_holidays_for_date(date(2026, 5, 1), "CZ")
        moravia = provider.get_holidays_for_date(date(2026, 5, 1), "CZ", "CZ-JM")
        assert [h.name for h in nationwide] == ["Labour Day"]
        assert {h.name for h in moravia} == {"Labour Day", "Ride of the Kings"}

    def test_range_spans_years(self, provider):
        holidays = provider.get_holidays_between(date(2026, 12, 30), date(2027, 1, 2), "CZ")
        assert [h.name for h in holidays] == ["New Year's Day"]
        assert holidays[0].date == date(2027, 1, 1)

    def test_coverage(self, provider):
        assert provider.covers("CZ")
        assert provider.covers("cz")
        assert not provider.covers("DE")

    def test_custom_definitions(self):
        provider = StaticHolidayProvider([
            HolidayDefinition(name="Festival", holiday_type="cultural_event",
                              country="SK", month=6, day=1, year_end=2025),
        ])
        assert provider.covers("SK")
        assert not provider.covers("CZ")
        assert provider.get_holidays_for_date(date(2025, 6, 1), "SK")
        assert provider.get_holidays_for_date(date(2026, 6, 1), "SK") == []


class TestHolidayImpact:
    """Tests for impact computation."""

    def test_christmas_eve_business_is_full_impact(self, detector):
        impact = detector.compute_impact(date(2026, 12, 24), "Business")

        assert impact.multiplier == 5.0  # 4.0 x 4.5 capped
        assert impact.total_impact == TotalImpact.FULL
        assert {c.holiday.name for c in impact.holidays} == {"Christmas Eve", "Christmas Day"}
        assert impact.impact_window == {"days_before": 5, "days_after": 2}
        assert impact.reasoning[0] == "2 holiday conflict(s) detected"
        assert impact.reasoning[-1] == "High combined holiday impact - consider alternative dates"

    def test_window_before_holiday(self, detector):
        impact = detector.compute_impact(date(2026, 12, 20), "Business")
        assert impact.multiplier == 4.0
        assert [c.holiday.name for c in impact.holidays] == ["Christmas Eve"]

    def test_window_after_holiday(self, detector):
        assert detector.compute_impact(date(2026, 12, 26), "Business").multiplier == 5.0
        assert detector.compute_impact(date(2026, 12, 27), "Business").multiplier == 1.0

    def test_ordinary_weekday_is_neutral(self, detector):
        impact = detector.compute_impact(date(2026, 6, 10), "Business")
        assert impact.multiplier == 1.0
        assert impact.total_impact == TotalImpact.NONE
        assert impact.holidays == []
        assert impact.reasoning == ["No holiday conflicts detected"]
        assert impact.coverage_warning is False

    def test_uncovered_country_warns(self, detector):
        impact = detector.compute_impact(date(2026, 12, 24), "Business", country="DE")
        assert impact.multiplier == 1.0
        assert impact.coverage_warning is True
        assert impact.reasoning == ["No holiday data available for DE"]

    def test_easter_monday(self, detector):
        impact = detector.compute_impact(date(2026, 4, 6), "Business")
        assert impact.multiplier == 2.5
        assert impact.reasoning[-1] == "High combined holiday impact - consider alternative dates"

    def test_subcategory_rule_applies(self, detector):
        impact = detector.compute_impact(date(2026, 12, 20), "Entertainment", "Music")
        assert impact.multiplier == 2.2

    def test_category_rules_apply_without_subcategory(self, detector):
        # Labour Day rules are per subcategory; the closure default applies without one
        assert detector.compute_impact(date(2026, 5, 1), "Business").multiplier == 1.5
        assert detector.compute_impact(date(2026, 5, 1), "Business", "Conferences").multiplier == 2.0

    def test_regional_cultural_event(self, detector):
        prague = detector.compute_impact(date(2026, 5, 13), "Entertainment", "Classical", region="CZ-PR")
        elsewhere = detector.compute_impact(date(2026, 5, 13), "Entertainment", "Classical")

        assert prague.multiplier == 2.5
        assert prague.total_impact == TotalImpact.PARTIAL
        assert elsewhere.multiplier == 1.0

    def test_type_wide_rule_covers_every_public_holiday(self, detector):
        liberation = detector.compute_impact(date(2026, 5, 8), "Sports")
        assert liberation.multiplier == 1.5
        assert liberation.reasoning[-1] == "Moderate holiday impact - expect reduced attendance"
        assert detector.compute_impact(date(2026, 9, 27), "Sports").multiplier == 1.5
        assert detector.compute_impact(date(2026, 9, 24), "Sports").multiplier == 1.0

    @pytest.mark.parametrize("category", ["Music", "Education", "Finance", "Arts & Culture"])
    def test_closure_counts_for_categories_without_rules(self, detector, category):
        christmas = detector.compute_impact(date(2026, 12, 25), category)
        weekday = detector.compute_impact(date(2026, 3, 11), category)

        assert christmas.multiplier == 1.5
        assert christmas.multiplier > weekday.multiplier
        assert christmas.total_impact == TotalImpact.FULL
        assert [c.holiday.name for c in christmas.holidays] == ["Christmas Day"]
        assert christmas.holidays[0].reasoning == "Venue closures expected on this holiday"
        assert christmas.impact_window == {"days_before": 1, "days_after": 1}

    def test_closure_default_only_on_the_day(self, detector):
        assert detector.compute_impact(date(2026, 12, 23), "Healthcare").multiplier == 1.0
        assert detector.compute_impact(date(2026, 12, 24), "Healthcare").multiplier == 1.5

    def test_cultural_events_are_not_closures(self, detector):
        impact = detector.compute_impact(date(2026, 5, 15), "Music")
        assert impact.multiplier == 1.0
        assert impact.holidays == []

    def test_rule_takes_precedence_over_closure_default(self, detector):
        impact = detector.compute_impact(date(2027, 1, 1), "Business")
        assert impact.multiplier == 3.0
        assert [c.reasoning for c in impact.holidays] == ["New Year period has low business activity"]

    def test_low_impact_reasoning(self):
        detector = HolidayConflictDetector(rules=[HolidayImpactRule(
            holiday_type="public_holiday", category="Education", multiplier=1.2,
        )])
        impact = detector.compute_impact(date(2026, 10, 28), "Education")
        assert impact.multiplier == 1.2
        assert impact.reasoning[1] == "Independence Day (public_holiday) - 1.2x impact"
        assert impact.reasoning[-1] == "Low holiday impact expected"


class TestCachedImpact:
    """Tests for the cached entry point."""

    @pytest.mark.asyncio
    async def test_cached_per_date(self):
        cache = InMemoryCache()
        detector = HolidayConflictDetector(cache=cache)

        first = await detector.get_holiday_impact(date(2026, 12, 24), "Business")
        second = await detector.get_holiday_impact(date(2026, 12, 24), "business")

        assert first == second
        assert len(cache) == 1
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_provider_failure_is_neutral_and_not_cached(self):
        cache = InMemoryCache()
        detector = HolidayConflictDetector(provider=UnreachableCalendar(), cache=cache)

        impact = await detector.get_holiday_impact(date(2026, 12, 24), "Business")

        assert impact.multiplier == 1.0
        assert impact.total_impact == TotalImpact.NONE
        assert impact.coverage_warning is True
        assert impact.reasoning == ["Holiday data unavailable: calendar service down"]
        assert len(cache) == 0

    def test_cache_key(self):
        assert holiday_cache_key(date(2026, 12, 24), "Business", None, "CZ", None) == \
            "holiday:2026-12-24:business:null:cz:null"


class TestUpcomingAndWindows:
    """Tests for listing helpers."""

    def test_upcoming_holidays(self, detector):
        upcoming = detector.get_upcoming_holidays(date(2026, 12, 20), date(2026, 12, 31))
        assert [u.holiday.name for u in upcoming] == ["Christmas Eve", "Christmas Day", "St. Stephen's Day"]
        assert all(u.impact_multiplier == 1.5 for u in upcoming)
        assert all((u.days_before, u.days_after) == (1, 1) for u in upcoming)

    def test_upcoming_uncovered_country(self, detector):
        assert detector.get_upcoming_holidays(date(2026, 12, 1), date(2026, 12, 31), "DE") == []

    def test_impact_window_of_most_confident_rule(self, detector):
        assert detector.get_impact_window("public_holiday", "Business") == {"days_before": 5, "days_after": 2}

    def test_default_impact_window(self, detector):
        assert detector.get_impact_window("cultural_event", "Sports") == {"days_before": 1, "days_after": 1}
