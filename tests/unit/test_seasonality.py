"""Tests for seasonal demand multipliers."""

from datetime import date

import pytest

from servers.conflict_mcp.cache import InMemoryCache
from servers.conflict_mcp.models import DemandLevel
from servers.conflict_mcp.seasonal_rules import SeasonalRule, build_rule_table, find_coverage_gaps
from servers.conflict_mcp.seasonality import (
    SeasonalityEngine,
    classify_pattern,
    demand_level,
    seasonal_cache_key,
)


@pytest.fixture
def engine() -> SeasonalityEngine:
    return SeasonalityEngine(cache=InMemoryCache())


class TestHelpers:
    """Tests for module helpers."""

    @pytest.mark.parametrize("multiplier,level", [
        (0.4, DemandLevel.LOW),
        (1.0, DemandLevel.MEDIUM),
        (1.49, DemandLevel.MEDIUM),
        (1.5, DemandLevel.HIGH),
    ])
    def test_demand_level(self, multiplier, level):
        assert demand_level(multiplier) == level

    def test_flat_curve_is_year_round(self):
        assert classify_pattern([1.0] * 12) == "year_round"

    def test_cache_key_folds_inputs(self):
        assert seasonal_cache_key("Technology", None, "CZ", 4) == "seasonal:technology:null:cz:4"
        assert seasonal_cache_key("Entertainment", "Theater", "cz", 11) == \
            seasonal_cache_key("entertainment", "THEATER", "CZ", 11)


class TestLookup:
    """Tests for the rule lookup ladder."""

    def test_subcategory_rule(self, engine):
        result = engine.lookup(4, "Technology", "AI/ML")
        assert result.multiplier == 1.6
        assert result.demand_level == DemandLevel.HIGH
        assert result.confidence == 0.95
        assert result.expert_source == "Tech Conference Industry Analysis 2024"
        assert result.coverage_warning is False

    def test_falls_back_to_category_curve(self, engine):
        result = engine.lookup(4, "Technology", "Blockchain")
        assert result.multiplier == 1.47
        assert result.data_source == "derived"
        assert "No Blockchain rule, using Technology category pattern" in result.reasoning

    def test_regional_override_wins(self, engine):
        assert engine.lookup(5, "Entertainment", "Classical").multiplier == 1.8
        assert engine.lookup(7, "Business", "Conferences").multiplier == 0.4

    def test_partial_override_falls_back_for_other_months(self, engine):
        result = engine.lookup(1, "Entertainment", "Classical")
        assert result.multiplier == 0.95
        assert result.data_source == "derived"

    def test_unknown_category_is_neutral_with_warning(self, engine):
        result = engine.lookup(6, "Gardening")
        assert result.multiplier == 1.0
        assert result.confidence == 0.3
        assert result.data_source == "default"
        assert result.coverage_warning is True

    def test_unknown_region_is_neutral(self, engine):
        result = engine.lookup(4, "Technology", "AI/ML", region="DE")
        assert result.coverage_warning is True
        assert "in DE" in result.reasoning[0]

    def test_lookup_is_case_insensitive(self, engine):
        assert engine.lookup(4, "technology", "ai/ml").multiplier == 1.6


class TestGetSeasonalMultiplier:
    """Tests for the cached entry point."""

    @pytest.mark.asyncio
    async def test_cached_per_month(self):
        cache = InMemoryCache()
        engine = SeasonalityEngine(cache=cache)

        first = await engine.get_seasonal_multiplier(date(2026, 10, 3), "Entertainment", "Theater")
        second = await engine.get_seasonal_multiplier(date(2026, 10, 28), "Entertainment", "Theater")

        assert first == second
        assert first.multiplier == 1.3
        assert len(cache) == 1
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_works_without_cache(self):
        engine = SeasonalityEngine()
        result = await engine.get_seasonal_multiplier(date(2026, 7, 1), "Entertainment", "Music")
        assert result.multiplier == 1.6


class TestDemandCurve:
    """Tests for curves and month suggestions."""

    def test_ai_ml_curve(self, engine):
        curve = engine.get_demand_curve("Technology", "AI/ML")
        assert len(curve.months) == 12
        assert curve.months[3].month_name == "April"
        assert curve.pattern == "spring_peak"
        assert curve.optimal_months == [3, 4, 5, 9, 10, 11]
        assert curve.avoid_months == [1, 7, 8, 12]
        assert curve.coverage_warning is False

    @pytest.mark.parametrize("subcategory,pattern", [("Music", "summer_peak"), ("Theater", "fall_peak")])
    def test_patterns(self, engine, subcategory, pattern):
        assert engine.get_demand_curve("Entertainment", subcategory).pattern == pattern

    def test_unknown_category_curve_warns(self, engine):
        curve = engine.get_demand_curve("Gardening")
        assert curve.pattern == "year_round"
        assert curve.coverage_warning is True

    def test_suggest_optimal_months(self, engine):
        months = engine.suggest_optimal_months("Technology", "AI/ML")
        assert [m.month for m in months] == [4, 5, 10]


class TestRuleTable:
    """Tests for rule table construction."""

    def test_extra_rules_override(self):
        extra = [SeasonalRule(
            category="Technology", subcategory="AI/ML", month=4,
            demand_multiplier=2.0, confidence=0.5,
        )]
        engine = SeasonalityEngine(extra_rules=extra)
        assert engine.lookup(4, "Technology", "AI/ML").multiplier == 2.0

    def test_flat_complete_curve_rejected(self):
        extra = [
            SeasonalRule(category="Gardening", subcategory="Shows", month=m,
                         demand_multiplier=1.0, confidence=0.5)
            for m in range(1, 13)
        ]
        with pytest.raises(ValueError, match="Peak does not exceed trough"):
            SeasonalityEngine(extra_rules=extra)

    def test_partial_curves_reported_as_gaps(self):
        gaps = find_coverage_gaps(build_rule_table())
        assert any("(classical)" in g for g in gaps)
        assert not any("(ai/ml)" in g for g in gaps)
