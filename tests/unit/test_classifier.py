"""Tests for the taxonomy and category conflict classifier."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from servers.conflict_mcp.cache import InMemoryCache
from servers.conflict_mcp.classifier import CategoryConflictClassifier, category_pair_key
from servers.conflict_mcp.errors import CategoryMatchParseError, ClassificationFailure
from servers.conflict_mcp.matchers import KeywordCategoryMatcher, OpenAICategoryMatcher
from servers.conflict_mcp.models import CategoryMatch, MatchMethod
from servers.conflict_mcp.taxonomy import (
    canonical_category,
    map_provider_category,
    provider_search_terms,
    relationship_level,
)


class TestTaxonomy:
    """Tests for the static relationship table."""

    def test_canonical_spelling(self):
        assert canonical_category("arts & culture") == "Arts & Culture"
        assert canonical_category("Divadlo") is None

    @pytest.mark.parametrize("competing,planned,level", [
        ("Music", "Entertainment", "high"),
        ("Technology", "Business", "high"),
        ("Sports", "Entertainment", "medium"),
        ("Education", "Technology", "medium"),
        ("Business", "Sports", "low"),
        ("Healthcare", "Entertainment", None),
        ("Divadlo", "Entertainment", None),
    ])
    def test_relationship_level(self, competing, planned, level):
        assert relationship_level(competing, planned) == level

    def test_provider_category_mapping(self):
        assert map_provider_category("ticketmaster", "Arts & Theatre") == "Entertainment"
        assert map_provider_category("predicthq", "conferences") == "Business"
        assert map_provider_category("predicthq", "Sports") == "Sports"
        assert map_provider_category("ticketmaster", None) == "Other"
        assert map_provider_category("firecrawl", "Divadlo") == "Divadlo"

    def test_provider_search_terms(self):
        assert provider_search_terms("predicthq", "Music") == ["concerts", "festivals"]
        assert provider_search_terms("ticketmaster", "Divadlo") == ["Divadlo"]
        assert provider_search_terms("ticketmaster", None) == []


class TestPairKey:
    """Tests for the cache key."""

    def test_key_is_order_independent(self):
        assert category_pair_key("Divadlo", None, "Entertainment", "Theater") == \
            category_pair_key("entertainment", "theater", "DIVADLO", None)

    def test_subcategory_changes_key(self):
        assert category_pair_key("Hudba", "Jazz", "Entertainment", None) != \
            category_pair_key("Hudba", None, "Entertainment", None)


class TestClassifier:
    """Tests for the resolution ladder."""

    @pytest.fixture
    def matcher(self) -> AsyncMock:
        matcher = AsyncMock()
        matcher.match_category.return_value = CategoryMatch(
            is_match=True, confidence=0.9, reasoning="Divadlo is theater", language_detected="cs"
        )
        return matcher

    @pytest.mark.asyncio
    async def test_exact_subcategory_match(self, matcher):
        cache = InMemoryCache()
        classifier = CategoryConflictClassifier(matcher, cache)

        weight = await classifier.classify("Entertainment", "Theater", "entertainment", "THEATER")

        assert weight.weight == 15.0
        assert weight.method == MatchMethod.EXACT
        assert weight.confidence == 1.0
        matcher.match_category.assert_not_called()
        assert len(cache) == 0
        assert cache.misses == 0

    @pytest.mark.asyncio
    async def test_same_category_only(self, matcher):
        classifier = CategoryConflictClassifier(matcher)
        weight = await classifier.classify("Entertainment", "Music", "Entertainment", "Theater")
        assert weight.weight == 8.0
        assert weight.method == MatchMethod.EXACT

    @pytest.mark.asyncio
    async def test_same_category_both_without_subcategory(self, matcher):
        classifier = CategoryConflictClassifier(matcher)
        weight = await classifier.classify("Sports", None, "sports", None)
        assert weight.weight == 15.0
        assert weight.method == MatchMethod.EXACT
        assert weight.reasoning == ["Same category and subcategory: sports/-"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("competing_sub,planned_sub", [("Football", None), (None, "Football")])
    async def test_same_category_one_side_without_subcategory(self, matcher, competing_sub, planned_sub):
        classifier = CategoryConflictClassifier(matcher)
        weight = await classifier.classify("Sports", competing_sub, "Sports", planned_sub)
        assert weight.weight == 8.0
        assert weight.method == MatchMethod.EXACT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("competing,planned,expected", [
        ("Music", "Entertainment", 8.0),
        ("Sports", "Entertainment", 4.0),
        ("Business", "Sports", 1.0),
        ("Healthcare", "Entertainment", 0.0),
    ])
    async def test_rule_table_weights(self, matcher, competing, planned, expected):
        classifier = CategoryConflictClassifier(matcher)
        weight = await classifier.classify(competing, None, planned, None)
        assert weight.weight == expected
        assert weight.method == MatchMethod.RULE
        matcher.match_category.assert_not_called()

    @pytest.mark.asyncio
    async def test_ai_match_for_foreign_category(self, matcher):
        cache = InMemoryCache()
        classifier = CategoryConflictClassifier(matcher, cache)

        weight = await classifier.classify(
            "Divadlo", None, "Entertainment", "Theater", title="Hamlet", description="Činohra"
        )

        assert weight.method == MatchMethod.AI
        assert weight.weight == 7.2
        assert weight.confidence == 0.9
        assert "Language detected: cs" in weight.reasoning
        matcher.match_category.assert_awaited_once_with(
            "Divadlo", "Entertainment / Theater", title="Hamlet", description="Činohra"
        )
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_ai_result_served_from_cache(self, matcher):
        cache = InMemoryCache()
        classifier = CategoryConflictClassifier(matcher, cache)

        first = await classifier.classify("Divadlo", None, "Entertainment", None)
        second = await classifier.classify("Divadlo", None, "Entertainment", None)

        assert first == second
        assert matcher.match_category.await_count == 1
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_ai_no_match_weighs_zero(self, matcher):
        matcher.match_category.return_value = CategoryMatch(is_match=False, confidence=0.8)
        classifier = CategoryConflictClassifier(matcher)
        weight = await classifier.classify("Sportovni hry", None, "Business", None)
        assert weight.weight == 0.0
        assert weight.method == MatchMethod.AI

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ClassificationFailure("HTTP 500"),
        CategoryMatchParseError("Response is not JSON"),
    ])
    async def test_ai_failure_degrades_and_is_not_cached(self, matcher, error):
        matcher.match_category.side_effect = error
        cache = InMemoryCache()
        classifier = CategoryConflictClassifier(matcher, cache)

        weight = await classifier.classify("Divadlo", None, "Entertainment", None)

        assert weight.weight == 0.0
        assert weight.confidence == 0.0
        assert weight.method == MatchMethod.RULE
        assert weight.reasoning[0].startswith("AI category match failed")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_unexpected_matcher_error_degrades(self, matcher):
        matcher.match_category.side_effect = RuntimeError("socket closed")
        classifier = CategoryConflictClassifier(matcher, InMemoryCache())

        weight = await classifier.classify("Gastronomie", None, "Entertainment", "Theater")

        assert weight.weight == 0.0
        assert weight.method == MatchMethod.RULE
        assert weight.reasoning == ["AI category match failed: RuntimeError: socket closed"]

    @pytest.mark.asyncio
    async def test_non_json_completion_degrades(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        gateway_page = httpx.Response(200, text="<html>gateway</html>", request=request)
        cache = InMemoryCache()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.post = AsyncMock(return_value=gateway_page)

            classifier = CategoryConflictClassifier(OpenAICategoryMatcher(api_key="test-key"), cache)
            weight = await classifier.classify("Gastronomie", None, "Entertainment", "Theater")

        assert weight.weight == 0.0
        assert weight.confidence == 0.0
        assert weight.reasoning == ["AI category match failed: Completion response is not JSON"]
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_no_matcher_degrades(self):
        classifier = CategoryConflictClassifier(None)
        weight = await classifier.classify("Divadlo", None, "Entertainment", None)
        assert weight.weight == 0.0
        assert "AI matcher disabled" in weight.reasoning[0]

    @pytest.mark.asyncio
    async def test_keyword_matcher_fallback(self):
        classifier = CategoryConflictClassifier(KeywordCategoryMatcher())
        weight = await classifier.classify("Divadlo", None, "Entertainment", None)
        assert weight.method == MatchMethod.AI
        assert weight.weight == 5.6


class TestClassifyEvents:
    """Tests for batch classification."""

    @pytest.mark.asyncio
    async def test_one_lookup_per_distinct_pair(self, make_event):
        matcher = AsyncMock()
        matcher.match_category.return_value = CategoryMatch(is_match=True, confidence=0.5)
        classifier = CategoryConflictClassifier(matcher, InMemoryCache())
        events = [
            make_event(category="Divadlo"),
            make_event(category="DIVADLO"),
            make_event(category="Technology", subcategory="AI"),
        ]

        weights = await classifier.classify_events(events, "Entertainment")

        assert set(weights) == {e.id for e in events}
        assert weights[events[0].id] == weights[events[1].id]
        assert weights[events[2].id].weight == 1.0
        assert matcher.match_category.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_events(self):
        classifier = CategoryConflictClassifier(None)
        assert await classifier.classify_events([], "Business") == {}
