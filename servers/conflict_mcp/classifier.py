"""
Category/subcategory conflict classifier.

Resolution order, first hit wins:
1. Same category and same subcategory, both missing included -> 15 (exact)
2. Same category -> 8 (exact)
3. Static relationship table -> high 8 / medium 4 / low 1 (rule);
   two known taxonomy categories without an entry -> 0 (rule)
4. Category outside the taxonomy -> AI semantic match (ai), cached by
   the unordered (category+subcategory) pair

AI failures never fail classification: they yield weight 0 with
method "rule" and a reasoning entry describing the failure.
"""

import asyncio
from typing import Optional

import structlog

from .cache import CacheStore, get_or_compute
from .errors import ClassificationFailure
from .matchers import CategoryMatcher
from .models import CategoryConflictWeight, Event, MatchMethod, fold_text
from .taxonomy import (
    CATEGORY_MATCH_WEIGHT,
    EXACT_MATCH_WEIGHT,
    LEVEL_WEIGHTS,
    NO_RELATIONSHIP_WEIGHT,
    is_known_category,
    relationship_level,
)

logger = structlog.get_logger()

# Scale applied to AI confidence when the matcher reports a match
AI_MATCH_SCALE = 8.0


def category_pair_key(
    category_a: str,
    subcategory_a: Optional[str],
    category_b: str,
    subcategory_b: Optional[str],
) -> str:
    """Order-independent cache key for two category+subcategory labels."""
    left = f"{fold_text(category_a)}+{fold_text(subcategory_a)}"
    right = f"{fold_text(category_b)}+{fold_text(subcategory_b)}"
    first, second = sorted((left, right))
    return f"category_match:{first}|{second}"


class CategoryConflictClassifier:
    """Produces a CategoryConflictWeight for a competing event vs the planned event."""

    def __init__(
        self,
        matcher: Optional[CategoryMatcher] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.matcher = matcher
        self.cache = cache

    async def classify(
        self,
        competing_category: str,
        competing_subcategory: Optional[str],
        planned_category: str,
        planned_subcategory: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategoryConflictWeight:
        competing = fold_text(competing_category)
        planned = fold_text(planned_category)

        if competing and competing == planned:
            # Two missing subcategories are the same subcategory
            if fold_text(competing_subcategory) == fold_text(planned_subcategory):
                return CategoryConflictWeight(
                    weight=EXACT_MATCH_WEIGHT,
                    confidence=1.0,
                    method=MatchMethod.EXACT,
                    reasoning=[
                        f"Same category and subcategory: {planned_category}/{planned_subcategory or '-'}"
                    ],
                )
            return CategoryConflictWeight(
                weight=CATEGORY_MATCH_WEIGHT,
                confidence=1.0,
                method=MatchMethod.EXACT,
                reasoning=[f"Same category: {planned_category}"],
            )

        level = relationship_level(competing_category, planned_category)
        if level:
            return CategoryConflictWeight(
                weight=LEVEL_WEIGHTS[level],
                confidence=0.9,
                method=MatchMethod.RULE,
                reasoning=[f"{level.capitalize()} audience overlap: {competing_category} vs {planned_category}"],
            )

        if is_known_category(competing_category) and is_known_category(planned_category):
            return CategoryConflictWeight(
                weight=NO_RELATIONSHIP_WEIGHT,
                confidence=0.9,
                method=MatchMethod.RULE,
                reasoning=[f"No audience overlap between {competing_category} and {planned_category}"],
            )

        key = category_pair_key(
            competing_category, competing_subcategory, planned_category, planned_subcategory
        )
        return await get_or_compute(
            self.cache,
            key,
            CategoryConflictWeight,
            lambda: self._ai_weight(
                competing_category, competing_subcategory,
                planned_category, planned_subcategory,
                title, description,
            ),
            store_if=lambda w: w.method == MatchMethod.AI,
        )

    async def _ai_weight(
        self,
        competing_category: str,
        competing_subcategory: Optional[str],
        planned_category: str,
        planned_subcategory: Optional[str],
        title: Optional[str],
        description: Optional[str],
    ) -> CategoryConflictWeight:
        if self.matcher is None:
            return self._failure_weight(competing_category, planned_category, "AI matcher disabled")

        event_label = " / ".join(p for p in (competing_category, competing_subcategory) if p)
        target_label = " / ".join(p for p in (planned_category, planned_subcategory) if p)

        try:
            match = await self.matcher.match_category(
                event_label, target_label, title=title, description=description
            )
        except ClassificationFailure as e:
            return self._failure_weight(competing_category, planned_category, str(e))
        except Exception as e:
            return self._failure_weight(
                competing_category, planned_category, f"{type(e).__name__}: {e}"
            )

        weight = round(AI_MATCH_SCALE * match.confidence, 2) if match.is_match else 0.0
        reasoning = [f"AI match: {match.reasoning}" if match.reasoning else "AI match"]
        if match.language_detected:
            reasoning.append(f"Language detected: {match.language_detected}")

        return CategoryConflictWeight(
            weight=weight,
            confidence=match.confidence,
            method=MatchMethod.AI,
            reasoning=reasoning,
        )

    def _failure_weight(
        self, competing_category: str, planned_category: str, error: str
    ) -> CategoryConflictWeight:
        logger.warning(
            "category_match_failed",
            competing_category=competing_category,
            planned_category=planned_category,
            error=error,
        )
        return CategoryConflictWeight(
            weight=0.0,
            confidence=0.0,
            method=MatchMethod.RULE,
            reasoning=[f"AI category match failed: {error}"],
        )

    async def classify_events(
        self,
        events: list[Event],
        planned_category: str,
        planned_subcategory: Optional[str] = None,
    ) -> dict[str, CategoryConflictWeight]:
        """Classify every event, keyed by event id. One lookup per distinct pair."""
        pending: dict[tuple[str, str], asyncio.Task] = {}
        by_event: dict[str, tuple[str, str]] = {}

        for event in events:
            pair = (fold_text(event.category), fold_text(event.subcategory))
            by_event[event.id] = pair
            if pair not in pending:
                pending[pair] = asyncio.ensure_future(self.classify(
                    event.category,
                    event.subcategory,
                    planned_category,
                    planned_subcategory,
                    title=event.title,
                    description=event.description,
                ))

        if pending:
            await asyncio.gather(*pending.values())

        return {event_id: pending[pair].result() for event_id, pair in by_event.items()}
