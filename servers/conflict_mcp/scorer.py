"""
Conflict scorer.

Pure function of its payload: no I/O, no shared state, so it can run
in a worker thread. Per-event subtotals use a 0-20 scale and the
aggregate is capped at 20 after all multipliers.
"""

import time

from .models import (
    AnalysisDepth,
    ConflictFactors,
    ConflictScore,
    Event,
    EventScore,
    ScoringPayload,
)

MAX_SCORE = 20.0

# Significance (ranking only)
BASE_SIGNIFICANCE = 10
VENUE_SIGNIFICANCE = 20
IMAGE_SIGNIFICANCE = 15
DESCRIPTION_SIGNIFICANCE = 10
MAX_ATTENDANCE_SIGNIFICANCE = 25

# Per-event subtotal
BASE_EVENT_SCORE = 3
VENUE_BONUS = 4
IMAGE_BONUS = 2
DESCRIPTION_BONUS = 1
DEEP_ATTENDANCE_BONUS = 2
TRUNCATED_EVENT_SCORE = 2

LONG_DESCRIPTION = 50


def duration_multiplier(days: int) -> float:
    """1.0 / 1.3 / 1.6 for 1-3 days, then +0.3 per day up to 2.0."""
    if days <= 1:
        return 1.0
    if days == 2:
        return 1.3
    if days == 3:
        return 1.6
    return min(2.0, round(1 + (days - 1) * 0.3, 2))


def attendance_multiplier(expected_attendees: int) -> float:
    if expected_attendees > 1000:
        return 1.1
    if expected_attendees > 500:
        return 1.05
    return 1.0


def _has_long_description(event: Event) -> bool:
    return bool(event.description) and len(event.description) > LONG_DESCRIPTION


def event_significance(event: Event) -> float:
    """Rank used to pick which events get full scoring."""
    score = BASE_SIGNIFICANCE
    if event.venue:
        score += VENUE_SIGNIFICANCE
    if event.image_url:
        score += IMAGE_SIGNIFICANCE
    if _has_long_description(event):
        score += DESCRIPTION_SIGNIFICANCE
    if event.expected_attendees and event.expected_attendees > 100:
        score += min(event.expected_attendees / 10, MAX_ATTENDANCE_SIGNIFICANCE)
    return score


def score_event(event: Event, category_weight: float, depth: AnalysisDepth) -> float:
    """Subtotal of one competing event before its duration multiplier."""
    score = BASE_EVENT_SCORE + category_weight
    if event.venue:
        score += VENUE_BONUS
    if event.image_url:
        score += IMAGE_BONUS
    if _has_long_description(event):
        score += DESCRIPTION_BONUS
    if depth == AnalysisDepth.DEEP and (event.expected_attendees or 0) > 500:
        score += DEEP_ATTENDANCE_BONUS
    return score


def calculate_conflict_score(payload: ScoringPayload) -> ConflictScore:
    """Aggregate conflict score for one candidate date."""
    started = time.perf_counter()
    events = payload.competing_events
    config = payload.config

    if not events:
        return ConflictScore(
            score=0.0,
            factors=ConflictFactors(
                seasonal_multiplier=payload.seasonal_multiplier,
                holiday_multiplier=payload.holiday_multiplier,
            ),
            processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
        )

    # sorted() is stable, equal significance keeps input order
    ranked = sorted(events, key=event_significance, reverse=True)
    limit = max(0, config.max_comparisons)
    full, truncated = ranked[:limit], ranked[limit:]

    total = 0.0
    event_scores = []
    for event in full:
        weight = payload.category_weights.get(event.id, 0.0)
        multiplier = duration_multiplier(event.duration_days)
        subtotal = score_event(event, weight, config.depth) * multiplier
        total += subtotal
        event_scores.append(EventScore(
            event_id=event.id,
            title=event.title,
            significance=event_significance(event),
            category_weight=weight,
            duration_multiplier=multiplier,
            subtotal=round(subtotal, 3),
        ))

    total += TRUNCATED_EVENT_SCORE * len(truncated)

    attendance = attendance_multiplier(payload.expected_attendees)
    total *= attendance
    total *= payload.seasonal_multiplier
    total *= payload.holiday_multiplier

    score = max(0.0, min(MAX_SCORE, total))

    factors = ConflictFactors(
        category_weight=max((s.category_weight for s in event_scores), default=0.0),
        duration_multiplier=max((s.duration_multiplier for s in event_scores), default=1.0),
        attendance_multiplier=attendance,
        seasonal_multiplier=payload.seasonal_multiplier,
        holiday_multiplier=payload.holiday_multiplier,
    )

    return ConflictScore(
        score=round(score, 2),
        factors=factors,
        events_considered=len(full),
        events_truncated=len(truncated),
        event_scores=event_scores,
        processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
    )
