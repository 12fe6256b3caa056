"""
Cross-source deduplication of competing events.

Two records describe the same real-world event when:
- they carry the same source + source_id, or
- normalized titles are at least THRESHOLD similar (token sort ratio)
  AND they start on the same calendar day AND in the same city.

Passes repeat until nothing merges, so deduplicating an already
canonical list is a no-op.
"""

from rapidfuzz import fuzz
from typing import Optional
import re

import structlog

from .models import Event, DedupeResult, DuplicateMatch, fold_text

logger = structlog.get_logger()


# Similarity threshold for duplicate detection
THRESHOLD = 0.8

# Inputs beyond this many are dropped before matching
MAX_EVENTS = 1000

# Higher wins when completeness ties
SOURCE_PRIORITY = {
    "ticketmaster": 3,
    "predicthq": 2,
    "firecrawl": 1,
    "scraper": 1,
    "manual": 0,
}

# Fields copied from the secondary record when the primary lacks them
FILLABLE_FIELDS = (
    "description",
    "end_date",
    "venue",
    "subcategory",
    "expected_attendees",
    "url",
    "image_url",
)


def normalize_text(text: Optional[str]) -> str:
    """Normalize a title for comparison."""
    if not text:
        return ""

    text = fold_text(text)

    # Remove common prefixes
    prefixes = ["live:", "live -", "tonight:", "vstupenky:", "event:"]
    for prefix in prefixes:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()

    # Remove common suffixes
    suffixes = ["- live", "live!", "(sold out)", "- vyprodano"]
    for suffix in suffixes:
        if text.endswith(suffix):
            text = text[:-len(suffix)].strip()

    text = re.sub(r'\s+', ' ', text)

    return text


def calculate_title_similarity(e1: Event, e2: Event) -> float:
    """Calculate title similarity (0-1)."""
    t1 = normalize_text(e1.title)
    t2 = normalize_text(e2.title)

    if not t1 or not t2:
        return 0.0

    # token_sort_ratio for word order independence
    return fuzz.token_sort_ratio(t1, t2) / 100


def same_source_record(e1: Event, e2: Event) -> bool:
    """Identical provider tag and provider id always denote one event."""
    return bool(e1.source_id) and e1.source == e2.source and e1.source_id == e2.source_id


def is_duplicate(e1: Event, e2: Event, threshold: float = THRESHOLD) -> tuple[bool, float]:
    """
    Decide whether two events are the same.

    Returns: (is_duplicate, title_similarity)
    """
    if same_source_record(e1, e2):
        return True, 1.0

    if e1.date.date() != e2.date.date():
        return False, 0.0
    if fold_text(e1.city) != fold_text(e2.city):
        return False, 0.0

    similarity = calculate_title_similarity(e1, e2)
    return similarity >= threshold, similarity


def choose_primary_event(
    e1: Event,
    e2: Event,
    source_priority: Optional[dict[str, int]] = None,
) -> tuple[Event, Event]:
    """
    Choose which event to keep as primary.

    Priority:
    1. Non-empty venue
    2. Non-empty image_url
    3. Higher provider priority
    4. First seen

    Returns: (primary_event, secondary_event)
    """
    priority = source_priority or SOURCE_PRIORITY

    def rank(e: Event) -> tuple[int, int, int]:
        return (
            1 if e.venue else 0,
            1 if e.image_url else 0,
            priority.get(e.source, 0),
        )

    if rank(e2) > rank(e1):
        return (e2, e1)
    return (e1, e2)


def merge_events(primary: Event, secondary: Event) -> Event:
    """Fill the primary's missing fields from the secondary and union provenance."""
    updates = {}
    for field in FILLABLE_FIELDS:
        if getattr(primary, field) in (None, "") and getattr(secondary, field) not in (None, ""):
            updates[field] = getattr(secondary, field)

    source_ids = list(primary.provenance)
    for tag in secondary.provenance:
        if tag not in source_ids:
            source_ids.append(tag)
    updates["source_ids"] = tuple(source_ids)

    return primary.model_copy(update=updates)


def _dedupe_pass(
    events: list[Event],
    threshold: float,
    source_priority: Optional[dict[str, int]],
) -> tuple[list[Event], list[DuplicateMatch]]:
    """One greedy pass: each event absorbs every later duplicate."""
    merged_indices: set[int] = set()
    result_events: list[Event] = []
    audit_trail: list[DuplicateMatch] = []

    for i, event in enumerate(events):
        if i in merged_indices:
            continue

        current = event
        for j in range(i + 1, len(events)):
            if j in merged_indices:
                continue
            other = events[j]
            duplicate, similarity = is_duplicate(current, other, threshold)
            if not duplicate:
                continue

            merged_indices.add(j)
            primary, secondary = choose_primary_event(current, other, source_priority)
            current = merge_events(primary, secondary)
            audit_trail.append(DuplicateMatch(
                kept_event_id=primary.id,
                merged_event_id=secondary.id,
                similarity_score=similarity,
                reason=(
                    f"Merged '{secondary.title}' ({secondary.source}) "
                    f"into '{primary.title}' ({primary.source})"
                ),
            ))

        result_events.append(current)

    return result_events, audit_trail


def deduplicate(
    events: list[Event],
    threshold: float = THRESHOLD,
    max_events: int = MAX_EVENTS,
    source_priority: Optional[dict[str, int]] = None,
) -> DedupeResult:
    """
    Deduplicate a list of events using fuzzy title matching.

    Args:
        events: Raw events in insertion order
        threshold: Title similarity threshold (0-1)
        max_events: Inputs beyond this count are dropped (first kept)
        source_priority: Provider priority override

    Returns:
        DedupeResult with deduplicated events and audit trail
    """
    if not events:
        return DedupeResult(events=[], original_count=0, duplicates_removed=0)

    dropped = max(0, len(events) - max_events)
    if dropped:
        logger.warning("dedup_input_capped", max_events=max_events, dropped=dropped)
    working = list(events[:max_events])
    original_count = len(working)

    audit_trail: list[DuplicateMatch] = []
    passes = 0
    while True:
        passes += 1
        working, trail = _dedupe_pass(working, threshold, source_priority)
        audit_trail.extend(trail)
        if not trail:
            break

    logger.debug(
        "dedup_complete",
        original=original_count,
        final=len(working),
        passes=passes,
    )

    return DedupeResult(
        events=working,
        original_count=original_count,
        duplicates_removed=original_count - len(working),
        dropped_over_cap=dropped,
        audit_trail=audit_trail,
    )


def format_audit_summary(result: DedupeResult) -> str:
    """Format audit trail as human-readable summary."""
    if not result.audit_trail:
        return "No duplicates found."

    lines = [
        "Deduplication Summary:",
        f"  Original events: {result.original_count}",
        f"  Duplicates removed: {result.duplicates_removed}",
        f"  Final events: {len(result.events)}",
        f"  Dedup rate: {result.dedup_rate:.1f}%",
    ]
    if result.dropped_over_cap:
        lines.append(f"  Dropped over cap: {result.dropped_over_cap}")
    lines += ["", "Merged events:"]

    for match in result.audit_trail:
        lines.append(
            f"  - {match.reason} "
            f"(similarity: {match.similarity_score:.0%})"
        )

    return "\n".join(lines)
