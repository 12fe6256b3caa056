"""
Event category taxonomy and static cross-category conflict table.

The relationship table is read as RELATIONSHIPS[level][planned_category]
-> competing categories sharing part of the planned event's audience.
"""

from typing import Optional

from .models import fold_text


KNOWN_CATEGORIES = (
    "Technology",
    "Business",
    "Marketing",
    "Healthcare",
    "Education",
    "Finance",
    "Entertainment",
    "Music",
    "Sports",
    "Arts & Culture",
    "Other",
)

# Conflict weights on the 0-20 per-event scale
EXACT_MATCH_WEIGHT = 15.0
CATEGORY_MATCH_WEIGHT = 8.0
LEVEL_WEIGHTS = {
    "high": 8.0,
    "medium": 4.0,
    "low": 1.0,
}
NO_RELATIONSHIP_WEIGHT = 0.0

RELATIONSHIPS: dict[str, dict[str, list[str]]] = {
    # Same audience, direct competition
    "high": {
        "Entertainment": ["Entertainment", "Music", "Arts & Culture"],
        "Music": ["Entertainment", "Music"],
        "Sports": ["Sports"],
        "Business": ["Business", "Technology", "Finance"],
        "Technology": ["Business", "Technology"],
        "Finance": ["Business", "Finance"],
    },
    # Some audience overlap
    "medium": {
        "Entertainment": ["Sports"],
        "Arts & Culture": ["Entertainment", "Music"],
        "Sports": ["Entertainment"],
        "Business": ["Education"],
        "Technology": ["Education", "Business"],
        "Education": ["Business", "Technology"],
    },
    # Minimal overlap
    "low": {
        "Entertainment": ["Business", "Technology", "Finance", "Education"],
        "Sports": ["Business", "Technology", "Finance", "Education"],
        "Business": ["Entertainment", "Sports"],
        "Technology": ["Entertainment", "Sports"],
        "Finance": ["Entertainment", "Sports"],
        "Education": ["Entertainment", "Sports"],
    },
}

# Provider vocabularies mapped onto the taxonomy. Keys are folded.
PROVIDER_CATEGORY_MAP: dict[str, dict[str, str]] = {
    "ticketmaster": {
        "music": "Entertainment",
        "arts & theatre": "Entertainment",
        "film": "Entertainment",
        "miscellaneous": "Other",
        "sports": "Sports",
        "family": "Entertainment",
    },
    "predicthq": {
        "concerts": "Entertainment",
        "festivals": "Entertainment",
        "performing-arts": "Entertainment",
        "community": "Entertainment",
        "expos": "Business",
        "conferences": "Business",
        "sports": "Sports",
        "academic": "Education",
        "health-warnings": "Healthcare",
    },
}

# Taxonomy category -> provider search terms
PROVIDER_SEARCH_TERMS: dict[str, dict[str, list[str]]] = {
    "Entertainment": {
        "ticketmaster": ["Music", "Arts & Theatre", "Film"],
        "predicthq": ["concerts", "performing-arts", "festivals"],
    },
    "Music": {
        "ticketmaster": ["Music"],
        "predicthq": ["concerts", "festivals"],
    },
    "Arts & Culture": {
        "ticketmaster": ["Arts & Theatre"],
        "predicthq": ["performing-arts", "festivals"],
    },
    "Sports": {
        "ticketmaster": ["Sports"],
        "predicthq": ["sports"],
    },
    "Business": {
        "ticketmaster": ["Business"],
        "predicthq": ["conferences", "expos"],
    },
    "Technology": {
        "ticketmaster": ["Technology"],
        "predicthq": ["conferences"],
    },
    "Education": {
        "ticketmaster": ["Education"],
        "predicthq": ["academic"],
    },
    "Healthcare": {
        "ticketmaster": ["Healthcare"],
        "predicthq": ["conferences"],
    },
    "Finance": {
        "ticketmaster": ["Finance"],
        "predicthq": ["conferences"],
    },
}

_CANONICAL = {fold_text(c): c for c in KNOWN_CATEGORIES}


def canonical_category(category: Optional[str]) -> Optional[str]:
    """Return the taxonomy spelling of a category, or None when unknown."""
    return _CANONICAL.get(fold_text(category))


def is_known_category(category: Optional[str]) -> bool:
    return canonical_category(category) is not None


def relationship_level(competing: str, planned: str) -> Optional[str]:
    """Static relationship level for a (competing, planned) pair, or None."""
    competing_key = canonical_category(competing)
    planned_key = canonical_category(planned)
    if not competing_key or not planned_key:
        return None

    for level in ("high", "medium", "low"):
        if competing_key in RELATIONSHIPS[level].get(planned_key, []):
            return level
    return None


def map_provider_category(provider: str, raw: Optional[str]) -> str:
    """Normalize a provider's category label onto the taxonomy."""
    if not raw:
        return "Other"
    known = canonical_category(raw)
    if known:
        return known
    return PROVIDER_CATEGORY_MAP.get(provider, {}).get(fold_text(raw), raw)


def provider_search_terms(provider: str, category: Optional[str]) -> list[str]:
    """Provider vocabulary to search for a taxonomy category."""
    if not category:
        return []
    key = canonical_category(category) or category
    return PROVIDER_SEARCH_TERMS.get(key, {}).get(provider, [category])
