"""
Expert seasonal demand rules (monthly granularity).

Each curve maps month -> (demand multiplier, confidence, reasoning).
Partial curves (festival months, regional calendar overrides) are
applied on top of the full curves. Category-level curves are derived
as the monthly mean of that category's complete subcategory curves.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .models import fold_text


class SeasonalRule(BaseModel):
    """Demand rule for one (category, subcategory, region, month)."""

    category: str
    subcategory: Optional[str] = None
    region: str = "CZ"
    month: int = Field(ge=1, le=12)
    demand_multiplier: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    data_source: str = "expert_rules"
    expert_source: Optional[str] = None


def _curve(
    category: str,
    subcategory: Optional[str],
    expert_source: str,
    months: dict[int, tuple[float, float, str]],
    region: str = "CZ",
) -> list[SeasonalRule]:
    return [
        SeasonalRule(
            category=category,
            subcategory=subcategory,
            region=region,
            month=month,
            demand_multiplier=multiplier,
            confidence=confidence,
            reasoning=reasoning,
            expert_source=expert_source,
        )
        for month, (multiplier, confidence, reasoning) in sorted(months.items())
    ]


TECHNOLOGY_RULES = (
    _curve("Technology", "AI/ML", "Tech Conference Industry Analysis 2024", {
        1: (0.4, 0.9, "Post-holiday slowdown, low conference activity"),
        2: (0.8, 0.9, "Q1 conference planning begins, moderate demand"),
        3: (1.4, 0.95, "Spring conference season peak, high demand for AI/ML events"),
        4: (1.6, 0.95, "Peak spring events, maximum demand for AI/ML conferences"),
        5: (1.5, 0.9, "Late spring conferences, still high demand"),
        6: (0.9, 0.85, "Summer conference decline begins"),
        7: (0.6, 0.9, "Summer break, vacation period, low demand"),
        8: (0.7, 0.85, "Summer vacation period continues"),
        9: (1.3, 0.9, "Fall conference season begins, renewed demand"),
        10: (1.5, 0.95, "Peak fall events, high demand for AI/ML conferences"),
        11: (1.4, 0.9, "Late fall conferences, strong demand continues"),
        12: (0.5, 0.95, "Holiday season, minimal conference activity"),
    })
    + _curve("Technology", "Web Development", "Web Development Conference Trends 2024", {
        1: (0.5, 0.85, "Post-holiday period, moderate web dev activity"),
        2: (0.9, 0.85, "Q1 planning, growing web dev conference demand"),
        3: (1.3, 0.9, "Spring conference season, high web dev demand"),
        4: (1.5, 0.9, "Peak spring web dev events, maximum demand"),
        5: (1.4, 0.85, "Late spring, strong web dev conference demand"),
        6: (1.0, 0.8, "Summer begins, moderate web dev activity"),
        7: (0.7, 0.85, "Summer vacation, reduced web dev conference activity"),
        8: (0.8, 0.8, "Late summer, moderate web dev activity"),
        9: (1.2, 0.9, "Fall conference season begins, renewed web dev demand"),
        10: (1.4, 0.9, "Peak fall web dev events, high demand"),
        11: (1.3, 0.85, "Late fall, strong web dev conference demand"),
        12: (0.6, 0.9, "Holiday season, minimal web dev conference activity"),
    })
    + _curve("Technology", "Startups", "Startup Ecosystem Analysis 2024", {
        1: (1.2, 0.9, "New year startup energy, high demand for startup events"),
        2: (1.4, 0.9, "Q1 startup season peak, maximum demand"),
        3: (1.5, 0.95, "Peak startup conference season, highest demand"),
        4: (1.3, 0.9, "Late Q1, strong startup event demand"),
        5: (1.1, 0.85, "Q1-Q2 transition, moderate startup activity"),
        6: (0.9, 0.8, "Summer begins, reduced startup conference activity"),
        7: (0.7, 0.85, "Summer vacation, low startup event activity"),
        8: (0.8, 0.8, "Late summer, minimal startup activity"),
        9: (1.3, 0.9, "Q3 startup season begins, renewed demand"),
        10: (1.4, 0.9, "Peak Q3 startup events, high demand"),
        11: (1.2, 0.85, "Late Q3, strong startup conference demand"),
        12: (0.4, 0.95, "Holiday season, minimal startup activity"),
    })
)

ENTERTAINMENT_RULES = (
    _curve("Entertainment", "Music", "Music Industry Seasonal Analysis 2024", {
        1: (0.6, 0.9, "Winter low season for music events"),
        2: (0.7, 0.85, "Late winter, moderate music activity"),
        3: (0.9, 0.8, "Spring begins, growing music event demand"),
        4: (1.1, 0.85, "Spring music season begins, increasing demand"),
        5: (1.3, 0.9, "Late spring, strong music event demand"),
        6: (1.5, 0.95, "Summer music season begins, high demand"),
        7: (1.6, 0.95, "Peak summer music season, maximum demand"),
        8: (1.5, 0.9, "Late summer, high music event demand"),
        9: (1.2, 0.85, "Fall begins, moderate music activity"),
        10: (1.0, 0.8, "Mid-fall, moderate music event demand"),
        11: (0.8, 0.85, "Late fall, declining music activity"),
        12: (0.7, 0.9, "Holiday season, low music event activity"),
    })
    + _curve("Entertainment", "Theater", "Theater Industry Analysis 2024", {
        1: (1.3, 0.9, "Winter theater season peak, high demand"),
        2: (1.2, 0.85, "Late winter, strong theater demand"),
        3: (1.1, 0.8, "Spring begins, moderate theater activity"),
        4: (1.0, 0.8, "Mid-spring, moderate theater demand"),
        5: (0.9, 0.8, "Late spring, declining theater activity"),
        6: (0.7, 0.85, "Summer begins, low theater season"),
        7: (0.6, 0.9, "Peak summer vacation, minimal theater activity"),
        8: (0.7, 0.85, "Late summer, low theater activity"),
        9: (1.1, 0.85, "Fall theater season begins, renewed demand"),
        10: (1.3, 0.9, "Peak fall theater season, high demand"),
        11: (1.4, 0.9, "Late fall theater peak, maximum demand"),
        12: (1.2, 0.85, "Holiday season, moderate theater activity"),
    })
)

BUSINESS_RULES = _curve("Business", "Conferences", "Business Conference Trends 2024", {
    1: (1.1, 0.85, "New year business planning, moderate conference demand"),
    2: (1.3, 0.9, "Q1 business season peak, high conference demand"),
    3: (1.4, 0.9, "Peak Q1 business conferences, maximum demand"),
    4: (1.2, 0.85, "Late Q1, strong business conference demand"),
    5: (1.0, 0.8, "Q1-Q2 transition, moderate business activity"),
    6: (0.8, 0.8, "Summer begins, reduced business conference activity"),
    7: (0.6, 0.85, "Summer vacation, minimal business conference activity"),
    8: (0.7, 0.8, "Late summer, low business conference activity"),
    9: (1.2, 0.9, "Q3 business season begins, renewed conference demand"),
    10: (1.4, 0.9, "Peak Q3 business conferences, high demand"),
    11: (1.3, 0.85, "Late Q3, strong business conference demand"),
    12: (0.5, 0.95, "Holiday season, minimal business conference activity"),
})

# Regional calendar specifics, applied after the base curves
CZECH_OVERRIDES = (
    _curve("Entertainment", "Classical", "Czech Cultural Events Analysis 2024", {
        5: (1.8, 0.95, "Prague Spring International Music Festival creates high demand and venue competition"),
    })
    + _curve("Business", "Conferences", "Czech Business Calendar Analysis 2024", {
        7: (0.4, 0.95, "Czech summer vacation period, minimal business activity"),
        8: (0.5, 0.9, "Late summer vacation, low business conference activity"),
    })
    + _curve("Entertainment", "Cultural", "Czech Cultural Events Analysis 2024", {
        11: (1.4, 0.9, "Czech Christmas markets begin, high cultural event demand"),
        12: (1.6, 0.95, "Peak Christmas market season, maximum cultural event demand"),
    })
)


def rule_key(category: str, subcategory: Optional[str], region: str, month: int) -> tuple[str, str, str, int]:
    return (fold_text(category), fold_text(subcategory), fold_text(region), month)


def derive_category_rules(rules: list[SeasonalRule]) -> list[SeasonalRule]:
    """Monthly mean of every complete subcategory curve, per category and region."""
    curves: dict[tuple[str, str], dict[str, dict[int, SeasonalRule]]] = {}
    for rule in rules:
        if not rule.subcategory:
            continue
        group = curves.setdefault((rule.category, rule.region), {})
        group.setdefault(rule.subcategory, {})[rule.month] = rule

    derived: list[SeasonalRule] = []
    for (category, region), subcategories in curves.items():
        complete = [months for months in subcategories.values() if len(months) == 12]
        if not complete:
            continue
        names = sorted(s for s, months in subcategories.items() if len(months) == 12)
        for month in range(1, 13):
            values = [curve[month] for curve in complete]
            derived.append(SeasonalRule(
                category=category,
                subcategory=None,
                region=region,
                month=month,
                demand_multiplier=round(sum(v.demand_multiplier for v in values) / len(values), 2),
                confidence=round(min(v.confidence for v in values) * 0.9, 2),
                reasoning=f"Category average of {', '.join(names)}",
                data_source="derived",
            ))
    return derived


def build_rule_table(
    extra_rules: Optional[list[SeasonalRule]] = None,
) -> dict[tuple[str, str, str, int], SeasonalRule]:
    """Index all rules by (category, subcategory, region, month); later rules win."""
    base = list(TECHNOLOGY_RULES) + list(ENTERTAINMENT_RULES) + list(BUSINESS_RULES)
    overrides = list(CZECH_OVERRIDES) + list(extra_rules or [])

    table: dict[tuple[str, str, str, int], SeasonalRule] = {}
    for rule in base + overrides:
        table[rule_key(rule.category, rule.subcategory, rule.region, rule.month)] = rule

    for rule in derive_category_rules(list(table.values())):
        key = rule_key(rule.category, None, rule.region, rule.month)
        table.setdefault(key, rule)

    return table


def _curves(
    table: dict[tuple[str, str, str, int], SeasonalRule],
) -> dict[tuple[str, str, str], dict[int, SeasonalRule]]:
    curves: dict[tuple[str, str, str], dict[int, SeasonalRule]] = {}
    for (category, subcategory, region, month), rule in table.items():
        curves.setdefault((category, subcategory, region), {})[month] = rule
    return curves


def _label(category: str, subcategory: str, region: str) -> str:
    return f"{category}{f' ({subcategory})' if subcategory else ''} [{region}]"


def validate_seasonal_rules(
    table: dict[tuple[str, str, str, int], SeasonalRule],
) -> list[str]:
    """
    Check every complete curve for internal consistency.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []
    for (category, subcategory, region), months in sorted(_curves(table).items()):
        if len(months) < 12:
            continue
        values = [months[m].demand_multiplier for m in range(1, 13)]
        if max(values) <= min(values):
            errors.append(f"Peak does not exceed trough for {_label(category, subcategory, region)}")
    return errors


def find_coverage_gaps(
    table: dict[tuple[str, str, str, int], SeasonalRule],
) -> list[str]:
    """Describe curves that do not cover all twelve months."""
    gaps: list[str] = []
    for (category, subcategory, region), months in sorted(_curves(table).items()):
        missing = [m for m in range(1, 13) if m not in months]
        if missing:
            gaps.append(
                f"Missing months for {_label(category, subcategory, region)}: "
                f"{', '.join(str(m) for m in missing)}"
            )
    return gaps
