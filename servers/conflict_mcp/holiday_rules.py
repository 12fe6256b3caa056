"""
Holiday calendar data and holiday impact rules (Czech Republic).

Impact rules apply to holidays of a given type, optionally narrowed to
specific holidays by name, for an event category and optional
subcategory. A planned date is affected when it falls inside
[holiday - days_before, holiday + days_after].
"""

from typing import Optional

from pydantic import BaseModel, Field

from .models import TotalImpact


class HolidayDefinition(BaseModel):
    """Recurring holiday or cultural observance."""

    name: str
    name_native: Optional[str] = None
    holiday_type: str  # public_holiday, cultural_event
    country: str = "CZ"
    region: Optional[str] = None  # None = nationwide
    month: Optional[int] = None
    day: Optional[int] = None
    easter_offset: Optional[int] = None  # days relative to Easter Sunday
    business_impact: TotalImpact = TotalImpact.NONE
    venue_closure_expected: bool = False
    year_start: int = 1993
    year_end: Optional[int] = None


class HolidayImpactRule(BaseModel):
    """Impact of a holiday type on an event category."""

    holiday_type: str
    holidays: tuple[str, ...] = ()  # empty = every holiday of the type
    category: str
    subcategory: Optional[str] = None
    region: str = "CZ"
    days_before: int = Field(default=0, ge=0, le=14)
    days_after: int = Field(default=0, ge=0, le=14)
    multiplier: float = Field(gt=0.0)
    confidence: float = 0.8
    reasoning: str = ""


def _public(name: str, native: str, month: Optional[int] = None, day: Optional[int] = None,
            easter_offset: Optional[int] = None, year_start: int = 1993) -> HolidayDefinition:
    return HolidayDefinition(
        name=name,
        name_native=native,
        holiday_type="public_holiday",
        month=month,
        day=day,
        easter_offset=easter_offset,
        business_impact=TotalImpact.FULL,
        venue_closure_expected=True,
        year_start=year_start,
    )


def _cultural(name: str, native: str, month: int, day: int,
              region: Optional[str] = None, year_start: int = 1993) -> HolidayDefinition:
    return HolidayDefinition(
        name=name,
        name_native=native,
        holiday_type="cultural_event",
        region=region,
        month=month,
        day=day,
        business_impact=TotalImpact.PARTIAL,
        venue_closure_expected=False,
        year_start=year_start,
    )


CZECH_HOLIDAYS = [
    _public("New Year's Day", "Nový rok", 1, 1),
    _public("Good Friday", "Velký pátek", easter_offset=-2, year_start=2016),
    _public("Easter Monday", "Velikonoční pondělí", easter_offset=1),
    _public("Labour Day", "Svátek práce", 5, 1),
    _public("Liberation Day", "Den vítězství", 5, 8),
    _public("St. Cyril and Methodius Day", "Den slovanských věrozvěstů Cyrila a Metoděje", 7, 5),
    _public("Jan Hus Day", "Den upálení mistra Jana Husa", 7, 6),
    _public("Czech Statehood Day", "Den české státnosti", 9, 28),
    _public("Independence Day", "Den vzniku samostatného československého státu", 10, 28),
    _public("Struggle for Freedom Day", "Den boje za svobodu a demokracii", 11, 17),
    _public("Christmas Eve", "Štědrý den", 12, 24),
    _public("Christmas Day", "1. svátek vánoční", 12, 25),
    _public("St. Stephen's Day", "2. svátek vánoční", 12, 26),
]

CZECH_CULTURAL_EVENTS = [
    _cultural("Prague Spring International Music Festival",
              "Mezinárodní hudební festival Pražské jaro", 5, 12, "CZ-PR", 1946),
    _cultural("Prague Fringe Festival", "Prague Fringe Festival", 5, 20, "CZ-PR", 2002),
    _cultural("Prague Pride", "Prague Pride", 8, 1, "CZ-PR", 2011),
    _cultural("Prague Autumn International Music Festival",
              "Mezinárodní hudební festival Pražský podzim", 9, 1, "CZ-PR", 1991),
    _cultural("Ride of the Kings", "Jízda králů", 5, 1, "CZ-JM", 1800),
    _cultural("Hody", "Hody", 9, 1, "CZ-JM", 1800),
    _cultural("Czech Beer Festival", "Český pivní festival", 5, 15, None, 2008),
    _cultural("Czech Christmas Markets", "Vánoční trhy", 11, 25, None, 1990),
]


def _rule(holidays: tuple[str, ...], category: str, before: int, after: int, multiplier: float,
          confidence: float, reasoning: str, subcategory: Optional[str] = None,
          holiday_type: str = "public_holiday", region: str = "CZ") -> HolidayImpactRule:
    return HolidayImpactRule(
        holiday_type=holiday_type,
        holidays=holidays,
        category=category,
        subcategory=subcategory,
        region=region,
        days_before=before,
        days_after=after,
        multiplier=multiplier,
        confidence=confidence,
        reasoning=reasoning,
    )


CHRISTMAS_EVE = ("Christmas Eve",)
CHRISTMAS_DAY = ("Christmas Day",)
NEW_YEAR = ("New Year's Day",)
EASTER_MONDAY = ("Easter Monday",)
PRAGUE_SPRING = ("Prague Spring International Music Festival",)

MAJOR_HOLIDAY_RULES = [
    _rule(CHRISTMAS_EVE, "Business", 5, 2, 4.0, 0.95,
          "Christmas Eve is the most important family holiday, business activity stops"),
    _rule(CHRISTMAS_EVE, "Entertainment", 3, 1, 2.5, 0.9,
          "Christmas Eve creates family entertainment demand but conflicts with other events"),
    _rule(CHRISTMAS_EVE, "Technology", 5, 2, 3.5, 0.95,
          "Christmas Eve stops tech industry activity, no conferences or events"),
    _rule(CHRISTMAS_DAY, "Business", 2, 1, 4.5, 0.95,
          "Christmas Day is a complete business shutdown"),
    _rule(CHRISTMAS_DAY, "Entertainment", 1, 1, 2.0, 0.9,
          "Christmas Day has moderate entertainment demand but venue availability issues"),
    _rule(NEW_YEAR, "Business", 3, 1, 3.0, 0.9,
          "New Year period has low business activity"),
    _rule(NEW_YEAR, "Entertainment", 2, 1, 1.8, 0.85,
          "New Year period has high entertainment demand but venue competition"),
    _rule(EASTER_MONDAY, "Business", 2, 1, 2.5, 0.9,
          "Easter Monday extends the Easter weekend, reduces business activity"),
    _rule(EASTER_MONDAY, "Entertainment", 1, 1, 1.5, 0.85,
          "Easter Monday creates moderate entertainment demand"),
]

BUSINESS_HOLIDAY_RULES = [
    _rule(("Labour Day",), "Business", 1, 1, 2.0, 0.85,
          "Labour Day reduces conference attendance and venue availability", "Conferences"),
    _rule(("Labour Day",), "Business", 1, 1, 1.8, 0.8,
          "Labour Day reduces networking event attendance", "Networking"),
    _rule(("Liberation Day",), "Business", 1, 0, 1.5, 0.8,
          "Liberation Day reduces venue availability for business events"),
    _rule(("Czech Statehood Day",), "Business", 1, 1, 1.8, 0.85,
          "Statehood Day reduces business activity and venue availability"),
    _rule(("Independence Day",), "Business", 1, 1, 1.8, 0.85,
          "Independence Day reduces business activity and venue availability"),
    _rule(("Struggle for Freedom Day",), "Business", 1, 1, 1.6, 0.8,
          "Freedom Day reduces business activity and venue availability"),
]

ENTERTAINMENT_HOLIDAY_RULES = [
    _rule(CHRISTMAS_EVE, "Entertainment", 7, 3, 2.2, 0.9,
          "Christmas period creates high demand for music events but intense competition", "Music"),
    _rule(CHRISTMAS_EVE, "Entertainment", 5, 2, 1.8, 0.85,
          "Christmas period increases theater demand but reduces venue availability", "Theater"),
    _rule(NEW_YEAR, "Entertainment", 3, 2, 1.6, 0.8,
          "New Year period creates high demand for music events", "Music"),
    _rule(EASTER_MONDAY, "Entertainment", 2, 2, 1.4, 0.8,
          "Easter period increases cultural event demand", "Cultural"),
    _rule(PRAGUE_SPRING, "Entertainment", 3, 3, 2.5, 0.95,
          "Prague Spring creates high demand for classical music events and venue competition",
          "Classical", "cultural_event", "CZ-PR"),
    _rule(PRAGUE_SPRING, "Entertainment", 2, 2, 1.8, 0.9,
          "Prague Spring increases overall music event demand in Prague",
          "Music", "cultural_event", "CZ-PR"),
    _rule(("Prague Pride",), "Entertainment", 2, 2, 1.6, 0.85,
          "Prague Pride increases cultural event demand and venue competition",
          "Cultural", "cultural_event", "CZ-PR"),
]

TECHNOLOGY_HOLIDAY_RULES = [
    _rule(CHRISTMAS_EVE, "Technology", 7, 3, 3.0, 0.95,
          "Christmas period stops AI/ML conference activity", "AI/ML"),
    _rule(CHRISTMAS_EVE, "Technology", 5, 2, 2.5, 0.9,
          "Christmas period reduces web development conference activity", "Web Development"),
    _rule(CHRISTMAS_EVE, "Technology", 5, 2, 2.8, 0.9,
          "Christmas period reduces startup event activity and attendance", "Startups"),
]

SPORTS_HOLIDAY_RULES = [
    _rule((), "Sports", 1, 1, 1.5, 0.8,
          "Public holidays increase sports demand but reduce venue availability"),
    _rule(CHRISTMAS_EVE, "Sports", 3, 2, 1.8, 0.85,
          "Christmas period increases family sports activity but reduces competitive events"),
]

HOLIDAY_IMPACT_RULES = (
    MAJOR_HOLIDAY_RULES
    + BUSINESS_HOLIDAY_RULES
    + ENTERTAINMENT_HOLIDAY_RULES
    + TECHNOLOGY_HOLIDAY_RULES
    + SPORTS_HOLIDAY_RULES
)

# Upper bound on the combined holiday multiplier
MAX_HOLIDAY_MULTIPLIER = 5.0

# Multiplier for closure days and upcoming holidays without a category rule
DEFAULT_UPCOMING_MULTIPLIER = 1.5

# Window used when no rule covers a holiday type
DEFAULT_IMPACT_WINDOW = {"days_before": 1, "days_after": 1}
