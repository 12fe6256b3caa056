"""Shared pytest fixtures for conflict engine tests."""

from datetime import date, datetime
from typing import Callable

import pytest

from servers.conflict_mcp.models import Event, SearchQuery
from servers.conflict_mcp.sources import VenueCalendar


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Build events with sensible defaults; override any field by keyword."""
    counter = {"n": 0}

    def _make(**overrides) -> Event:
        counter["n"] += 1
        fields = {
            "id": f"evt_{counter['n']}",
            "title": f"Event {counter['n']}",
            "date": datetime(2026, 5, 14, 19, 0),
            "city": "Brno",
            "category": "Technology",
            "source": "manual",
            "source_id": str(counter["n"]),
        }
        fields.update(overrides)
        return Event(**fields)

    return _make


@pytest.fixture
def sample_venue() -> VenueCalendar:
    """Provide a sample Prague venue calendar."""
    return VenueCalendar(
        name="Rudolfinum",
        url="https://www.rudolfinum.cz",
        subcategory="Classical",
    )


@pytest.fixture
def sample_query() -> SearchQuery:
    """Query window used by provider adapter tests."""
    return SearchQuery(
        city="Prague",
        date_from=date(2026, 5, 1),
        date_to=date(2026, 5, 31),
    )


@pytest.fixture
def sample_event() -> Event:
    """Provide a sample event."""
    return Event(
        id="tm_G5vYZ9",
        title="Brno Developer Days",
        description="Two days of talks on backend systems, cloud platforms and developer tooling.",
        date=datetime(2026, 5, 14, 9, 0),
        end_date=datetime(2026, 5, 15, 18, 0),
        city="Brno",
        venue="Veletrhy Brno",
        category="Technology",
        subcategory="Web Development",
        expected_attendees=800,
        source="ticketmaster",
        source_id="G5vYZ9",
        image_url="https://s1.ticketm.net/dam/a/brno-dev-days.jpg",
    )


@pytest.fixture
def sample_events() -> list[Event]:
    """Provide a list of sample events including duplicates."""
    return [
        Event(
            id="tm_1",
            title="Brno Developer Days",
            description="Backend, cloud and tooling talks",
            date=datetime(2026, 5, 14, 9, 0),
            city="Brno",
            venue="Veletrhy Brno",
            category="Technology",
            source="ticketmaster",
            source_id="1",
        ),
        Event(
            id="phq_2",
            title="BRNO DEVELOPER DAYS",  # Duplicate with different formatting
            description=None,
            date=datetime(2026, 5, 14, 10, 0),
            city="brno",
            category="Technology",
            expected_attendees=900,
            source="predicthq",
            source_id="2",
        ),
        Event(
            id="phq_3",
            title="Jazz on the Square",
            description="Open-air jazz evening",
            date=datetime(2026, 5, 14, 19, 0),
            city="Brno",
            venue="Náměstí Svobody",
            category="Entertainment",
            subcategory="Music",
            source="predicthq",
            source_id="3",
        ),
        Event(
            id="fc_4",
            title="Startup Breakfast",
            date=datetime(2026, 5, 15, 8, 0),
            city="Brno",
            category="Business",
            subcategory="Networking",
            source="firecrawl",
            source_id="4",
        ),
    ]
