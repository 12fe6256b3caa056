"""
Event source contract.

Every provider adapter implements:
- name: provider tag stored on produced events
- enabled: False when the adapter lacks credentials
- search(strategy, query, params) -> list[Event]

"No results" is an empty list. Hard failures (missing credentials, HTTP
errors) raise ProviderUnavailable; transport errors propagate so the
aggregator can retry them.
"""

from datetime import datetime, time
from typing import Any, Optional, Protocol

from dateutil import parser as date_parser

from ..models import Event, SearchQuery, fold_text


class EventSource(Protocol):
    name: str

    @property
    def enabled(self) -> bool: ...

    async def search(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> list[Event]: ...


def parse_event_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a provider timestamp into a naive datetime, None when unparseable."""
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, TypeError, OverflowError):
        return None
    return parsed.replace(tzinfo=None)


def in_query_range(event: Event, query: SearchQuery) -> bool:
    """True when the event overlaps [date_from, date_to]."""
    start = event.date.date()
    end = event.end_date.date() if event.end_date else start
    return start <= query.date_to and max(start, end) >= query.date_from


def window_bounds(query: SearchQuery) -> tuple[datetime, datetime]:
    return (
        datetime.combine(query.date_from, time.min),
        datetime.combine(query.date_to, time(23, 59, 59)),
    )


class StaticEventSource:
    """
    In-memory provider over a fixed event list.

    Strategies filter the list the same way a remote provider would:
    city strategies match the city, keyword strategies match the keyword
    or category in the title, description or category.
    """

    def __init__(self, events: list[Event], name: str = "manual"):
        self.name = name
        self.events = list(events)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def enabled(self) -> bool:
        return True

    async def search(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> list[Event]:
        self.calls.append((strategy, dict(params)))

        results = [e for e in self.events if in_query_range(e, query)]

        if query.city:
            city = fold_text(query.city)
            results = [e for e in results if fold_text(e.city) == city]

        term = fold_text(query.keyword or query.category)
        if "keyword" in strategy and term:
            results = [
                e for e in results
                if term in fold_text(e.title)
                or term in fold_text(e.description)
                or term == fold_text(e.category)
            ]

        min_attendance = params.get("min_attendance")
        if min_attendance:
            results = [e for e in results if (e.expected_attendees or 0) >= min_attendance]

        return results
