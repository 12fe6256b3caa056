"""
Firecrawl-powered scraper for venue calendars.

Cost: Firecrawl API (500 free credits/month)
Use Case: Venue programmes with JavaScript rendering, complex layouts

Strategies:
- venue_calendars: scrape each configured calendar page of the city
- venue_crawl: crawl each venue site for event pages (more credits)

Firecrawl returns structured markdown; events are pulled out of it
with a handful of date/title patterns.
"""

import hashlib
import os
import re
from datetime import datetime, time
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
import structlog
from dateutil import parser as date_parser
from pydantic import BaseModel

from ..errors import ProviderUnavailable
from ..models import Event, SearchQuery, fold_text
from ..resilience import retry_with_backoff
from .base import in_query_range

logger = structlog.get_logger()

FIRECRAWL_API_URL = "https://api.firecrawl.dev/v1"


class VenueCalendar(BaseModel):
    """A venue programme page scraped for competing events."""

    name: str
    url: str
    category: str = "Entertainment"
    subcategory: Optional[str] = None


# Venue calendars per city (keys are folded)
DEFAULT_VENUES: dict[str, list[VenueCalendar]] = {
    "prague": [
        VenueCalendar(name="O2 arena", url="https://www.o2arena.cz"),
        VenueCalendar(name="Rudolfinum", url="https://www.rudolfinum.cz", subcategory="Classical"),
        VenueCalendar(name="Národní divadlo", url="https://www.narodni-divadlo.cz", subcategory="Theater"),
        VenueCalendar(
            name="Clarion Congress Hotel Prague",
            url="https://www.clarioncongressprague.cz",
            category="Business",
            subcategory="Conferences",
        ),
    ],
    "brno": [
        VenueCalendar(name="Veletrhy Brno", url="https://www.bvv.cz", category="Business"),
        VenueCalendar(name="Národní divadlo Brno", url="https://www.ndbrno.cz", subcategory="Theater"),
    ],
    "ostrava": [
        VenueCalendar(name="Ostravar Aréna", url="https://www.ostrava-arena.cz", category="Sports"),
        VenueCalendar(name="Dolní Vítkovice", url="https://www.dolnivitkovice.cz"),
    ],
    "hradec kralove": [
        VenueCalendar(
            name="Klicperovo divadlo",
            url="https://www.klicperovodivadlo.cz/program/",
            subcategory="Theater",
        ),
        VenueCalendar(
            name="Filharmonie Hradec Králové",
            url="https://www.filharmoniehk.cz/program/",
            subcategory="Classical",
        ),
    ],
}
DEFAULT_VENUES["praha"] = DEFAULT_VENUES["prague"]

CRAWL_INCLUDE_PATHS = ["/program", "/akce", "/events", "/kalendar", "/calendar"]


class FirecrawlSource:
    """Scrapes configured venue calendars of the queried city."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: Optional[str] = None,
        venues: Optional[dict[str, list[VenueCalendar]]] = None,
        timeout: float = 60.0,
        base_url: str = FIRECRAWL_API_URL,
    ):
        self.api_key = api_key or os.environ.get("FIRECRAWL_API_KEY")
        self.venues = {fold_text(k): v for k, v in (venues or DEFAULT_VENUES).items()}
        self.timeout = timeout
        self.base_url = base_url

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def venues_for(self, city: Optional[str]) -> list[VenueCalendar]:
        return self.venues.get(fold_text(city), [])

    async def search(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> list[Event]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "FIRECRAWL_API_KEY not set")
        if strategy not in ("venue_calendars", "venue_crawl"):
            raise ValueError(f"Unknown Firecrawl strategy: {strategy}")

        venues = self.venues_for(query.city)
        if not venues:
            return []

        events: list[Event] = []
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for venue in venues:
                if strategy == "venue_calendars":
                    pages = await self._scrape(client, venue.url)
                else:
                    pages = await self._crawl(client, venue.url, params.get("max_pages", 10))
                for page_url, markdown in pages:
                    events.extend(_parse_events_from_markdown(markdown, venue, query, page_url))

        return [e for e in events if in_query_range(e, query)]

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    # Transport errors are retried per venue request
    @retry_with_backoff(max_retries=1, base_delay=1.0)
    async def _post(self, client: httpx.AsyncClient, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await client.post(
                f"{self.base_url}/{endpoint}", headers=self._headers(), json=body
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailable(self.name, f"HTTP {e.response.status_code}") from e

        data = response.json()
        if not data.get("success"):
            raise ProviderUnavailable(self.name, data.get("error", "Unknown error"))
        return data

    async def _scrape(self, client: httpx.AsyncClient, url: str) -> list[tuple[str, str]]:
        data = await self._post(client, "scrape", {
            "url": url,
            "formats": ["markdown"],
            "onlyMainContent": True,
        })
        content = data.get("data") or {}
        return [(url, content.get("markdown", ""))]

    async def _crawl(
        self, client: httpx.AsyncClient, url: str, max_pages: int
    ) -> list[tuple[str, str]]:
        data = await self._post(client, "crawl", {
            "url": url,
            "limit": max_pages,
            "scrapeOptions": {"formats": ["markdown"], "onlyMainContent": True},
            "includePaths": CRAWL_INCLUDE_PATHS,
        })
        return [
            (page.get("url", url), page.get("markdown", ""))
            for page in data.get("data") or []
        ]


def _extract_domain_name(url: str) -> str:
    """Extract venue name from domain."""
    domain = urlparse(url).netloc
    domain = domain.replace("www.", "")
    name = domain.split(".")[0]
    return name.replace("-", " ").title()


# Pattern 1: Headers followed by dates
HEADER_PATTERN = re.compile(
    r'#{1,3}\s+(.+?)\n.*?(?:date|when|datum|kdy).*?'
    r'(\w+\s+\d{1,2},?\s*\d{4}|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}\.\s?\d{1,2}\.\s?\d{4})',
    re.IGNORECASE | re.DOTALL
)

# Pattern 2: List items with dates and titles
LIST_PATTERN = re.compile(
    r'[-*]\s*\*?\*?([^*\n]+?)\*?\*?\s*[-–]\s*(\w+\s+\d{1,2}|\d{1,2}/\d{1,2}|\d{1,2}\.\s?\d{1,2}\.)',
    re.IGNORECASE
)

# Pattern 3: Date followed by event name
DATE_FIRST_PATTERN = re.compile(
    r'(?:^|\n)(\w{3,9}\s+\d{1,2}(?:,?\s*\d{4})?|\d{1,2}\.\s?\d{1,2}\.(?:\s?\d{4})?)\s*[-–:]\s*(.+?)(?=\n|$)',
    re.IGNORECASE
)


def _parse_events_from_markdown(
    markdown: str,
    venue: VenueCalendar,
    query: SearchQuery,
    source_url: str,
) -> list[Event]:
    """
    Parse events from markdown content.

    Looks for patterns like:
    - ## Event Title / **Datum**: 12. 5. 2026
    - * Event Title - May 12
    - 12.5. - Event Title
    """
    events: list[Event] = []
    seen_titles: set[str] = set()

    for pattern, title_first in (
        (HEADER_PATTERN, True),
        (LIST_PATTERN, True),
        (DATE_FIRST_PATTERN, False),
    ):
        for match in pattern.finditer(markdown):
            first, second = match.groups()
            title, date_str = (first, second) if title_first else (second, first)
            event = _create_event_from_match(
                title, date_str, venue, query, source_url, seen_titles
            )
            if event:
                events.append(event)

    return events


def _create_event_from_match(
    title: str,
    date_str: str,
    venue: VenueCalendar,
    query: SearchQuery,
    source_url: str,
    seen_titles: set[str],
) -> Optional[Event]:
    """Create an Event from a regex match."""
    # Clean title
    title = re.sub(r'\s+', ' ', title.strip())
    title = title.strip('*#-_ ')

    if not title or len(title) < 3:
        return None

    # Skip duplicates
    title_key = title.lower()[:50]
    if title_key in seen_titles:
        return None
    seen_titles.add(title_key)

    # Missing year or day falls back to the start of the query window
    try:
        parsed_date = date_parser.parse(
            date_str.replace(" ", "") if "." in date_str else date_str,
            fuzzy=True,
            dayfirst="." in date_str,
            default=datetime.combine(query.date_from, time.min),
        )
    except (ValueError, TypeError, OverflowError):
        return None

    digest = hashlib.md5(f"{title}|{parsed_date.date()}|{source_url}".encode()).hexdigest()

    return Event(
        id=f"fc_{digest[:12]}",
        title=title,
        date=parsed_date,
        city=query.city or "Unknown",
        venue=venue.name or _extract_domain_name(source_url),
        category=venue.category,
        subcategory=venue.subcategory,
        source="firecrawl",
        source_id=digest[:16],
        url=source_url,
    )
