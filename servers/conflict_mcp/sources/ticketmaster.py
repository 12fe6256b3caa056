"""
Ticketmaster Discovery API adapter.

Strategies:
- direct_city: city + country code
- radius_search / extended_radius: city + radius (miles)
- market_based: whole country, filtered back to the requested city
- keyword_search: keyword or category vocabulary
"""

import os
from typing import Any, Optional

import httpx
import structlog

from ..errors import ProviderUnavailable
from ..models import Event, SearchQuery, fold_text
from ..taxonomy import map_provider_category, provider_search_terms
from .base import parse_event_datetime

logger = structlog.get_logger()

TICKETMASTER_API_URL = "https://app.ticketmaster.com/discovery/v2"

# Ticketmaster's maximum page size
PAGE_SIZE = 199

CITY_COUNTRY_CODES = {
    "prague": "CZ",
    "praha": "CZ",
    "brno": "CZ",
    "ostrava": "CZ",
    "plzen": "CZ",
    "hradec kralove": "CZ",
    "olomouc": "CZ",
    "vienna": "AT",
    "berlin": "DE",
    "munich": "DE",
    "bratislava": "SK",
    "warsaw": "PL",
    "budapest": "HU",
    "london": "GB",
    "paris": "FR",
    "amsterdam": "NL",
}

COUNTRY_NAMES = {
    "czech republic", "czechia", "germany", "austria", "slovakia", "poland",
    "hungary", "united kingdom", "france", "netherlands",
}


def country_code_for(city: Optional[str], default: str = "CZ") -> str:
    return CITY_COUNTRY_CODES.get(fold_text(city), default)


def _pick_image(images: list[dict[str, Any]]) -> Optional[str]:
    """Prefer a landscape image of at least 640x480."""
    if not images:
        return None
    for image in images:
        width, height = image.get("width") or 0, image.get("height") or 0
        if width >= 640 and height >= 480 and width >= height:
            return image.get("url")
    for image in images:
        if (image.get("width") or 0) >= 640:
            return image.get("url")
    return images[0].get("url")


def map_ticketmaster_event(
    raw: dict[str, Any], requested_city: Optional[str] = None
) -> Optional[Event]:
    """Map one Discovery API event onto Event. Returns None for incomplete records."""
    start = (raw.get("dates") or {}).get("start") or {}
    if not raw.get("id") or not raw.get("name") or not start.get("localDate"):
        return None

    date = parse_event_datetime(
        f"{start['localDate']}T{start['localTime']}" if start.get("localTime") else start["localDate"]
    )
    if date is None:
        return None
    end = (raw.get("dates") or {}).get("end") or {}

    venues = (raw.get("_embedded") or {}).get("venues") or []
    venue = venues[0] if venues else {}
    city = (venue.get("city") or {}).get("name") or requested_city or "Unknown"
    # Venues outside big markets sometimes report the country as the city
    if fold_text(city) in COUNTRY_NAMES and requested_city:
        city = requested_city

    classification = (raw.get("classifications") or [{}])[0]
    segment = (classification.get("segment") or {}).get("name")
    genre = (classification.get("genre") or {}).get("name")
    sub_genre = (classification.get("subGenre") or {}).get("name")

    return Event(
        id=f"tm_{raw['id']}",
        title=raw["name"],
        description=raw.get("description") or raw.get("info") or raw.get("pleaseNote"),
        date=date,
        end_date=parse_event_datetime(end.get("localDate")),
        city=city,
        venue=venue.get("name"),
        category=map_provider_category("ticketmaster", segment),
        subcategory=genre if genre and genre != "Undefined" else sub_genre,
        source="ticketmaster",
        source_id=raw["id"],
        url=raw.get("url"),
        image_url=_pick_image(raw.get("images") or []),
    )


class TicketmasterSource:
    """Discovery API client. One GET per strategy run."""

    name = "ticketmaster"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        base_url: str = TICKETMASTER_API_URL,
    ):
        self.api_key = api_key or os.environ.get("TICKETMASTER_API_KEY")
        self.timeout = timeout
        self.base_url = base_url

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def build_params(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "apikey": self.api_key,
            "size": PAGE_SIZE,
            "startDateTime": f"{query.date_from.isoformat()}T00:00:00Z",
            "endDateTime": f"{query.date_to.isoformat()}T23:59:59Z",
            "sort": "date,asc",
        }
        country = country_code_for(query.city)

        terms = provider_search_terms(self.name, query.category)
        if terms and strategy != "keyword_search":
            request["classificationName"] = ",".join(terms)

        if strategy == "direct_city":
            request.update(city=query.city, countryCode=country)
        elif strategy in ("radius_search", "extended_radius"):
            radius = params.get("radius") or query.radius
            request.update(city=query.city, countryCode=country, radius=str(radius), unit="miles")
        elif strategy == "market_based":
            request["countryCode"] = country
        elif strategy == "keyword_search":
            request["keyword"] = query.keyword or " ".join(terms) or query.category
            if query.city:
                request["countryCode"] = country
        else:
            raise ValueError(f"Unknown Ticketmaster strategy: {strategy}")

        return {k: v for k, v in request.items() if v not in (None, "")}

    async def search(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> list[Event]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "TICKETMASTER_API_KEY not set")

        request = self.build_params(strategy, query, params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/events.json", params=request)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailable(self.name, f"HTTP {e.response.status_code}") from e

        raw_events = (data.get("_embedded") or {}).get("events") or []
        events = [
            event for event in (map_ticketmaster_event(raw, query.city) for raw in raw_events)
            if event is not None
        ]

        if strategy == "market_based" and query.city:
            city = fold_text(query.city)
            events = [e for e in events if fold_text(e.city) == city]

        logger.debug(
            "ticketmaster_search_complete",
            strategy=strategy,
            raw=len(raw_events),
            mapped=len(events),
        )
        return events
