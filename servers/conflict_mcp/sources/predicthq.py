"""
PredictHQ Events API adapter.

Strategies:
- city: events around the city's coordinates (or by name when unknown)
- keyword: full-text search
- high_attendance: phq_attendance >= min_attendance
- high_rank: local_rank >= min_rank
- radius / extended_radius: within {radius}km of the city
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

PREDICTHQ_API_URL = "https://api.predicthq.com/v1"

# PredictHQ's maximum page size
PAGE_LIMIT = 500

CITY_COORDINATES = {
    "prague": (50.0755, 14.4378, "CZ"),
    "praha": (50.0755, 14.4378, "CZ"),
    "brno": (49.1951, 16.6068, "CZ"),
    "ostrava": (49.8209, 18.2625, "CZ"),
    "london": (51.5074, -0.1278, "GB"),
    "berlin": (52.5200, 13.4050, "DE"),
    "paris": (48.8566, 2.3522, "FR"),
    "amsterdam": (52.3676, 4.9041, "NL"),
    "vienna": (48.2082, 16.3738, "AT"),
    "warsaw": (52.2297, 21.0122, "PL"),
    "budapest": (47.4979, 19.0402, "HU"),
    "munich": (48.1351, 11.5820, "DE"),
}

DEFAULT_RADIUS_KM = 10


def radius_km(value: Any) -> Optional[int]:
    """Accept 50, "50" or "50km"."""
    if value is None:
        return None
    digits = str(value).strip().lower().removesuffix("km").strip()
    return int(digits) if digits.isdigit() else None


def map_predicthq_event(raw: dict[str, Any], requested_city: Optional[str] = None) -> Optional[Event]:
    """Map one PredictHQ result onto Event. Returns None for incomplete records."""
    date = parse_event_datetime(raw.get("start"))
    if not raw.get("id") or not raw.get("title") or date is None:
        return None

    location = raw.get("location") if isinstance(raw.get("location"), dict) else None
    place = location or raw.get("place") or {}
    venue = None
    for entity in raw.get("entities") or []:
        if entity.get("type") == "venue":
            venue = entity.get("name")
            break

    attendance = raw.get("phq_attendance")

    return Event(
        id=f"phq_{raw['id']}",
        title=raw["title"],
        description=raw.get("description") or None,
        date=date,
        end_date=parse_event_datetime(raw.get("end")),
        city=place.get("city") or requested_city or "Unknown",
        venue=venue or place.get("name"),
        category=map_provider_category("predicthq", raw.get("category")),
        subcategory=raw.get("subcategory"),
        expected_attendees=int(attendance) if attendance else None,
        source="predicthq",
        source_id=raw["id"],
    )


class PredictHQSource:
    """Events API client. One GET per strategy run."""

    name = "predicthq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        base_url: str = PREDICTHQ_API_URL,
    ):
        self.api_key = api_key or os.environ.get("PREDICTHQ_API_KEY")
        self.timeout = timeout
        self.base_url = base_url

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _location(self, city: Optional[str], radius: Optional[int] = None) -> dict[str, Any]:
        known = CITY_COORDINATES.get(fold_text(city))
        if known:
            lat, lon, country = known
            return {"within": f"{radius or DEFAULT_RADIUS_KM}km@{lat},{lon}", "country": country}
        return {"q": city} if city else {}

    def build_params(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "active.gte": query.date_from.isoformat(),
            "active.lte": query.date_to.isoformat(),
            "limit": PAGE_LIMIT,
            "sort": "start",
        }
        categories = provider_search_terms(self.name, query.category)
        if categories:
            request["category"] = ",".join(categories)

        if strategy == "city":
            request.update(self._location(query.city))
        elif strategy == "keyword":
            request["q"] = query.keyword or query.category
            if query.city:
                request.update({k: v for k, v in self._location(query.city).items() if k != "q"})
        elif strategy == "high_attendance":
            request.update(self._location(query.city))
            request["phq_attendance.gte"] = params.get("min_attendance", 1000)
            request["sort"] = "-phq_attendance"
        elif strategy == "high_rank":
            request.update(self._location(query.city))
            request["local_rank.gte"] = params.get("min_rank", 50)
            request["sort"] = "-local_rank"
        elif strategy in ("radius", "extended_radius"):
            radius = params.get("radius") or query.radius
            request.update(self._location(query.city, radius_km(radius)))
        else:
            raise ValueError(f"Unknown PredictHQ strategy: {strategy}")

        return {k: v for k, v in request.items() if v not in (None, "")}

    async def search(
        self, strategy: str, query: SearchQuery, params: dict[str, Any]
    ) -> list[Event]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "PREDICTHQ_API_KEY not set")

        request = self.build_params(strategy, query, params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/events/",
                    params=request,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Accept": "application/json",
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailable(self.name, f"HTTP {e.response.status_code}") from e

        raw_events = data.get("results") or []
        events = [
            event for event in (map_predicthq_event(raw, query.city) for raw in raw_events)
            if event is not None
        ]
        logger.debug(
            "predicthq_search_complete",
            strategy=strategy,
            raw=len(raw_events),
            mapped=len(events),
        )
        return events
