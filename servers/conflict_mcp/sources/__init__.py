"""
Event source adapters.

Each source implements:
- search(strategy, query, params) -> list[Event]
- Provider-specific request building and payload mapping
"""

from .base import EventSource, StaticEventSource
from .firecrawl import FirecrawlSource, VenueCalendar
from .predicthq import PredictHQSource, map_predicthq_event
from .ticketmaster import TicketmasterSource, map_ticketmaster_event

__all__ = [
    "EventSource",
    "StaticEventSource",
    "TicketmasterSource",
    "PredictHQSource",
    "FirecrawlSource",
    "VenueCalendar",
    "map_ticketmaster_event",
    "map_predicthq_event",
]
