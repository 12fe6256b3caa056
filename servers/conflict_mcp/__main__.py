"""
MCP Server entry point for the Conflict Scoring Engine.

This server provides tools for:
- Scoring candidate dates against competing events
- Fetching and deduplicating competing events
- Classifying category conflicts
- Seasonal demand and holiday impact lookups

Run with: python -m servers.conflict_mcp
"""

import asyncio
import sys
from datetime import date, datetime, timedelta
from typing import Optional

from .engine import ConflictAnalysisEngine, build_engine
from .errors import InvalidQuery
from .models import (
    AnalysisDepth,
    AnalysisRequest,
    DateRange,
    Event,
    SearchQuery,
)

# MCP server implementation
# Note: In a full implementation, you would use the official MCP SDK
# For now, this provides a JSON-RPC style interface


class ConflictAnalysisServer:
    """MCP Server for event date conflict analysis."""

    def __init__(self, engine: Optional[ConflictAnalysisEngine] = None):
        self.engine = engine or build_engine()
        self.tools = {
            "analyze_dates": self.analyze_dates,
            "fetch_events": self.fetch_events,
            "deduplicate": self.deduplicate,
            "classify": self.classify,
            "seasonality": self.seasonality,
            "holiday_impact": self.holiday_impact,
            "health": self.health,
        }

    async def analyze_dates(
        self,
        city: str,
        category: str,
        candidate_dates: list[str],
        subcategory: Optional[str] = None,
        expected_attendees: int = 0,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        country: str = "CZ",
        region: Optional[str] = None,
        keyword: Optional[str] = None,
        depth: str = "medium",
    ) -> dict:
        """
        Score candidate dates for a planned event.

        Args:
            city: City of the planned event
            category: Planned event category
            candidate_dates: Dates to score (YYYY-MM-DD)
            subcategory: Planned event subcategory
            expected_attendees: Planned attendance
            date_from: Start of the context window (YYYY-MM-DD)
            date_to: End of the context window (YYYY-MM-DD)
            country: ISO country code for holidays
            region: Region code (e.g. CZ-PR) for regional observances
            keyword: Extra search keyword for providers
            depth: shallow, medium or deep
        """
        try:
            request = AnalysisRequest(
                city=city,
                category=category,
                subcategory=subcategory,
                expected_attendees=expected_attendees,
                candidate_dates=[date.fromisoformat(d) for d in candidate_dates],
                date_range=(
                    DateRange(start=date.fromisoformat(date_from), end=date.fromisoformat(date_to))
                    if date_from and date_to else None
                ),
                country=country,
                region=region,
                keyword=keyword,
                depth=AnalysisDepth(depth),
            )
            result = await self.engine.analyze(request)
        except (InvalidQuery, ValueError) as e:
            return {"error": str(e)}

        return result.model_dump(mode="json")

    def _normalize_dates(
        self, date_from: Optional[str], date_to: Optional[str]
    ) -> tuple[date, date]:
        """Set default date range if not provided."""
        start = date.fromisoformat(date_from) if date_from else datetime.now().date()
        end = date.fromisoformat(date_to) if date_to else start + timedelta(days=7)
        return start, end

    async def fetch_events(
        self,
        city: Optional[str] = None,
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        radius: Optional[str] = None,
    ) -> dict:
        """
        Fetch competing events from all configured providers.

        Args:
            city: City to search
            keyword: Free-text keyword
            category: Category to search for
            date_from: Start date (YYYY-MM-DD)
            date_to: End date (YYYY-MM-DD)
            radius: Search radius for radius strategies
        """
        start, end = self._normalize_dates(date_from, date_to)
        try:
            result = await self.engine.aggregator.aggregate(SearchQuery(
                city=city,
                keyword=keyword,
                category=category,
                date_from=start,
                date_to=end,
                radius=radius,
            ))
        except InvalidQuery as e:
            return {"error": str(e)}

        return result.model_dump(mode="json")

    async def deduplicate(
        self,
        events: list[dict],
        threshold: float = 0.8
    ) -> dict:
        """Deduplicate a list of events."""
        from .dedup import deduplicate as dedup_func, format_audit_summary

        # Convert dicts to Event objects
        event_objects = [Event(**e) for e in events]

        result = dedup_func(event_objects, threshold=threshold)

        return {**result.model_dump(mode="json"), "summary": format_audit_summary(result)}

    async def classify(
        self,
        competing_category: str,
        planned_category: str,
        competing_subcategory: Optional[str] = None,
        planned_subcategory: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        """Conflict weight between a competing and a planned category."""
        weight = await self.engine.classifier.classify(
            competing_category,
            competing_subcategory,
            planned_category,
            planned_subcategory,
            title=title,
            description=description,
        )
        return weight.model_dump(mode="json")

    async def seasonality(
        self,
        category: str,
        subcategory: Optional[str] = None,
        region: Optional[str] = None,
        on_date: Optional[str] = None,
    ) -> dict:
        """
        Seasonal demand for a category.

        With ``on_date`` returns that month's multiplier, otherwise the
        twelve-month demand curve.
        """
        seasonality = self.engine.seasonality
        if on_date:
            multiplier = await seasonality.get_seasonal_multiplier(
                date.fromisoformat(on_date), category, subcategory, region
            )
            return multiplier.model_dump(mode="json")

        curve = seasonality.get_demand_curve(category, subcategory, region)
        return curve.model_dump(mode="json")

    async def holiday_impact(
        self,
        on_date: str,
        category: str,
        subcategory: Optional[str] = None,
        country: str = "CZ",
        region: Optional[str] = None,
    ) -> dict:
        """Holiday impact for a date, plus observances in the following week."""
        day = date.fromisoformat(on_date)
        holidays = self.engine.holidays
        impact = await holidays.get_holiday_impact(day, category, subcategory, country, region)
        upcoming = holidays.get_upcoming_holidays(day, day + timedelta(days=7), country, region)
        return {
            **impact.model_dump(mode="json"),
            "upcoming": [h.model_dump(mode="json") for h in upcoming],
        }

    async def health(self) -> dict:
        """Provider health and circuit breaker state."""
        return self.engine.aggregator.get_status()


def sample_events(today: date) -> list[Event]:
    """Small offline event set used by --test."""
    base = datetime.combine(today + timedelta(days=14), datetime.min.time()).replace(hour=19)
    return [
        Event(
            id="sample_1",
            title="Prague Developer Summit",
            description="Two days of talks on cloud platforms, AI tooling and developer experience.",
            date=base,
            end_date=base + timedelta(days=1),
            city="Prague",
            venue="O2 universum",
            category="Technology",
            subcategory="Web Development",
            expected_attendees=1200,
            source="manual",
            source_id="1",
        ),
        Event(
            id="sample_2",
            title="Jazz at Lucerna",
            date=base + timedelta(days=1),
            city="Prague",
            venue="Lucerna Music Bar",
            category="Entertainment",
            subcategory="Music",
            expected_attendees=300,
            source="manual",
            source_id="2",
        ),
        Event(
            id="sample_3",
            title="Startup Pitch Night",
            date=base + timedelta(days=3),
            city="Prague",
            category="Business",
            subcategory="Networking",
            expected_attendees=150,
            source="manual",
            source_id="3",
        ),
    ]


async def main():
    """Main entry point for MCP server."""
    from .sources import StaticEventSource

    if "--test" in sys.argv:
        today = datetime.now().date()
        server = ConflictAnalysisServer(
            build_engine(sources=[StaticEventSource(sample_events(today))])
        )
    else:
        server = ConflictAnalysisServer()

    # Simple JSON-RPC style interface for testing
    # In production, use the official MCP SDK

    print("Conflict Scoring Engine MCP Server")
    print("Available tools:", list(server.tools.keys()))
    print("\nServer ready.")

    # For testing: run a sample analysis against the static source
    if "--test" in sys.argv:
        print("\n--- Running test analysis ---")
        candidates = [(today + timedelta(days=d)).isoformat() for d in (13, 14, 15, 17)]
        result = await server.analyze_dates(
            city="Prague",
            category="Technology",
            subcategory="Web Development",
            expected_attendees=800,
            candidate_dates=candidates,
        )
        for key in ("recommended_dates", "high_risk_dates"):
            for analysis in result[key]:
                print(
                    f"  {analysis['date']}: {analysis['conflict_score']['score']:.1f} "
                    f"({analysis['risk']}) - {analysis['recommendation']}"
                )
        for warning in result["warnings"]:
            print(f"  warning: {warning}")

    server.engine.close()


if __name__ == "__main__":
    asyncio.run(main())
