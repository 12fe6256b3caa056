"""
Conflict Scoring Engine MCP Server

This MCP server provides tools for:
- Aggregating competing events from multiple providers (Ticketmaster, PredictHQ, Firecrawl)
- Deduplicating events using fuzzy matching
- Classifying category conflicts (exact, rule table, AI-assisted)
- Scoring candidate dates with seasonal and holiday adjustments

Target: Czech Republic cities (Prague, Brno, Ostrava)
"""

__version__ = "1.0.0"
