"""
Multi-provider event aggregation.

Each provider walks its strategy ladder in declared order, in waves of
at most ``max_concurrent_strategies``. After every wave the distinct
event count (by unique_key) is checked against the early-return
threshold; once reached, the rest of the ladder is skipped. Providers
run concurrently under one global fan-out semaphore.

Failures never escape: a strategy that errors, times out or hits an
open circuit contributes no events and is recorded in the provider's
report and the health monitor.
"""

import asyncio
import time
from typing import Optional

import structlog

from .config.settings import EngineConfig, ProviderConfig, StrategyConfig, build_config
from .errors import InvalidQuery, ProviderUnavailable
from .models import AggregationResult, Event, ProviderReport, SearchQuery, StrategyStats
from .resilience import CircuitBreaker, CircuitBreakerOpenError, HealthMonitor, retry_once
from .sources.base import EventSource

logger = structlog.get_logger()

# Ladder used for sources without a configured one (static/manual sources)
DEFAULT_LADDER = ProviderConfig(
    max_concurrent_strategies=1,
    strategies=[StrategyConfig(name="all", timeout=10.0)],
)


def missing_requirement(strategy: StrategyConfig, query: SearchQuery) -> Optional[str]:
    """Name of the query input the strategy needs but lacks, else None."""
    if strategy.requires == "city" and not query.city:
        return "city"
    if strategy.requires == "keyword" and not (query.keyword or query.category):
        return "keyword"
    if strategy.requires == "radius":
        if not query.city:
            return "city"
        if not (strategy.params.get("radius") or query.radius):
            return "radius"
    return None


class SourceAggregator:
    """Runs every enabled provider's strategy ladder for one query."""

    def __init__(
        self,
        sources: list[EventSource],
        config: Optional[EngineConfig] = None,
        health: Optional[HealthMonitor] = None,
    ):
        self.config = config or build_config()
        self.sources = {source.name: source for source in sources}
        self.health = health or HealthMonitor()

        breaker_config = self.config.aggregation.circuit_breaker
        self.breakers = {
            name: CircuitBreaker(
                failure_threshold=breaker_config.failure_threshold,
                recovery_timeout=breaker_config.recovery_timeout,
                name=name,
            )
            for name in self.sources
        }

    def ladder_for(self, provider: str) -> ProviderConfig:
        return self.config.providers.get(provider, DEFAULT_LADDER)

    async def aggregate(self, query: SearchQuery) -> AggregationResult:
        """Fetch events from all providers. Raises InvalidQuery only."""
        if not query.city and not query.keyword:
            raise InvalidQuery("Either city or keyword is required")
        if query.date_from > query.date_to:
            raise InvalidQuery(
                f"date_from {query.date_from} is after date_to {query.date_to}"
            )

        semaphore = asyncio.Semaphore(self.config.aggregation.max_total_fetches)
        outcomes = await asyncio.gather(*(
            self._run_provider(name, source, query, semaphore)
            for name, source in self.sources.items()
        ))

        events: list[Event] = []
        reports: list[ProviderReport] = []
        for report, provider_events in outcomes:
            reports.append(report)
            events.extend(provider_events)

        logger.info(
            "aggregation_complete",
            city=query.city,
            keyword=query.keyword,
            total=len(events),
            unavailable=[r.provider for r in reports if r.status == "unavailable"],
        )
        return AggregationResult(events=events, providers=reports, total=len(events))

    async def _run_provider(
        self,
        name: str,
        source: EventSource,
        query: SearchQuery,
        semaphore: asyncio.Semaphore,
    ) -> tuple[ProviderReport, list[Event]]:
        ladder = self.ladder_for(name)

        if not ladder.enabled:
            return ProviderReport(provider=name, status="disabled"), []

        if not source.enabled:
            error = f"{name} credentials not configured"
            self.health.record_failure(name, error)
            logger.warning("provider_unavailable", provider=name, error=error)
            return ProviderReport(provider=name, status="unavailable", error_message=error), []

        settings = self.config.aggregation
        stats: dict[str, StrategyStats] = {}
        runnable: list[StrategyConfig] = []

        for strategy in ladder.strategies:
            if not strategy.enabled:
                stats[strategy.name] = StrategyStats(
                    strategy=strategy.name, count=0, status="skipped", error_message="disabled"
                )
                continue
            missing = missing_requirement(strategy, query)
            if missing:
                stats[strategy.name] = StrategyStats(
                    strategy=strategy.name, count=0, status="skipped",
                    error_message=f"missing {missing}",
                )
                continue
            runnable.append(strategy)

        events: list[Event] = []
        seen: set[str] = set()
        early_return = False
        wave_size = max(1, ladder.max_concurrent_strategies)

        for start in range(0, len(runnable), wave_size):
            if settings.enable_early_return and len(seen) >= settings.early_return_threshold:
                early_return = True
                for strategy in runnable[start:]:
                    stats[strategy.name] = StrategyStats(
                        strategy=strategy.name, count=0, status="skipped",
                        error_message="early return",
                    )
                logger.info(
                    "provider_early_return",
                    provider=name,
                    distinct_events=len(seen),
                    skipped=len(runnable) - start,
                )
                break

            wave = runnable[start:start + wave_size]
            results = await asyncio.gather(*(
                self._run_strategy(name, source, strategy, query, semaphore)
                for strategy in wave
            ))
            for strategy, (strategy_stats, strategy_events) in zip(wave, results):
                stats[strategy.name] = strategy_stats
                events.extend(strategy_events)
                seen.update(e.unique_key for e in strategy_events)

        ordered = [stats[s.name] for s in ladder.strategies if s.name in stats]
        ran = [s for s in ordered if s.status != "skipped"]
        failed = [s for s in ran if s.status in ("error", "timeout")]

        if ran and len(failed) == len(ran):
            status = "unavailable"
        elif failed:
            status = "partial"
        else:
            status = "ok"

        return ProviderReport(
            provider=name,
            status=status,
            event_count=len(events),
            early_return=early_return,
            strategies=ordered,
            error_message=failed[-1].error_message if failed else None,
        ), events

    async def _run_strategy(
        self,
        provider: str,
        source: EventSource,
        strategy: StrategyConfig,
        query: SearchQuery,
        semaphore: asyncio.Semaphore,
    ) -> tuple[StrategyStats, list[Event]]:
        settings = self.config.aggregation
        breaker = self.breakers[provider]
        started = time.perf_counter()

        async def attempt() -> list[Event]:
            return await asyncio.wait_for(
                retry_once(
                    source.search,
                    strategy.name,
                    query,
                    strategy.params,
                    max_retries=settings.max_retries,
                    base_delay=settings.retry_base_delay,
                ),
                timeout=strategy.timeout,
            )

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            async with semaphore:
                events = await breaker.call(attempt())
        except asyncio.TimeoutError:
            return self._failed(provider, strategy, "timeout",
                                f"Timed out after {strategy.timeout}s", elapsed_ms()), []
        except CircuitBreakerOpenError as e:
            return self._failed(provider, strategy, "error", str(e), elapsed_ms()), []
        except ProviderUnavailable as e:
            return self._failed(provider, strategy, "error", e.reason, elapsed_ms()), []
        except Exception as e:
            return self._failed(provider, strategy, "error", str(e) or type(e).__name__,
                                elapsed_ms()), []

        if len(events) > settings.max_events_per_strategy:
            logger.info(
                "strategy_results_truncated",
                provider=provider,
                strategy=strategy.name,
                count=len(events),
                limit=settings.max_events_per_strategy,
            )
            events = events[:settings.max_events_per_strategy]

        self.health.record_success(provider, len(events), strategy.name)
        logger.debug(
            "strategy_complete",
            provider=provider,
            strategy=strategy.name,
            count=len(events),
            duration_ms=elapsed_ms(),
        )
        return StrategyStats(
            strategy=strategy.name,
            count=len(events),
            status="success",
            duration_ms=elapsed_ms(),
        ), events

    def _failed(
        self,
        provider: str,
        strategy: StrategyConfig,
        status: str,
        error: str,
        duration_ms: int,
    ) -> StrategyStats:
        self.health.record_failure(provider, error, strategy.name)
        logger.warning(
            "strategy_failed",
            provider=provider,
            strategy=strategy.name,
            status=status,
            error=error,
        )
        return StrategyStats(
            strategy=strategy.name,
            count=0,
            status=status,
            duration_ms=duration_ms,
            error_message=error,
        )

    def get_status(self) -> dict:
        """Health and circuit state of every provider."""
        return {
            "providers": self.health.get_status()["providers"],
            "circuits": {name: b.get_status() for name, b in self.breakers.items()},
        }
