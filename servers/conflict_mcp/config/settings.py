"""
Engine configuration.

Defaults live in a nested dict (get_default_config). A JSON file can
override any subset of keys; load_config merges it over the defaults,
migrates old layouts, validates, reads API keys from the environment
and returns a typed EngineConfig.

Config versions:
- v1: flat aggregation keys (early_return_threshold, max_retries, ...)
- v2: nested "aggregation" section, per-provider strategy ladders
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger(__name__)

CURRENT_VERSION = 2

API_KEY_ENV_VARS = {
    "ticketmaster": "TICKETMASTER_API_KEY",
    "predicthq": "PREDICTHQ_API_KEY",
    "firecrawl": "FIRECRAWL_API_KEY",
    "openai": "OPENAI_API_KEY",
}

# Inputs a strategy needs before it can run
STRATEGY_REQUIREMENTS = ("city", "keyword", "radius")

# v1 keys that moved under "aggregation" in v2
_V1_AGGREGATION_KEYS = (
    "early_return_threshold",
    "enable_early_return",
    "max_retries",
    "max_events_per_strategy",
)


class StrategyConfig(BaseModel):
    """One rung of a provider's strategy ladder."""

    name: str
    enabled: bool = True
    timeout: float = 15.0  # seconds
    requires: Optional[str] = None  # city, keyword, radius
    params: dict[str, Any] = Field(default_factory=dict)


class ProviderConfig(BaseModel):
    enabled: bool = True
    max_concurrent_strategies: int = 3
    strategies: list[StrategyConfig] = Field(default_factory=list)


class CircuitBreakerConfig(BaseModel):
    failure_threshold: int = 5
    recovery_timeout: float = 60.0


class AggregationConfig(BaseModel):
    early_return_threshold: int = 50
    enable_early_return: bool = True
    max_retries: int = 2
    retry_base_delay: float = 0.5
    max_events_per_strategy: int = 1000
    max_total_fetches: int = 8
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)


class DeduplicationConfig(BaseModel):
    threshold: float = 0.8
    max_events: Optional[int] = None  # defaults to max_events_per_strategy
    source_priority: dict[str, int] = Field(default_factory=dict)


class ClassificationConfig(BaseModel):
    ai_enabled: bool = True
    model: str = "gpt-4o-mini"
    timeout: float = 15.0


class ScoringSettings(BaseModel):
    max_comparisons: int = 50
    high_risk_threshold: float = 14.0
    workers: int = 4


class CacheConfig(BaseModel):
    backend: str = "memory"  # memory, json
    path: Optional[str] = None


class EngineConfig(BaseModel):
    """Typed view of the merged configuration dict."""

    version: int = CURRENT_VERSION
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    default_region: str = "CZ"
    api_keys: dict[str, Optional[str]] = Field(default_factory=dict)

    def api_key(self, provider: str) -> Optional[str]:
        return self.api_keys.get(provider)


def _strategy(name: str, timeout: float, requires: Optional[str] = None, **params: Any) -> dict[str, Any]:
    return {"name": name, "enabled": True, "timeout": timeout, "requires": requires, "params": params}


def get_default_config() -> dict[str, Any]:
    """Return default config for new installations."""
    return {
        "version": CURRENT_VERSION,
        "default_region": "CZ",
        "aggregation": {
            "early_return_threshold": 50,
            "enable_early_return": True,
            "max_retries": 2,
            "retry_base_delay": 0.5,
            "max_events_per_strategy": 1000,
            "max_total_fetches": 8,
            "circuit_breaker": {
                "failure_threshold": 5,
                "recovery_timeout": 60,
            },
        },
        "providers": {
            "ticketmaster": {
                "enabled": True,
                "max_concurrent_strategies": 3,
                "strategies": [
                    _strategy("direct_city", 10, "city"),
                    _strategy("radius_search", 15, "radius", radius="50"),
                    _strategy("market_based", 12, "city"),
                    _strategy("keyword_search", 10, "keyword"),
                    _strategy("extended_radius", 20, "radius", radius="100"),
                ],
            },
            "predicthq": {
                "enabled": True,
                "max_concurrent_strategies": 4,
                "strategies": [
                    _strategy("city", 10, "city"),
                    _strategy("keyword", 10, "keyword"),
                    _strategy("high_attendance", 12, "city", min_attendance=1000),
                    _strategy("high_rank", 12, "city", min_rank=50),
                    _strategy("radius", 15, "radius", radius="50km"),
                    _strategy("extended_radius", 20, "radius", radius="100km"),
                ],
            },
            "firecrawl": {
                "enabled": True,
                "max_concurrent_strategies": 2,
                "strategies": [
                    _strategy("venue_calendars", 60, "city"),
                    {**_strategy("venue_crawl", 120, "city", max_pages=10), "enabled": False},
                ],
            },
        },
        "deduplication": {
            "threshold": 0.8,
            "max_events": None,
            "source_priority": {
                "ticketmaster": 3,
                "predicthq": 2,
                "firecrawl": 1,
                "scraper": 1,
                "manual": 0,
            },
        },
        "classification": {
            "ai_enabled": True,
            "model": "gpt-4o-mini",
            "timeout": 15,
        },
        "scoring": {
            "max_comparisons": 50,
            "high_risk_threshold": 14,
            "workers": 4,
        },
        "cache": {
            "backend": "memory",
            "path": None,
        },
    }


def migrate_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate config from any version to current.

    Args:
        config: Raw config dict (may be any version)

    Returns:
        Config dict at CURRENT_VERSION
    """
    version = config.get("version", 1)

    if version == CURRENT_VERSION:
        return config

    log.info("migrating_config", from_version=version, to_version=CURRENT_VERSION)

    if version == 1:
        config = _migrate_v1_to_v2(config)

    config["version"] = CURRENT_VERSION
    return config


def _migrate_v1_to_v2(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate v1 config to v2 format.

    Changes:
    - flat aggregation keys -> aggregation section
    - deduplication_threshold -> deduplication.threshold
    """
    migrated = config.copy()

    moved = {k: migrated.pop(k) for k in _V1_AGGREGATION_KEYS if k in migrated}
    if moved:
        migrated.setdefault("aggregation", {}).update(moved)
        log.info("migrated_aggregation_keys", keys=sorted(moved))

    if "deduplication_threshold" in migrated:
        migrated.setdefault("deduplication", {})["threshold"] = migrated.pop("deduplication_threshold")
        log.info("migrated_dedup_threshold")

    return migrated


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; lists and scalars in ``override`` replace."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: dict[str, Any]) -> list[str]:
    """
    Validate config and return list of errors.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []

    version = config.get("version", 1)
    if version > CURRENT_VERSION:
        errors.append(
            f"Config version {version} is newer than supported version {CURRENT_VERSION}"
        )

    aggregation = config.get("aggregation", {})
    if aggregation.get("early_return_threshold", 50) < 1:
        errors.append("aggregation.early_return_threshold must be at least 1")
    if aggregation.get("max_retries", 2) < 0:
        errors.append("aggregation.max_retries must not be negative")
    if aggregation.get("max_total_fetches", 8) < 1:
        errors.append("aggregation.max_total_fetches must be at least 1")

    for provider, settings in config.get("providers", {}).items():
        if settings.get("max_concurrent_strategies", 1) < 1:
            errors.append(f"providers.{provider}.max_concurrent_strategies must be at least 1")
        for strategy in settings.get("strategies", []):
            name = strategy.get("name")
            if not name:
                errors.append(f"providers.{provider}: strategy without a name")
                continue
            if strategy.get("timeout", 1) <= 0:
                errors.append(f"providers.{provider}.{name}: timeout must be positive")
            requires = strategy.get("requires")
            if requires and requires not in STRATEGY_REQUIREMENTS:
                errors.append(f"providers.{provider}.{name}: unknown requirement '{requires}'")

    threshold = config.get("deduplication", {}).get("threshold", 0.8)
    if not 0 < threshold <= 1:
        errors.append(f"Invalid deduplication threshold: {threshold} (must be 0-1)")

    scoring = config.get("scoring", {})
    if scoring.get("max_comparisons", 50) < 0:
        errors.append("scoring.max_comparisons must not be negative")
    if not 0 <= scoring.get("high_risk_threshold", 14) <= 20:
        errors.append("scoring.high_risk_threshold must be within 0-20")

    backend = config.get("cache", {}).get("backend", "memory")
    if backend not in ("memory", "json"):
        errors.append(f"Unknown cache backend: {backend}")
    elif backend == "json" and not config.get("cache", {}).get("path"):
        errors.append("cache.path is required for the json backend")

    return errors


def env_api_keys() -> dict[str, Optional[str]]:
    return {provider: os.environ.get(var) or None for provider, var in API_KEY_ENV_VARS.items()}


def build_config(overrides: Optional[dict[str, Any]] = None) -> EngineConfig:
    """Merge overrides over defaults, validate and attach environment API keys."""
    raw = get_default_config()
    if overrides:
        raw = merge_config(raw, migrate_config(dict(overrides)))

    errors = validate_config(raw)
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    keys = env_api_keys()
    keys.update({k: v for k, v in raw.pop("api_keys", {}).items() if v})
    return EngineConfig.model_validate({**raw, "api_keys": keys})


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load a JSON config file (optional) merged over the defaults."""
    overrides: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        overrides = json.loads(path.read_text(encoding="utf-8"))
        log.info("config_loaded", path=str(path))
    return build_config(overrides)
