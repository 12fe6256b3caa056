"""Tests for configuration defaults, migration, validation and loading."""

import json
from pathlib import Path

import pytest

from servers.conflict_mcp.config.settings import (
    CURRENT_VERSION,
    EngineConfig,
    build_config,
    env_api_keys,
    get_default_config,
    load_config,
    merge_config,
    migrate_config,
    validate_config,
)


class TestDefaults:
    """Tests for the default configuration."""

    def test_defaults_are_valid(self):
        assert validate_config(get_default_config()) == []

    def test_default_ladders(self):
        config = build_config()
        assert isinstance(config, EngineConfig)
        assert config.aggregation.early_return_threshold == 50
        assert [s.name for s in config.providers["ticketmaster"].strategies] == [
            "direct_city", "radius_search", "market_based", "keyword_search", "extended_radius",
        ]
        assert config.providers["predicthq"].max_concurrent_strategies == 4

    def test_venue_crawl_off_by_default(self):
        strategies = {s.name: s for s in build_config().providers["firecrawl"].strategies}
        assert strategies["venue_calendars"].enabled is True
        assert strategies["venue_crawl"].enabled is False


class TestMerge:
    """Tests for merge_config."""

    def test_nested_override(self):
        merged = merge_config({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}})
        assert merged == {"a": {"b": 1, "c": 3}}

    def test_lists_replace(self):
        merged = merge_config({"items": [1, 2]}, {"items": [3]})
        assert merged == {"items": [3]}

    def test_base_not_mutated(self):
        base = {"a": {"b": 1}}
        merge_config(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestMigration:
    """Tests for config migration."""

    def test_current_version_unchanged(self):
        config = {"version": CURRENT_VERSION, "aggregation": {"max_retries": 1}}
        assert migrate_config(config) == config

    def test_v1_flat_keys_moved(self):
        migrated = migrate_config({
            "version": 1,
            "early_return_threshold": 20,
            "max_retries": 0,
            "deduplication_threshold": 0.9,
        })
        assert migrated["version"] == CURRENT_VERSION
        assert migrated["aggregation"] == {"early_return_threshold": 20, "max_retries": 0}
        assert migrated["deduplication"] == {"threshold": 0.9}
        assert "max_retries" not in migrated

    def test_missing_version_treated_as_v1(self):
        migrated = migrate_config({"enable_early_return": False})
        assert migrated["aggregation"] == {"enable_early_return": False}

    def test_build_applies_migration(self):
        config = build_config({"version": 1, "early_return_threshold": 10})
        assert config.aggregation.early_return_threshold == 10
        assert config.aggregation.max_retries == 2


class TestValidation:
    """Tests for validate_config."""

    def test_future_version(self):
        errors = validate_config({"version": CURRENT_VERSION + 1})
        assert "newer than supported" in errors[0]

    def test_bad_dedup_threshold(self):
        errors = validate_config({"deduplication": {"threshold": 1.5}})
        assert errors == ["Invalid deduplication threshold: 1.5 (must be 0-1)"]

    def test_bad_strategy(self):
        errors = validate_config({"providers": {"tm": {"strategies": [
            {"name": "direct", "timeout": 0},
            {"name": "near", "requires": "postcode"},
            {"timeout": 5},
        ]}}})
        assert errors == [
            "providers.tm.direct: timeout must be positive",
            "providers.tm.near: unknown requirement 'postcode'",
            "providers.tm: strategy without a name",
        ]

    def test_json_cache_needs_path(self):
        assert validate_config({"cache": {"backend": "json"}}) == [
            "cache.path is required for the json backend"
        ]
        assert validate_config({"cache": {"backend": "redis"}}) == ["Unknown cache backend: redis"]

    def test_build_rejects_invalid(self):
        with pytest.raises(ValueError, match="Invalid configuration"):
            build_config({"aggregation": {"early_return_threshold": 0}})


class TestApiKeys:
    """Tests for API key resolution."""

    def test_keys_from_environment(self, monkeypatch):
        monkeypatch.setenv("TICKETMASTER_API_KEY", "tm-key")
        monkeypatch.delenv("PREDICTHQ_API_KEY", raising=False)
        keys = env_api_keys()
        assert keys["ticketmaster"] == "tm-key"
        assert keys["predicthq"] is None

    def test_empty_variable_is_missing(self, monkeypatch):
        monkeypatch.setenv("FIRECRAWL_API_KEY", "")
        assert env_api_keys()["firecrawl"] is None

    def test_config_keys_override_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")
        config = build_config({"api_keys": {"openai": "file-key", "predicthq": None}})
        assert config.api_key("openai") == "file-key"
        assert config.api_key("unknown") is None


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_path_gives_defaults(self):
        assert load_config().scoring.high_risk_threshold == 14

    def test_file_overrides(self, tmp_path: Path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({
            "version": 2,
            "scoring": {"max_comparisons": 10},
            "cache": {"backend": "json", "path": str(tmp_path / "cache")},
        }))

        config = load_config(path)

        assert config.scoring.max_comparisons == 10
        assert config.scoring.workers == 4
        assert config.cache.backend == "json"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")
