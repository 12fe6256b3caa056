"""
Key-value cache stores for classifier and seasonality results.

Contract:
- async get(key) -> value | None
- async put(key, value)

Values are plain JSON-compatible dicts. There is no TTL and no eviction;
callers build keys from every input that affects the cached value.
A failing store raises CacheUnavailable and callers compute directly.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar, Union

import structlog
from pydantic import BaseModel

from .errors import CacheUnavailable
from .resilience import with_default

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

# Namespaces used by the engine
CATEGORY_CACHE = "category_match_cache"
SEASONAL_CACHE = "seasonal_insights_cache"
HOLIDAY_CACHE = "holiday_impact_cache"


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[dict[str, Any]]: ...

    async def put(self, key: str, value: dict[str, Any]) -> None: ...


class InMemoryCache:
    """Process-local cache. Append-only."""

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self._data: dict[str, dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        value = self._data.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    async def put(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def stats(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "entries": len(self._data),
            "hits": self.hits,
            "misses": self.misses,
        }


class JsonFileCache:
    """
    Cache persisted to a JSON file, one object per namespace.

    The whole file is loaded lazily on first access and rewritten on
    every put. Suitable for small rule caches shared between runs.
    """

    def __init__(self, path: Union[str, Path], namespace: str = "default"):
        self.path = Path(path)
        self.namespace = namespace
        self._data: Optional[dict[str, dict[str, Any]]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._data is not None:
            return self._data
        try:
            if self.path.exists():
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                entries = raw.get(self.namespace, {}) if isinstance(raw, dict) else {}
                if not isinstance(entries, dict):
                    raise CacheUnavailable(
                        f"Cache file {self.path} has no mapping under '{self.namespace}'"
                    )
                self._data = entries
            else:
                self._data = {}
        except (OSError, json.JSONDecodeError) as e:
            raise CacheUnavailable(f"Cannot read cache file {self.path}: {e}") from e
        return self._data

    def _write(self) -> None:
        try:
            existing: dict[str, Any] = {}
            if self.path.exists():
                loaded = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    existing = loaded
            existing[self.namespace] = self._data
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(existing, ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except (OSError, json.JSONDecodeError, TypeError) as e:
            raise CacheUnavailable(f"Cannot write cache file {self.path}: {e}") from e

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        return self._load().get(key)

    async def put(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            self._load()[key] = value
            self._write()


async def get_or_compute(
    cache: Optional[CacheStore],
    key: str,
    model: type[M],
    compute: Callable[[], Union[M, Awaitable[M]]],
    store_if: Callable[[M], bool] = lambda _: True,
) -> M:
    """
    Return the cached model for ``key`` or compute, store and return it.

    Cache failures never fail the caller: a broken store behaves like a
    miss and the computed value is returned without being stored.
    Concurrent misses may compute twice; the last write wins.
    """
    if cache is not None:
        cached = await with_default(cache.get, None, key, recover=(CacheUnavailable,))
        if cached is not None:
            try:
                return model.model_validate(cached)
            except ValueError as e:
                logger.warning("cache_entry_invalid", key=key, error=str(e))

    value = compute()
    if asyncio.iscoroutine(value) or isinstance(value, asyncio.Future):
        value = await value

    if cache is not None and store_if(value):
        await with_default(
            cache.put, None, key, value.model_dump(mode="json"), recover=(CacheUnavailable,)
        )
    return value
