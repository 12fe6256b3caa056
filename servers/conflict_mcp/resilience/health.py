"""Health monitoring for event providers."""

from datetime import datetime
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


class HealthMonitor:
    """Track provider health across aggregations.

    Every strategy outcome is recorded here; the tool server's ``health``
    tool reports it together with circuit breaker state.
    """

    def __init__(self):
        self.status: dict[str, dict[str, Any]] = {}

    def _entry(self, provider: str) -> dict[str, Any]:
        return self.status.get(provider, {"consecutive_failures": 0, "total_failures": 0})

    def record_success(
        self, provider: str, event_count: int, strategy: Optional[str] = None
    ) -> None:
        """Record a successful strategy run for a provider."""
        current = self._entry(provider)
        self.status[provider] = {
            "healthy": True,
            "last_check": datetime.now().isoformat(),
            "event_count": event_count,
            "last_strategy": strategy,
            "consecutive_failures": 0,
            "total_failures": current.get("total_failures", 0),
            "last_error": None,
        }
        logger.debug(
            "provider_healthy",
            provider=provider,
            strategy=strategy,
            event_count=event_count,
        )

    def record_failure(
        self, provider: str, error: str, strategy: Optional[str] = None
    ) -> None:
        """Record a failed strategy run (error, timeout, open circuit)."""
        current = self._entry(provider)
        consecutive = current.get("consecutive_failures", 0) + 1

        self.status[provider] = {
            "healthy": False,
            "last_check": datetime.now().isoformat(),
            "event_count": 0,
            "last_strategy": strategy,
            "consecutive_failures": consecutive,
            "total_failures": current.get("total_failures", 0) + 1,
            "last_error": error,
        }
        logger.warning(
            "provider_unhealthy",
            provider=provider,
            strategy=strategy,
            consecutive_failures=consecutive,
            error=error,
        )

    def is_healthy(self, provider: str) -> bool:
        """Unknown providers count as healthy."""
        return self.status.get(provider, {}).get("healthy", True)

    def get_provider_status(self, provider: str) -> dict[str, Any] | None:
        return self.status.get(provider)

    def get_status(self) -> dict[str, Any]:
        """Full health report with a healthy/unhealthy summary."""
        healthy_count = sum(1 for s in self.status.values() if s.get("healthy", False))
        total_count = len(self.status)

        return {
            "timestamp": datetime.now().isoformat(),
            "summary": {
                "healthy": healthy_count,
                "unhealthy": total_count - healthy_count,
                "total": total_count,
            },
            "providers": self.status,
        }

    def get_healthy_providers(self) -> list[str]:
        return [name for name, status in self.status.items() if status.get("healthy", False)]

    def get_unhealthy_providers(self) -> list[str]:
        return [
            name for name, status in self.status.items() if not status.get("healthy", True)
        ]

    def reset(self, provider: str | None = None) -> None:
        """Reset health status for one provider, or all when None."""
        if provider:
            self.status.pop(provider, None)
        else:
            self.status.clear()
