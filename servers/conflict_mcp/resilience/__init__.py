"""Resilience patterns keeping provider failures out of the scoring path."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from .fallback import with_default
from .health import HealthMonitor
from .retry import TRANSIENT_ERRORS, retry_once, retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "retry_once",
    "TRANSIENT_ERRORS",
    "CircuitBreaker",
    "CircuitState",
    "CircuitBreakerOpenError",
    "HealthMonitor",
    "with_default",
]
