"""Circuit breaker guarding each event provider."""

from datetime import datetime
from enum import Enum
from typing import Any, Coroutine, TypeVar

import structlog

from ..errors import ProviderUnavailable

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(Enum):
    """States for the circuit breaker."""

    CLOSED = "closed"  # Provider reachable, strategies run
    OPEN = "open"  # Provider failing, strategies short-circuit
    HALF_OPEN = "half_open"  # Probing whether the provider recovered


class CircuitBreakerOpenError(ProviderUnavailable):
    """Raised when a provider's circuit is open and its calls are blocked."""

    def __init__(self, circuit_name: str):
        super().__init__(circuit_name, "circuit open")
        self.args = (f"Circuit breaker '{circuit_name}' is open",)
        self.circuit_name = circuit_name


class CircuitBreaker:
    """Circuit breaker for one provider.

    Repeated strategy failures open the circuit so the remaining ladder
    of that provider is skipped instead of waiting on timeouts. After a
    recovery timeout, probe calls are let through (half-open state).
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        name: str = "default",
        half_open_successes: int = 2,
    ):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery
            name: Provider name used in logs and errors
            half_open_successes: Probe successes required to close again
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.half_open_successes = half_open_successes
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time: datetime | None = None
        self.success_count_in_half_open = 0

    async def call(self, coro: Coroutine[Any, Any, T]) -> T:
        """Await a provider call with circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: If circuit is open
            Exception: If the call fails (after recording failure)
        """
        if not self.allow_request():
            coro.close()
            raise CircuitBreakerOpenError(self.name)

        try:
            result = await coro
            self._on_success()
            return result
        except Exception as e:
            self._on_failure(e)
            raise

    def allow_request(self) -> bool:
        """True when a call may go through, moving to half-open if due."""
        if self.state != CircuitState.OPEN:
            return True
        if self._should_attempt_reset():
            self._transition_to_half_open()
            return True
        return False

    def _should_attempt_reset(self) -> bool:
        if not self.last_failure_time:
            return True
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return elapsed >= self.recovery_timeout

    def _transition_to_half_open(self) -> None:
        self.state = CircuitState.HALF_OPEN
        self.success_count_in_half_open = 0
        logger.info("circuit_half_open", provider=self.name)

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count_in_half_open += 1
            if self.success_count_in_half_open >= self.half_open_successes:
                self._close_circuit()
        else:
            self.failure_count = 0

    def _close_circuit(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        logger.info("circuit_closed", provider=self.name)

    def _on_failure(self, error: Exception) -> None:
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._open_circuit(error)

    def _open_circuit(self, error: Exception) -> None:
        self.state = CircuitState.OPEN
        logger.warning(
            "circuit_opened",
            provider=self.name,
            failure_count=self.failure_count,
            recovery_timeout=self.recovery_timeout,
            error=str(error),
        )

    def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None
        self.success_count_in_half_open = 0

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def get_status(self) -> dict[str, Any]:
        """Get current circuit breaker status."""
        return {
            "provider": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure": (
                self.last_failure_time.isoformat() if self.last_failure_time else None
            ),
        }
