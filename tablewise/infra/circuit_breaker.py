"""Circuit breaker for LLM provider calls."""

import time
from enum import Enum
from typing import Callable, Any, Optional

from tablewise.infra.error_handler import APIError
from tablewise.infra.metrics import circuit_breaker_state


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


_STATE_GAUGE_VALUE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitOpenError(APIError):
    """Raised instead of calling a provider whose circuit is open."""

    def __init__(self, service: str, retry_after: Optional[float] = None):
        super().__init__(
            f"Circuit breaker for {service} is OPEN. Service unavailable.",
            retryable=False,
            retry_after=retry_after,
        )


class CircuitBreaker:
    """
    Circuit breaker for async provider calls.

    Opens after `failure_threshold` consecutive failures, stays open for
    `recovery_timeout` seconds, then lets calls through in half-open state.
    Two successes in half-open close the circuit again.
    """

    def __init__(
        self,
        service: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: type = Exception,
    ):
        """
        Initialize circuit breaker.

        Args:
            service: Name used in errors and the state gauge
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery (half-open)
            expected_exception: Exception type that counts as failure
        """
        self.service = service
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = CircuitState.CLOSED
        self.success_count = 0  # For half-open state

    def _set_state(self, state: CircuitState) -> None:
        self.state = state
        circuit_breaker_state.labels(service=self.service).set(_STATE_GAUGE_VALUE[state])

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute async function with circuit breaker protection.

        Raises:
            CircuitOpenError: If circuit is open
            Exception: Original exception from function
        """
        if self.state == CircuitState.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0.0)
            if elapsed >= self.recovery_timeout:
                self._set_state(CircuitState.HALF_OPEN)
                self.success_count = 0
            else:
                raise CircuitOpenError(self.service, retry_after=self.recovery_timeout - elapsed)

        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self.failure_count += 1
            self.last_failure_time = time.monotonic()
            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self._set_state(CircuitState.OPEN)
            raise

        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= 2:
                self._set_state(CircuitState.CLOSED)
                self.failure_count = 0
                self.success_count = 0
        else:
            self.failure_count = 0

        return result


# One breaker per LLM provider
openai_circuit_breaker = CircuitBreaker("openai", failure_threshold=5, recovery_timeout=60)
gemini_circuit_breaker = CircuitBreaker("gemini", failure_threshold=5, recovery_timeout=60)
