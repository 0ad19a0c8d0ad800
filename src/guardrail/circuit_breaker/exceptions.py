"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected because the circuit is open or probing is saturated.
  - The shared state coordinator failing to grant exclusive access.
  - A persisted snapshot that cannot be decoded.

Failures raised by the protected callable itself are never wrapped.
"""

from guardrail.circuit_breaker.state import CircuitState


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected without invoking the protected callable.

    Attributes:
        breaker_name: Name of the breaker rejecting the call.
        state: Breaker state at rejection time (``OPEN`` or ``HALF_OPEN``).
        retry_after: Seconds until a half-open probe may be attempted.
    """

    def __init__(
        self,
        breaker_name: str,
        state: CircuitState,
        retry_after: float = 0.0,
    ) -> None:
        """Initialize a rejection payload.

        Args:
            breaker_name: Breaker rejecting the call.
            state: Current breaker state.
            retry_after: Seconds until the next probe window opens.
        """
        self.breaker_name = breaker_name
        self.state = state
        self.retry_after = retry_after
        super().__init__(
            f"circuit_{state}: {breaker_name} retry_after={retry_after:g}s"
        )


class CoordinationError(CircuitBreakerError):
    """Raised when shared breaker state cannot be locked or accessed."""


class LockAlreadyHeldError(CoordinationError):
    """Raised when the current holder tries to lock the same name again."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"lock_already_held: {name}")


class LockTimeoutError(CoordinationError):
    """Raised when a lock could not be acquired within the configured timeout."""

    def __init__(self, name: str, timeout: float) -> None:
        self.name = name
        self.timeout = timeout
        super().__init__(f"lock_timeout: {name} timeout={timeout:g}s")


class SnapshotDecodeError(CircuitBreakerError, ValueError):
    """Raised when a persisted snapshot mapping is malformed.

    Attributes:
        field: Offending key, or ``None`` when the whole document is invalid.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)
