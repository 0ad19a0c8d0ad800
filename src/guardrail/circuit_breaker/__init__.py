"""Framework-agnostic synchronous circuit breaker.

This package implements the circuit breaker pattern from *Release It!*.

Key behavior notes:
  - ``CircuitBreaker`` is a plain state machine with no locking. It opens after
    ``failure_threshold`` consecutive failures, rejects calls for
    ``recovery_timeout`` seconds, then admits up to ``half_open_max_calls``
    probes. Any probe failure reopens it; that many probe successes close it.
  - ``CoordinatedCircuitBreaker`` keeps the state in an
    ``AbstractStateCoordinator`` so several workers share one logical breaker.
    Mutations are serialized per name by the coordinator lock; reads are not.
  - ``InMemoryStateCoordinator`` only coordinates threads of one process.
  - Failures of the protected callable are re-raised unchanged. Rejections
    raise ``CircuitOpenError``; lock problems raise ``CoordinationError``.
    ``attempt`` returns a tagged ``CallOutcome`` instead of raising.
"""

from guardrail.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from guardrail.circuit_breaker.codec import (
    decode_snapshot,
    dumps_snapshot,
    encode_snapshot,
    loads_snapshot,
)
from guardrail.circuit_breaker.coordinated import CoordinatedCircuitBreaker
from guardrail.circuit_breaker.coordinator import (
    AbstractStateCoordinator,
    InMemoryStateCoordinator,
)
from guardrail.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
    CoordinationError,
    LockAlreadyHeldError,
    LockTimeoutError,
    SnapshotDecodeError,
)
from guardrail.circuit_breaker.metrics import BreakerListener
from guardrail.circuit_breaker.outcome import CallOutcome, OutcomeKind, attempt
from guardrail.circuit_breaker.registry import BreakerRegistry
from guardrail.circuit_breaker.state import BreakerSnapshot, CircuitState

__all__ = [
    "AbstractStateCoordinator",
    "BreakerListener",
    "BreakerRegistry",
    "BreakerSnapshot",
    "CallOutcome",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "CoordinatedCircuitBreaker",
    "CoordinationError",
    "InMemoryStateCoordinator",
    "LockAlreadyHeldError",
    "LockTimeoutError",
    "OutcomeKind",
    "SnapshotDecodeError",
    "attempt",
    "decode_snapshot",
    "dumps_snapshot",
    "encode_snapshot",
    "loads_snapshot",
]
