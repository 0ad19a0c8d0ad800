"""Circuit breaker whose state lives in a shared coordinator."""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import ParamSpec, TypeVar

from guardrail.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from guardrail.circuit_breaker.coordinator import AbstractStateCoordinator
from guardrail.circuit_breaker.metrics import BreakerListener
from guardrail.circuit_breaker.outcome import CallOutcome, attempt
from guardrail.circuit_breaker.state import BreakerSnapshot, CircuitState
from guardrail.logging import LoggerLike

T = TypeVar("T")
P = ParamSpec("P")


def _pristine_snapshot() -> BreakerSnapshot:
    return BreakerSnapshot(
        state=CircuitState.CLOSED,
        failure_count=0,
        half_open_call_count=0,
        half_open_success_count=0,
        last_failure_time=None,
        next_attempt_time=None,
        last_updated=datetime.now(UTC),
    )


class CoordinatedCircuitBreaker:
    """Circuit breaker that keeps its state in an ``AbstractStateCoordinator``.

    Each worker owns one instance with a private ``CircuitBreaker``. Mutations
    run under ``coordinator.with_lock(name, ...)``: the private breaker is
    rehydrated from the stored snapshot, mutated, and the result persisted
    before the lock is released. Accessors reload without the lock and may be
    stale relative to an in-flight mutation on another worker.
    """

    def __init__(
        self,
        name: str,
        coordinator: AbstractStateCoordinator,
        *,
        config: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: LoggerLike | None = None,
    ) -> None:
        """Build a coordinated breaker and load any stored state.

        Args:
            name: Identity of the protected dependency and coordinator key.
            coordinator: Shared state backend.
            config: Thresholds and timeouts. Defaults to ``CircuitBreakerConfig()``.
            listeners: Optional listener hooks for breaker events.
            logger: Structured or stdlib logger for transition events.
        """
        self._coordinator = coordinator
        self._breaker = CircuitBreaker(
            name, config=config, listeners=listeners, logger=logger
        )
        self._reload()

    def _reload(self) -> CircuitBreaker:
        self._rehydrate(self._coordinator.load(self._breaker.name))
        return self._breaker

    def _rehydrate(self, current: BreakerSnapshot | None) -> None:
        # No stored snapshot means a never-failed CLOSED guard.
        self._breaker.restore(_pristine_snapshot() if current is None else current)

    @property
    def name(self) -> str:
        return self._breaker.name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._breaker.config

    @property
    def coordinator(self) -> AbstractStateCoordinator:
        return self._coordinator

    @property
    def state(self) -> CircuitState:
        return self._reload().state

    @property
    def is_closed(self) -> bool:
        return self._reload().is_closed

    @property
    def is_open(self) -> bool:
        return self._reload().is_open

    @property
    def is_half_open(self) -> bool:
        return self._reload().is_half_open

    @property
    def failure_count(self) -> int:
        return self._reload().failure_count

    @property
    def half_open_call_count(self) -> int:
        return self._reload().half_open_call_count

    @property
    def half_open_success_count(self) -> int:
        return self._reload().half_open_success_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._reload().last_failure_time

    @property
    def next_attempt_time(self) -> datetime | None:
        return self._reload().next_attempt_time

    @property
    def retry_after(self) -> float:
        return self._reload().retry_after

    def snapshot(self) -> BreakerSnapshot:
        """Return a fresh snapshot of the latest stored state."""
        return self._reload().snapshot()

    def call(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke a callable under shared circuit breaker protection.

        The updated state is saved whether ``func`` returns, raises, or the
        call is rejected.

        Raises:
            CircuitOpenError: When the shared state rejects the call.
            CoordinationError: When the coordinator cannot grant the lock.
            Exception: The original exception from ``func``.
        """
        results: list[T] = []

        def _locked_call(current: BreakerSnapshot | None) -> BreakerSnapshot:
            self._rehydrate(current)
            try:
                results.append(self._breaker.call(func, *args, **kwargs))
            except BaseException:
                self._coordinator.save(self.name, self._breaker.snapshot())
                raise
            return self._breaker.snapshot()

        self._coordinator.with_lock(self.name, _locked_call)
        return results[0]

    def attempt(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> CallOutcome[T]:
        """Like ``call`` but return a tagged ``CallOutcome`` instead of raising."""
        return attempt(self, func, *args, **kwargs)

    def record_success(self) -> None:
        """Record a success against the shared state."""

        def _locked_success(current: BreakerSnapshot | None) -> BreakerSnapshot:
            self._rehydrate(current)
            self._breaker.record_success()
            return self._breaker.snapshot()

        self._coordinator.with_lock(self.name, _locked_success)

    def record_failure(self) -> None:
        """Record a failure against the shared state."""

        def _locked_failure(current: BreakerSnapshot | None) -> BreakerSnapshot:
            self._rehydrate(current)
            self._breaker.record_failure()
            return self._breaker.snapshot()

        self._coordinator.with_lock(self.name, _locked_failure)

    def reset(self) -> None:
        """Reset the shared state to ``CLOSED``.

        Listeners see the transition from the stored state, not from this
        worker's last local view.
        """

        def _locked_reset(current: BreakerSnapshot | None) -> BreakerSnapshot:
            self._rehydrate(current)
            self._breaker.reset()
            return self._breaker.snapshot()

        self._coordinator.with_lock(self.name, _locked_reset)
