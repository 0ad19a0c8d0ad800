"""Core circuit breaker implementation."""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import ParamSpec, TypeVar

from guardrail.circuit_breaker.exceptions import CircuitOpenError
from guardrail.circuit_breaker.metrics import BreakerListener
from guardrail.circuit_breaker.outcome import CallOutcome, attempt
from guardrail.circuit_breaker.state import BreakerSnapshot, CircuitState
from guardrail.logging import LoggerLike, log_exception, log_info, log_warning

T = TypeVar("T")
P = ParamSpec("P")

_logger = logging.getLogger("guardrail.circuit_breaker")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Consecutive failures while ``CLOSED`` before opening.
            Values below 1 open the circuit on the first failure.
        recovery_timeout: Seconds to stay ``OPEN`` before admitting a probe.
        half_open_max_calls: Probe calls admitted while ``HALF_OPEN``, and the
            number of probe successes required to close again.
    """

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 3

    def __post_init__(self) -> None:
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be >= 1")


class CircuitBreaker:
    """Three-state circuit breaker guarding one named dependency.

    The breaker holds its state in memory and performs no locking. Share one
    instance across threads only behind external synchronization, or use
    ``CoordinatedCircuitBreaker``.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: LoggerLike | None = None,
    ) -> None:
        """Build a breaker in the ``CLOSED`` state.

        Args:
            name: Identity of the protected dependency.
            config: Thresholds and timeouts. Defaults to ``CircuitBreakerConfig()``.
            listeners: Optional listener hooks for breaker events.
            logger: Structured or stdlib logger for transition events.
        """
        self._name = name
        self._config = CircuitBreakerConfig() if config is None else config
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger = _logger if logger is None else logger
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_call_count = 0
        self._half_open_success_count = 0
        self._last_failure_time: datetime | None = None
        self._next_attempt_time: datetime | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def half_open_call_count(self) -> int:
        return self._half_open_call_count

    @property
    def half_open_success_count(self) -> int:
        return self._half_open_success_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._last_failure_time

    @property
    def next_attempt_time(self) -> datetime | None:
        return self._next_attempt_time

    @property
    def retry_after(self) -> float:
        """Seconds until an ``OPEN`` breaker admits a probe, else ``0.0``."""
        return self._retry_after(_utcnow())

    def _retry_after(self, now: datetime) -> float:
        if self._state != CircuitState.OPEN or self._next_attempt_time is None:
            return 0.0
        return max((self._next_attempt_time - now).total_seconds(), 0.0)

    def _emit(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(self._name, *args)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    breaker=self._name,
                    hook=hook,
                )

    def _set_state(self, new: CircuitState) -> None:
        old = self._state
        self._state = new
        if old != new:
            self._emit("on_state_change", old, new)

    def _transition_to_open(self, now: datetime) -> None:
        self._half_open_call_count = 0
        self._half_open_success_count = 0
        self._next_attempt_time = now + timedelta(seconds=self._config.recovery_timeout)
        old = self._state
        self._set_state(CircuitState.OPEN)
        log_warning(
            self._logger,
            "circuit_breaker.opened",
            breaker=self._name,
            previous_state=str(old),
            failure_count=self._failure_count,
            next_attempt_time=self._next_attempt_time.isoformat(),
        )

    def _transition_to_half_open(self) -> None:
        self._failure_count = 0
        self._half_open_call_count = 0
        self._half_open_success_count = 0
        self._next_attempt_time = None
        self._set_state(CircuitState.HALF_OPEN)
        log_info(self._logger, "circuit_breaker.half_opened", breaker=self._name)

    def _transition_to_closed(self) -> None:
        self._half_open_call_count = 0
        self._half_open_success_count = 0
        self._next_attempt_time = None
        old = self._state
        self._set_state(CircuitState.CLOSED)
        log_info(
            self._logger,
            "circuit_breaker.closed",
            breaker=self._name,
            previous_state=str(old),
        )

    def _reject(self, now: datetime) -> CircuitOpenError:
        retry_after = self._retry_after(now)
        self._emit("on_call_rejected", self._state)
        log_info(
            self._logger,
            "circuit_breaker.rejected",
            breaker=self._name,
            state=str(self._state),
            retry_after=retry_after,
        )
        return CircuitOpenError(self._name, self._state, retry_after=retry_after)

    def _admit(self) -> None:
        now = _utcnow()
        if self._state == CircuitState.OPEN:
            if self._next_attempt_time is not None and now < self._next_attempt_time:
                raise self._reject(now)
            self._transition_to_half_open()

        if self._state == CircuitState.HALF_OPEN:
            if self._half_open_call_count >= self._config.half_open_max_calls:
                raise self._reject(now)
            self._half_open_call_count += 1

    def call(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke a callable under circuit breaker protection.

        Args:
            func: Dangerous callable to execute.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when admitted and successful.

        Raises:
            CircuitOpenError: When the breaker is open and cooling down, or
                half-open with its probe quota used up. ``func`` is not called.
            BaseException: The original exception from ``func``, after it has
                been recorded as a failure. Interrupts count as failures so an
                admitted probe always settles.
        """
        self._admit()

        start = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except BaseException as exc:
            elapsed = max(time.monotonic() - start, 0.0)
            self._emit("on_call_failed", exc, elapsed)
            self.record_failure()
            raise
        elapsed = max(time.monotonic() - start, 0.0)
        self._emit("on_call_succeeded", elapsed)
        self.record_success()
        return result

    def attempt(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> CallOutcome[T]:
        """Like ``call`` but return a tagged ``CallOutcome`` instead of raising."""
        return attempt(self, func, *args, **kwargs)

    def record_success(self) -> None:
        """Record a successful call outside of ``call``."""
        self._failure_count = 0
        self._last_failure_time = None

        if self._state == CircuitState.HALF_OPEN:
            self._half_open_success_count += 1
            if self._half_open_success_count >= self._config.half_open_max_calls:
                self._transition_to_closed()
        elif self._state == CircuitState.OPEN:
            self._transition_to_closed()

    def record_failure(self) -> None:
        """Record a failed call outside of ``call``."""
        now = _utcnow()
        self._failure_count += 1
        self._last_failure_time = now

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to_open(now)
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self._config.failure_threshold
        ):
            self._transition_to_open(now)

    def reset(self) -> None:
        """Force the breaker back to a pristine ``CLOSED`` state."""
        self._failure_count = 0
        self._half_open_call_count = 0
        self._half_open_success_count = 0
        self._last_failure_time = None
        self._next_attempt_time = None
        self._set_state(CircuitState.CLOSED)
        log_info(self._logger, "circuit_breaker.reset", breaker=self._name)

    def snapshot(self) -> BreakerSnapshot:
        """Return the current mutable fields stamped with the current time."""
        return BreakerSnapshot(
            state=self._state,
            failure_count=self._failure_count,
            half_open_call_count=self._half_open_call_count,
            half_open_success_count=self._half_open_success_count,
            last_failure_time=self._last_failure_time,
            next_attempt_time=self._next_attempt_time,
            last_updated=_utcnow(),
        )

    def restore(self, snapshot: BreakerSnapshot) -> None:
        """Overwrite the mutable fields from ``snapshot`` without emitting events."""
        self._state = snapshot.state
        self._failure_count = snapshot.failure_count
        self._half_open_call_count = snapshot.half_open_call_count
        self._half_open_success_count = snapshot.half_open_success_count
        self._last_failure_time = snapshot.last_failure_time
        self._next_attempt_time = snapshot.next_attempt_time
