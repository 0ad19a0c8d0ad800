"""Tagged call outcomes.

``attempt`` folds the ways a guarded call can end into one value so callers
can branch on ``outcome.kind`` instead of stacking ``except`` clauses::

    outcome = breaker.attempt(fetch_profile, user_id)
    if outcome.kind is OutcomeKind.REJECTED:
        return cached_profile(user_id)
    return outcome.unwrap()
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, ParamSpec, Protocol, TypeVar

from guardrail.circuit_breaker.exceptions import CircuitOpenError, CoordinationError

T = TypeVar("T")
P = ParamSpec("P")


class OutcomeKind(StrEnum):
    """How a guarded call ended."""

    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    FAILED = "failed"
    COORDINATION_FAILED = "coordination_failed"


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Result of one guarded call.

    Attributes:
        kind: Which channel the call ended on.
        value: Return value of the protected callable when ``SUCCEEDED``.
        error: The rejection, propagated failure, or coordination error.
    """

    kind: OutcomeKind
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCEEDED

    def unwrap(self) -> T:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class _SupportsCall(Protocol):
    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Invoke ``func`` under breaker protection."""


def attempt(
    breaker: _SupportsCall,
    func: Callable[P, T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> CallOutcome[T]:
    """Run ``breaker.call`` and capture how it ended.

    Args:
        breaker: Plain or coordinated circuit breaker.
        func: Callable to protect.
        *args: Positional arguments forwarded to ``func``.
        **kwargs: Keyword arguments forwarded to ``func``.

    Returns:
        ``REJECTED`` when the breaker refused the call, ``COORDINATION_FAILED``
        when shared state could not be locked, ``FAILED`` when ``func`` raised
        (the exception is kept unchanged), otherwise ``SUCCEEDED``.
    """
    try:
        value = breaker.call(func, *args, **kwargs)
    except CircuitOpenError as error:
        return CallOutcome(OutcomeKind.REJECTED, error=error)
    except CoordinationError as error:
        return CallOutcome(OutcomeKind.COORDINATION_FAILED, error=error)
    except Exception as error:
        return CallOutcome(OutcomeKind.FAILED, error=error)
    return CallOutcome(OutcomeKind.SUCCEEDED, value=value)
