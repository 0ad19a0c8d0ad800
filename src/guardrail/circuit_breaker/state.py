"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time copy of a breaker's mutable fields.

    Snapshots are what coordinators persist and hand back. They are replaced,
    never mutated.

    Attributes:
        state: Breaker state at the time the snapshot was taken.
        failure_count: Consecutive failures since the last success or reset.
        half_open_call_count: Probe calls admitted since entering ``HALF_OPEN``.
        half_open_success_count: Probe successes since entering ``HALF_OPEN``.
        last_failure_time: Timestamp of the last recorded failure, if any.
        next_attempt_time: Earliest probe time while ``OPEN``, otherwise ``None``.
        last_updated: When the snapshot was produced.
    """

    state: CircuitState
    failure_count: int
    half_open_call_count: int
    half_open_success_count: int
    last_failure_time: datetime | None
    next_attempt_time: datetime | None
    last_updated: datetime
