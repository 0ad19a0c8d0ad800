"""Wire format for persisted breaker snapshots.

Snapshots travel as flat mappings of primitives so any backend (in-memory,
key/value cache, database row) can store them::

    {
        "state": "open",
        "failure_count": 5,
        "half_open_call_count": 0,
        "half_open_success_count": 0,
        "last_failure_time": "2024-01-01T00:00:00+00:00",
        "next_attempt_time": "2024-01-01T00:01:00+00:00",
        "last_updated": "2024-01-01T00:00:00+00:00",
    }

Timestamps are ISO 8601 with an explicit UTC offset. The codec validates
shape and types only; cross-field invariants are the producer's job.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime

from guardrail.circuit_breaker.exceptions import SnapshotDecodeError
from guardrail.circuit_breaker.state import BreakerSnapshot, CircuitState

SnapshotPayload = dict[str, str | int | None]

_REQUIRED_FIELDS = (
    "state",
    "failure_count",
    "half_open_call_count",
    "half_open_success_count",
    "last_updated",
)
_COUNTER_FIELDS = (
    "failure_count",
    "half_open_call_count",
    "half_open_success_count",
)


def _encode_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _decode_time(data: Mapping[str, object], field: str) -> datetime | None:
    raw = data.get(field)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise SnapshotDecodeError(f"{field} must be an ISO 8601 string", field=field)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as error:
        raise SnapshotDecodeError(
            f"{field} is not a valid ISO 8601 timestamp: {raw!r}", field=field
        ) from error
    if parsed.tzinfo is None:
        raise SnapshotDecodeError(f"{field} must include a UTC offset", field=field)
    return parsed


def _decode_counter(data: Mapping[str, object], field: str) -> int:
    raw = data[field]
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise SnapshotDecodeError(f"{field} must be an integer", field=field)
    if raw < 0:
        raise SnapshotDecodeError(f"{field} must be >= 0", field=field)
    return raw


def encode_snapshot(snapshot: BreakerSnapshot) -> SnapshotPayload:
    """Encode a snapshot into its persisted mapping form."""
    return {
        "state": snapshot.state.value,
        "failure_count": snapshot.failure_count,
        "half_open_call_count": snapshot.half_open_call_count,
        "half_open_success_count": snapshot.half_open_success_count,
        "last_failure_time": _encode_time(snapshot.last_failure_time),
        "next_attempt_time": _encode_time(snapshot.next_attempt_time),
        "last_updated": snapshot.last_updated.isoformat(),
    }


def decode_snapshot(data: Mapping[str, object]) -> BreakerSnapshot:
    """Decode a persisted mapping back into a snapshot.

    Args:
        data: Mapping produced by ``encode_snapshot`` or a compatible backend.

    Returns:
        The decoded snapshot.

    Raises:
        SnapshotDecodeError: When a required field is missing, the state token
            is unknown, a counter is not a non-negative integer, or a
            timestamp is not an offset-aware ISO 8601 string.
    """
    for field in _REQUIRED_FIELDS:
        if field not in data:
            raise SnapshotDecodeError(f"missing required field: {field}", field=field)

    token = data["state"]
    try:
        state = CircuitState(token)
    except ValueError as error:
        raise SnapshotDecodeError(
            f"unknown state token: {token!r}", field="state"
        ) from error

    counters = {field: _decode_counter(data, field) for field in _COUNTER_FIELDS}

    last_updated = _decode_time(data, "last_updated")
    if last_updated is None:
        raise SnapshotDecodeError("last_updated must not be null", field="last_updated")

    return BreakerSnapshot(
        state=state,
        failure_count=counters["failure_count"],
        half_open_call_count=counters["half_open_call_count"],
        half_open_success_count=counters["half_open_success_count"],
        last_failure_time=_decode_time(data, "last_failure_time"),
        next_attempt_time=_decode_time(data, "next_attempt_time"),
        last_updated=last_updated,
    )


def dumps_snapshot(snapshot: BreakerSnapshot) -> str:
    """Serialize a snapshot to compact JSON text."""
    return json.dumps(encode_snapshot(snapshot), separators=(",", ":"), sort_keys=True)


def loads_snapshot(text: str | bytes) -> BreakerSnapshot:
    """Parse JSON text produced by ``dumps_snapshot``."""
    try:
        data = json.loads(text)
    except ValueError as error:
        raise SnapshotDecodeError("snapshot is not valid JSON") from error
    if not isinstance(data, Mapping):
        raise SnapshotDecodeError("snapshot JSON must be an object")
    return decode_snapshot(data)
