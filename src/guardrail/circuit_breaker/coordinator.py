"""Shared state coordination for circuit breakers.

Coordination is decoupled from breaker logic. A coordinator stores one
``BreakerSnapshot`` per breaker name and grants exclusive, per-name access for
read-modify-write cycles so that many breaker instances (one per worker) act
on a single logical state.

Custom backends (for example Redis or a database) implement
``AbstractStateCoordinator`` and persist snapshots with
``guardrail.circuit_breaker.codec``. Such backends should give their locks a
lease so a crashed holder cannot wedge a name forever.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeVar

from guardrail.circuit_breaker.exceptions import LockAlreadyHeldError, LockTimeoutError
from guardrail.circuit_breaker.state import BreakerSnapshot

R = TypeVar("R")

LockCallback = Callable[[BreakerSnapshot | None], R]


class AbstractStateCoordinator(ABC):
    """Abstract shared breaker state interface."""

    @abstractmethod
    def load(self, name: str) -> BreakerSnapshot | None:
        """Return the stored snapshot for ``name``, or ``None`` if never saved.

        This is a plain read; it does not wait for or take the lock.
        """

    @abstractmethod
    def save(self, name: str, snapshot: BreakerSnapshot) -> None:
        """Unconditionally overwrite the stored snapshot for ``name``."""

    @abstractmethod
    def with_lock(self, name: str, fn: LockCallback[R]) -> R:
        """Run ``fn`` with exclusive access to the state of ``name``.

        ``fn`` receives the current snapshot (or ``None``). If it returns a
        ``BreakerSnapshot`` that snapshot is saved before the lock is
        released. The lock is released exactly once whether ``fn`` returns or
        raises.

        Raises:
            LockAlreadyHeldError: If the caller already holds the lock for
                ``name``.
            CoordinationError: If the lock or backing store is unavailable.
        """

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove any stored snapshot for ``name``."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Return whether a snapshot is stored for ``name``."""

    @abstractmethod
    def clear(self) -> None:
        """Drop all stored state and locks. Intended for tests and resets."""


class InMemoryStateCoordinator(AbstractStateCoordinator):
    """Single-process coordinator with one thread lock per breaker name.

    Suitable for threads sharing one process and for tests. It is not a
    distributed lock: separate processes each get their own copy of the state.
    """

    def __init__(self, *, lock_timeout: float | None = None) -> None:
        """Initialize snapshot and lock registries.

        Args:
            lock_timeout: Seconds to wait for a per-name lock before raising
                ``LockTimeoutError``. ``None`` waits indefinitely.
        """
        if lock_timeout is not None and lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0 when provided")
        self._lock_timeout = lock_timeout
        self._snapshots: dict[str, BreakerSnapshot] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock

    def load(self, name: str) -> BreakerSnapshot | None:
        return self._snapshots.get(name)

    def save(self, name: str, snapshot: BreakerSnapshot) -> None:
        self._snapshots[name] = snapshot

    def with_lock(self, name: str, fn: LockCallback[R]) -> R:
        me = threading.get_ident()
        if self._holders.get(name) == me:
            raise LockAlreadyHeldError(name)

        lock = self._lock_for(name)
        timeout = -1 if self._lock_timeout is None else self._lock_timeout
        if not lock.acquire(timeout=timeout):
            raise LockTimeoutError(name, self._lock_timeout or 0.0)

        holders = self._holders
        holders[name] = me
        try:
            result = fn(self._snapshots.get(name))
            if isinstance(result, BreakerSnapshot):
                self.save(name, result)
            return result
        finally:
            holders.pop(name, None)
            lock.release()

    def delete(self, name: str) -> None:
        self._snapshots.pop(name, None)

    def exists(self, name: str) -> bool:
        return name in self._snapshots

    def clear(self) -> None:
        """Forget all snapshots and locks.

        Callbacks already running keep the lock object they acquired and
        release it normally; later callers get fresh locks.
        """
        with self._registry_lock:
            self._snapshots = {}
            self._locks = {}
            self._holders = {}
