"""Named breaker registry.

A registry is owned by the application (for example built once at startup
and passed to the call sites that need it) rather than living in a module
global, so tests can build independent registries.
"""

import threading
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING

from guardrail.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from guardrail.circuit_breaker.coordinated import CoordinatedCircuitBreaker
from guardrail.circuit_breaker.coordinator import (
    AbstractStateCoordinator,
    InMemoryStateCoordinator,
)
from guardrail.circuit_breaker.metrics import BreakerListener
from guardrail.logging import LoggerLike

if TYPE_CHECKING:
    from guardrail.settings import BreakerSettings

AnyBreaker = CircuitBreaker | CoordinatedCircuitBreaker


class BreakerRegistry:
    """Hand out one breaker per dependency name with shared defaults."""

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        coordinator: AbstractStateCoordinator | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: LoggerLike | None = None,
    ) -> None:
        """Build an empty registry.

        Args:
            config: Configuration applied to every breaker created here.
            coordinator: When set, breakers are ``CoordinatedCircuitBreaker``
                instances sharing this coordinator.
            listeners: Listener hooks attached to every breaker.
            logger: Logger passed to every breaker.
        """
        self._config = CircuitBreakerConfig() if config is None else config
        self._coordinator = coordinator
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger = logger
        self._breakers: dict[str, AnyBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: "BreakerSettings",
        *,
        coordinator: AbstractStateCoordinator | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: LoggerLike | None = None,
    ) -> "BreakerRegistry":
        """Build a registry from environment-driven settings.

        A ``lock_timeout`` setting with no explicit coordinator selects an
        ``InMemoryStateCoordinator`` using that timeout.
        """
        if coordinator is None and settings.lock_timeout is not None:
            coordinator = InMemoryStateCoordinator(lock_timeout=settings.lock_timeout)
        return cls(
            settings.breaker_config(),
            coordinator=coordinator,
            listeners=listeners,
            logger=logger,
        )

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def coordinator(self) -> AbstractStateCoordinator | None:
        return self._coordinator

    @property
    def breakers(self) -> Mapping[str, AnyBreaker]:
        """Read-only view of the breakers created so far, keyed by name."""
        return MappingProxyType(self._breakers)

    def _create(self, name: str) -> AnyBreaker:
        if self._coordinator is not None:
            return CoordinatedCircuitBreaker(
                name,
                self._coordinator,
                config=self._config,
                listeners=self._listeners,
                logger=self._logger,
            )
        return CircuitBreaker(
            name,
            config=self._config,
            listeners=self._listeners,
            logger=self._logger,
        )

    def circuit_for(self, name: str) -> AnyBreaker:
        """Return the breaker for ``name``, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = self._create(name)
                self._breakers[name] = breaker
            return breaker

    def reset(self, name: str) -> None:
        """Reset one breaker. Unknown names are ignored."""
        breaker = self._breakers.get(name)
        if breaker is not None:
            breaker.reset()

    def reset_all(self) -> None:
        """Reset every breaker created by this registry."""
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
