"""Observability hooks for circuit breakers."""

from typing import Protocol

from guardrail.circuit_breaker.state import CircuitState


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Notes:
        Hooks run synchronously on the calling thread, inside the coordinator
        lock for coordinated breakers. Rehydrating a breaker from a stored
        snapshot does not emit ``on_state_change``.
    """

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Handle circuit state transitions."""

    def on_call_rejected(self, name: str, state: CircuitState) -> None:
        """Handle call rejection while open or while probing is saturated."""

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """Handle successful protected call completion."""

    def on_call_failed(self, name: str, exc: BaseException, elapsed: float) -> None:
        """Handle failed protected call completion."""
