import pytest

from guardrail.circuit_breaker import (
    BreakerRegistry,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CoordinatedCircuitBreaker,
    InMemoryStateCoordinator,
)
from guardrail.settings import BreakerSettings
from tests.guardrail.support.fakes import FakeClock, RecordingListener


def test_circuit_for_returns_same_instance_per_name() -> None:
    registry = BreakerRegistry(CircuitBreakerConfig(failure_threshold=2))

    first = registry.circuit_for("billing")
    again = registry.circuit_for("billing")
    other = registry.circuit_for("search")

    assert first is again
    assert first is not other
    assert isinstance(first, CircuitBreaker)
    assert first.config.failure_threshold == 2
    assert set(registry.breakers) == {"billing", "search"}


def test_independent_registries_do_not_share_breakers() -> None:
    assert BreakerRegistry().circuit_for("svc") is not BreakerRegistry().circuit_for(
        "svc"
    )


def test_breakers_view_is_read_only() -> None:
    registry = BreakerRegistry()
    registry.circuit_for("svc")

    with pytest.raises(TypeError):
        registry.breakers["other"] = registry.circuit_for("svc")  # type: ignore[index]


def test_registry_with_coordinator_builds_coordinated_breakers() -> None:
    coordinator = InMemoryStateCoordinator()
    registry = BreakerRegistry(coordinator=coordinator)

    breaker = registry.circuit_for("svc")

    assert isinstance(breaker, CoordinatedCircuitBreaker)
    assert breaker.coordinator is coordinator


def test_reset_one_and_reset_all(clock: FakeClock) -> None:
    registry = BreakerRegistry(CircuitBreakerConfig(failure_threshold=1))
    billing = registry.circuit_for("billing")
    search = registry.circuit_for("search")
    billing.record_failure()
    search.record_failure()

    registry.reset("billing")
    registry.reset("unknown")
    assert billing.state == CircuitState.CLOSED
    assert search.state == CircuitState.OPEN

    registry.reset_all()
    assert search.state == CircuitState.CLOSED


def test_registry_passes_listeners_to_breakers(
    clock: FakeClock, listener: RecordingListener
) -> None:
    registry = BreakerRegistry(
        CircuitBreakerConfig(failure_threshold=1), listeners=[listener]
    )

    registry.circuit_for("svc").record_failure()

    assert listener.events == [
        ("state", ("svc", CircuitState.CLOSED, CircuitState.OPEN)),
    ]


def test_from_settings_applies_defaults_and_lock_timeout() -> None:
    settings = BreakerSettings(
        failure_threshold=7,
        recovery_timeout=12.5,
        half_open_max_calls=1,
        lock_timeout=2.0,
    )

    registry = BreakerRegistry.from_settings(settings)

    assert registry.config == CircuitBreakerConfig(
        failure_threshold=7, recovery_timeout=12.5, half_open_max_calls=1
    )
    assert isinstance(registry.coordinator, InMemoryStateCoordinator)
    assert isinstance(registry.circuit_for("svc"), CoordinatedCircuitBreaker)


def test_from_settings_without_lock_timeout_builds_plain_breakers() -> None:
    registry = BreakerRegistry.from_settings(BreakerSettings())

    assert registry.coordinator is None
    assert isinstance(registry.circuit_for("svc"), CircuitBreaker)
