from __future__ import annotations

from collections.abc import Mapping

import structlog
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guardrail.circuit_breaker.breaker import CircuitBreakerConfig
from guardrail.logging import configure_structlog, get_log_level_value

ENV_PREFIX = "CIRCUIT_BREAKER_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Process-wide circuit breaker defaults read from the environment."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 3
    lock_timeout: float | None = None
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().upper()
        get_log_level_value(normalized)
        return normalized

    @model_validator(mode="after")
    def _validate_breaker_settings(self) -> BreakerSettings:
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be >= 1")
        if self.lock_timeout is not None and self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0 when provided")
        return self

    def breaker_config(self) -> CircuitBreakerConfig:
        """Build the breaker configuration shared by a registry."""
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            recovery_timeout=self.recovery_timeout,
            half_open_max_calls=self.half_open_max_calls,
        )

    def configure_logging(
        self, static_context: Mapping[str, object] | None = None
    ) -> structlog.stdlib.BoundLogger:
        """Configure process logging at ``log_level``."""
        return configure_structlog(
            log_level=self.log_level, static_context=static_context
        )
