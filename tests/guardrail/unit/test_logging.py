from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Protocol, cast

import pytest
import structlog

from guardrail.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from guardrail.logging import (
    _build_static_context_merger,
    configure_structlog,
    get_log_level_value,
    log_exception,
    log_info,
    log_warning,
)
from tests.guardrail.support.fakes import FakeClock, FakeLogger


def _configured_renderer() -> object:
    root_handler = logging.getLogger().handlers[0]
    formatter = root_handler.formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


def test_get_log_level_value_maps_known_levels() -> None:
    assert get_log_level_value("debug") == logging.DEBUG
    assert get_log_level_value("INFO") == logging.INFO
    assert get_log_level_value(" warning ") == logging.WARNING
    assert get_log_level_value("ERROR") == logging.ERROR
    assert get_log_level_value("critical") == logging.CRITICAL


def test_get_log_level_value_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        get_log_level_value("TRACE")


def test_configure_structlog_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    first_logger = configure_structlog(log_level="INFO")
    second_logger = configure_structlog(log_level="DEBUG")

    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger().level == logging.DEBUG
    assert first_logger is not None
    assert second_logger is not None


def test_configure_structlog_uses_console_renderer_for_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: True, raising=False)

    configure_structlog(log_level="INFO")
    renderer = _configured_renderer()

    assert isinstance(renderer, structlog.dev.ConsoleRenderer)


def test_configure_structlog_uses_json_renderer_for_non_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    configure_structlog(log_level="INFO", static_context={"service": "billing"})
    renderer = _configured_renderer()

    assert isinstance(renderer, structlog.processors.JSONRenderer)


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class _RecordWithBreakerFields(Protocol):
    breaker: str
    failure_count: int


@pytest.mark.parametrize(
    ("log_fn", "level"),
    [
        (log_info, "info"),
        (log_warning, "warning"),
        (log_exception, "exception"),
    ],
)
def test_structured_log_helpers_forward_keyword_fields(
    log_fn: Callable[..., None],
    level: str,
) -> None:
    logger = FakeLogger()

    log_fn(logger, "circuit_breaker.event", breaker="svc", failure_count=3)

    assert logger.calls == [
        (
            level,
            "circuit_breaker.event",
            {"breaker": "svc", "failure_count": 3},
        )
    ]


def test_structured_log_helpers_support_stdlib_logger_extra() -> None:
    logger = logging.getLogger("tests.guardrail.logging.helpers")
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _CaptureHandler()
    logger.addHandler(handler)

    log_info(logger, "circuit_breaker.closed", breaker="svc", failure_count=0)

    assert len(handler.records) == 1
    record = handler.records[0]
    typed_record = cast(_RecordWithBreakerFields, record)
    assert record.getMessage() == "circuit_breaker.closed"
    assert typed_record.breaker == "svc"
    assert typed_record.failure_count == 0


def test_breaker_logs_through_stdlib_logger_by_default(
    clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    breaker = CircuitBreaker("svc", config=CircuitBreakerConfig(failure_threshold=1))

    with caplog.at_level(logging.INFO, logger="guardrail.circuit_breaker"):
        breaker.record_failure()

    record = next(r for r in caplog.records if r.getMessage() == "circuit_breaker.opened")
    assert record.levelno == logging.WARNING
    assert cast(_RecordWithBreakerFields, record).breaker == "svc"


def test_static_context_merger_returns_original_when_context_missing() -> None:
    processor = _build_static_context_merger(None)
    event_dict: structlog.typing.EventDict = {"event": "test"}

    merged = processor(None, "info", event_dict)

    assert merged is event_dict
    assert merged == {"event": "test"}


def test_static_context_merger_prefers_event_extra() -> None:
    processor = _build_static_context_merger({"service": "billing", 7: "worker"})
    event_dict: structlog.typing.EventDict = {
        "event": "test",
        "extra": {"service": "from-event", "breaker": "svc"},
    }

    merged = processor(None, "info", event_dict)

    assert isinstance(merged, dict)
    extra = merged.get("extra")
    assert isinstance(extra, dict)
    assert cast(dict[str, object], extra) == {
        "service": "from-event",
        "breaker": "svc",
        "7": "worker",
    }
