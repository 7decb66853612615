"""Tests for logging helpers."""

import logging

import pytest
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from ledger import logger as logger_module


def test_select_renderer_uses_console_in_debug(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    renderer = logger_module._select_renderer()
    assert isinstance(renderer, ConsoleRenderer)


def test_select_renderer_uses_json_in_production(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", False)
    renderer = logger_module._select_renderer()
    assert isinstance(renderer, JSONRenderer)


def test_log_timing_records_duration(caplog) -> None:
    log = logger_module.get_logger("timing-test")

    with caplog.at_level(logging.DEBUG):
        with logger_module.log_timing("trial_balance", logger=log, entity_id="acme") as ctx:
            ctx["line_count"] = 3

    assert ctx["duration_ms"] >= 0
    assert "trial_balance completed" in caplog.text
    assert "line_count" in caplog.text
    assert "acme" in caplog.text


def test_log_timing_emits_even_on_error(caplog) -> None:
    log = logger_module.get_logger("timing-test")

    with caplog.at_level(logging.DEBUG):
        with pytest.raises(RuntimeError):
            with logger_module.log_timing("failing_op", logger=log):
                raise RuntimeError("boom")

    assert "failing_op completed" in caplog.text


@pytest.mark.asyncio
async def test_async_log_timing(caplog) -> None:
    log = logger_module.get_logger("timing-test")

    with caplog.at_level(logging.DEBUG):
        async with logger_module.async_log_timing("balance_sheet", logger=log, level="debug") as ctx:
            ctx["sections"] = 3

    assert "duration_ms" in ctx
    assert "balance_sheet completed" in caplog.text


def test_log_exception_without_traceback(caplog) -> None:
    log = logger_module.get_logger("exception-test")

    with caplog.at_level(logging.DEBUG):
        logger_module.log_exception(
            log,
            ValueError("stale row"),
            "Concurrent balance update detected",
            level="warning",
            include_traceback=False,
            transaction_id="abc",
        )

    assert "Concurrent balance update detected" in caplog.text
    assert "ValueError" in caplog.text
    assert "Traceback" not in caplog.text


def test_log_exception_with_traceback(caplog) -> None:
    log = logger_module.get_logger("exception-test")

    with caplog.at_level(logging.DEBUG):
        try:
            raise KeyError("missing")
        except KeyError as exc:
            logger_module.log_exception(log, exc, "Lookup failed")

    assert "Lookup failed" in caplog.text
    assert "Traceback" in caplog.text
