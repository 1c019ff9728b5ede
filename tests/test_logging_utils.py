from __future__ import annotations

from typing import Any

import pytest
from loguru import logger

from baton import logging_utils
from baton.config import load_settings
from baton.tracing import AgentSpanData, TraceRecorder


def test_default_profile_injects_trace_id(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_CONFIGURED_PROFILE", None)
    monkeypatch.setenv("BATON_LOG_LEVEL", "debug")
    logging_utils.configure_logging(profile="default")

    records: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        recorder = TraceRecorder()
        with recorder.trace("wf", AgentSpanData(name="root")) as trace:
            logger.info("inside")
        logger.info("outside")
    finally:
        logger.remove(handler_id)

    assert records[0]["extra"]["trace_id"] == trace.trace_id
    assert records[1]["extra"]["trace_id"] == "-"


def test_console_profile_is_configured_once(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_CONFIGURED_PROFILE", None)
    built: list[object] = []
    original = logging_utils._build_console_handler

    def counting_handler() -> Any:
        handler = original()
        built.append(handler)
        return handler

    monkeypatch.setattr(logging_utils, "_build_console_handler", counting_handler)

    logging_utils.configure_logging(profile="console")
    logging_utils.configure_logging(profile="console")

    assert len(built) == 1
    assert logging_utils._CONFIGURED_PROFILE == "console"


def test_load_settings_applies_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_CONFIGURED_PROFILE", None)
    monkeypatch.setattr(logging_utils, "_CONFIGURED_LEVEL", None)
    monkeypatch.setenv("BATON_LOG_LEVEL", "warning")
    monkeypatch.setenv("BATON_LOG_PROFILE", "default")

    settings = load_settings()

    assert settings.log_level == "warning"
    assert logging_utils._CONFIGURED_LEVEL == "WARNING"
    assert logging_utils._CONFIGURED_PROFILE == "default"


def test_explicit_level_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_CONFIGURED_PROFILE", None)
    monkeypatch.setattr(logging_utils, "_CONFIGURED_LEVEL", None)
    monkeypatch.setenv("BATON_LOG_LEVEL", "error")

    logging_utils.configure_logging(level="debug")

    assert logging_utils._CONFIGURED_LEVEL == "DEBUG"
