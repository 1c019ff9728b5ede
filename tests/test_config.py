from __future__ import annotations

import pytest
from conftest import ScriptedModel

from baton.config import RunConfig, Settings
from baton.errors import ConfigurationError
from baton.tracing import LogfireExporter, LoguruExporter
from baton.types import ToolErrorPolicy


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BATON_MAX_TURNS", "BATON_TOOL_ERROR_POLICY", "BATON_TRACE_EXPORTER"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.max_turns == 10
    assert settings.model_timeout_seconds == 60
    assert settings.tool_error_policy is ToolErrorPolicy.COLLECT
    assert settings.abort_on_all_tool_failures is True
    assert settings.trace_exporter == "none"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATON_MAX_TURNS", "4")
    monkeypatch.setenv("BATON_TOOL_ERROR_POLICY", "fail_fast")
    monkeypatch.setenv("BATON_TOOL_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("BATON_TRACE_EXPORTER", "loguru")
    monkeypatch.setenv("BATON_TRACING_DISABLED", "true")

    settings = Settings(_env_file=None)
    config = RunConfig.from_settings(settings, model=ScriptedModel())

    assert config.max_turns == 4
    assert config.tool_error_policy is ToolErrorPolicy.FAIL_FAST
    assert config.tool_timeout_seconds == 2.5
    assert config.recorder.enabled is False
    assert isinstance(config.recorder.exporters[0], LoguruExporter)
    config.validate()


def test_logfire_exporter_from_settings() -> None:
    recorder = Settings(_env_file=None, trace_exporter="logfire", trace_include_sensitive_data=False).build_recorder()

    assert isinstance(recorder.exporters[0], LogfireExporter)
    assert recorder.include_sensitive_data is False


def test_overrides_win_over_settings() -> None:
    config = RunConfig.from_settings(Settings(_env_file=None), max_turns=3, workflow_name="support")

    assert config.max_turns == 3
    assert config.workflow_name == "support"


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_turns": 0},
        {"model_timeout_seconds": 0},
        {"run_timeout_seconds": -1},
        {"history_limit": -2},
        {"tool_error_policy": "sometimes"},
    ],
)
def test_validate_rejects_bad_values(overrides: dict[str, object]) -> None:
    config = RunConfig(model=ScriptedModel(), **overrides)  # type: ignore[arg-type]

    with pytest.raises(ConfigurationError):
        config.validate()


def test_validate_requires_model() -> None:
    with pytest.raises(ConfigurationError, match="model"):
        RunConfig().validate()
