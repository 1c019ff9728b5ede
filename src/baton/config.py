"""Runtime settings and per-run configuration."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from baton.errors import ConfigurationError
from baton.logging_utils import LogProfile, configure_logging
from baton.model import ModelAdapter
from baton.session import Session
from baton.tracing import LogfireExporter, LoguruExporter, TraceExporter, TraceRecorder
from baton.types import ToolErrorPolicy

DEFAULT_MAX_TURNS = 10
DEFAULT_MODEL_TIMEOUT_SECONDS = 60.0


class Settings(BaseSettings):
    """Environment-driven defaults for runs."""

    model_config = SettingsConfigDict(
        env_prefix="BATON_",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
        protected_namespaces=(),
    )

    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)
    model_timeout_seconds: float = Field(default=DEFAULT_MODEL_TIMEOUT_SECONDS, gt=0)
    run_timeout_seconds: float | None = Field(default=None, gt=0)
    tool_timeout_seconds: float | None = Field(default=None, gt=0)
    tool_error_policy: ToolErrorPolicy = ToolErrorPolicy.COLLECT
    abort_on_all_tool_failures: bool = True
    history_limit: int | None = Field(default=None, ge=0)
    tracing_disabled: bool = False
    trace_include_sensitive_data: bool = True
    trace_exporter: Literal["none", "loguru", "logfire"] = "none"
    log_level: str = "INFO"
    log_profile: LogProfile = "default"

    def build_recorder(self) -> TraceRecorder:
        exporters: list[TraceExporter] = []
        if self.trace_exporter == "loguru":
            exporters.append(LoguruExporter())
        elif self.trace_exporter == "logfire":
            exporters.append(LogfireExporter())
        return TraceRecorder(
            enabled=not self.tracing_disabled,
            exporters=exporters,
            include_sensitive_data=self.trace_include_sensitive_data,
        )


def load_settings() -> Settings:
    """Read settings from the environment and apply their logging setup."""
    settings = Settings()
    configure_logging(profile=settings.log_profile, level=settings.log_level)
    return settings


@dataclass
class RunConfig:
    """Everything a single run needs besides the agent and its input."""

    model: ModelAdapter | None = None
    session: Session | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    model_timeout_seconds: float | None = DEFAULT_MODEL_TIMEOUT_SECONDS
    run_timeout_seconds: float | None = None
    tool_timeout_seconds: float | None = None
    tool_error_policy: ToolErrorPolicy = ToolErrorPolicy.COLLECT
    abort_on_all_tool_failures: bool = True
    history_limit: int | None = None
    context: Any = None
    recorder: TraceRecorder = field(default_factory=TraceRecorder)
    hooks: list[object] = field(default_factory=list)
    cancel_event: asyncio.Event | None = None
    workflow_name: str = "Agent workflow"
    trace_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> RunConfig:
        settings = settings or load_settings()
        values: dict[str, Any] = {
            "max_turns": settings.max_turns,
            "model_timeout_seconds": settings.model_timeout_seconds,
            "run_timeout_seconds": settings.run_timeout_seconds,
            "tool_timeout_seconds": settings.tool_timeout_seconds,
            "tool_error_policy": settings.tool_error_policy,
            "abort_on_all_tool_failures": settings.abort_on_all_tool_failures,
            "history_limit": settings.history_limit,
            "recorder": settings.build_recorder(),
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        if self.model is None:
            raise ConfigurationError("RunConfig.model is required")
        if self.max_turns < 1:
            raise ConfigurationError(f"max_turns must be positive, got {self.max_turns}")
        for name in ("model_timeout_seconds", "run_timeout_seconds", "tool_timeout_seconds"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.history_limit is not None and self.history_limit < 0:
            raise ConfigurationError(f"history_limit must not be negative, got {self.history_limit}")
        if not isinstance(self.tool_error_policy, ToolErrorPolicy):
            raise ConfigurationError(f"Unknown tool_error_policy: {self.tool_error_policy!r}")
