"""Loguru sinks for runs, tagged with the active trace id."""

from __future__ import annotations

import os
import sys
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

from baton.tracing import current_trace_id

LogProfile = Literal["default", "console"]

_STDERR_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {extra[trace_id]} | {name}:{line} | {message}"
_CONFIGURED_PROFILE: LogProfile | None = None
_CONFIGURED_LEVEL: str | None = None


def _tag_trace_id(record: loguru.Record) -> None:
    record["extra"]["trace_id"] = current_trace_id()


def _build_console_handler() -> Handler:
    return RichHandler(console=get_console(), show_time=False, show_path=False, markup=False)


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Route loguru output for ``profile`` at ``level``.

    ``level`` falls back to ``BATON_LOG_LEVEL``. Repeating the current setup is a no-op.
    """

    global _CONFIGURED_PROFILE, _CONFIGURED_LEVEL
    resolved = (level or os.getenv("BATON_LOG_LEVEL") or "INFO").upper()
    if (profile, resolved) == (_CONFIGURED_PROFILE, _CONFIGURED_LEVEL):
        return

    logger.remove()
    logger.configure(patcher=_tag_trace_id)
    if profile == "console":
        logger.add(_build_console_handler(), level=resolved, format="{message}", backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=resolved, format=_STDERR_FORMAT, backtrace=False, diagnose=False)
    _CONFIGURED_PROFILE, _CONFIGURED_LEVEL = profile, resolved
