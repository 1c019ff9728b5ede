"""Shared run dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ValidationError

from baton.errors import ModelBehaviorError


class NextStep(str, Enum):
    """What the runner does after a turn."""

    RUN_AGAIN = "run_again"
    COMPLETE = "complete"
    INTERRUPT = "interrupt"


class ToolErrorPolicy(str, Enum):
    """How failed tool calls of one turn affect the run."""

    COLLECT = "collect"
    FAIL_FAST = "fail_fast"


class TextOutput(Enum):
    """Plain text final output. Only member: ``TEXT_OUTPUT``."""

    TEXT_OUTPUT = "text"

    @property
    def json_schema(self) -> dict[str, Any] | None:
        return None

    @property
    def name_for_trace(self) -> str:
        return "text"

    def parse(self, raw: str) -> str:
        return raw


TEXT_OUTPUT = TextOutput.TEXT_OUTPUT


@dataclass(frozen=True)
class StructuredOutput:
    """Final output validated into a pydantic model."""

    model: type[BaseModel]

    @property
    def json_schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()

    @property
    def name_for_trace(self) -> str:
        return self.model.__name__

    def parse(self, raw: str) -> BaseModel:
        try:
            return self.model.model_validate_json(raw)
        except ValidationError as exc:
            raise ModelBehaviorError(f"Final output does not match {self.model.__name__}: {exc}") from exc


OutputType = Union[TextOutput, StructuredOutput]


@dataclass
class Usage:
    """Token usage summed over model calls."""

    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Usage | None) -> None:
        if other is None:
            return
        self.requests += other.requests
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "requests": self.requests,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

