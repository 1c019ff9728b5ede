"""Conversation history items.

History is a closed union of four item kinds. Each kind carries a literal ``type``
discriminator so items survive a round trip through JSON storage unchanged.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Item(BaseModel):
    model_config = ConfigDict(frozen=True)


class MessageInput(_Item):
    """A message fed into the conversation (user or system)."""

    type: Literal["message_input"] = "message_input"
    role: Literal["user", "system"] = "user"
    content: str


class MessageOutput(_Item):
    """Assistant text produced by a model turn."""

    type: Literal["message_output"] = "message_output"
    content: str
    agent: str | None = None


class ToolCall(_Item):
    """A tool invocation requested by the model."""

    type: Literal["tool_call"] = "tool_call"
    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    agent: str | None = None


class ToolOutput(_Item):
    """Result (or error) of one tool call, paired by ``call_id``."""

    type: Literal["tool_output"] = "tool_output"
    call_id: str
    name: str
    output: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


RunItem = Annotated[
    Union[MessageInput, MessageOutput, ToolCall, ToolOutput],
    Field(discriminator="type"),
]

_ITEM_ADAPTER: TypeAdapter[Any] = TypeAdapter(RunItem)
_ITEMS_ADAPTER: TypeAdapter[list[Any]] = TypeAdapter(list[RunItem])


def dump_item(item: RunItem) -> dict[str, Any]:
    return _ITEM_ADAPTER.dump_python(item, mode="json")


def load_item(payload: dict[str, Any]) -> RunItem:
    return _ITEM_ADAPTER.validate_python(payload)


def dump_items(items: Iterable[RunItem]) -> list[dict[str, Any]]:
    return [dump_item(item) for item in items]


def load_items(payload: Sequence[dict[str, Any]]) -> list[RunItem]:
    return _ITEMS_ADAPTER.validate_python(list(payload))


def coerce_input(value: str | Sequence[RunItem]) -> list[RunItem]:
    """Normalize run input to a list of history items."""

    if isinstance(value, str):
        return [MessageInput(content=value)]
    return list(value)


def item_text(item: RunItem) -> str:
    """Render any item as searchable/loggable text."""

    match item:
        case MessageInput(content=content) | MessageOutput(content=content):
            return content
        case ToolCall(name=name, arguments=arguments):
            return f"{name} {json.dumps(arguments, ensure_ascii=False, sort_keys=True)}"
        case ToolOutput(name=name, output=output, error=error):
            if error is not None:
                return f"{name} error: {error}"
            return f"{name} {_render_output(output)}"
    raise TypeError(f"Unknown run item: {item!r}")


def _render_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False)
    except TypeError:
        return str(output)
