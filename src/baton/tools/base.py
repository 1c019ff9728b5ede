"""Tool capability definitions."""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from baton.context import ToolContext
from baton.errors import NotSupportedError


def _empty_parameters() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


@dataclass(frozen=True)
class Tool:
    """A named capability the model may invoke with structured arguments."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=_empty_parameters)
    handler: Callable[..., Any] | None = None
    takes_context: bool = False
    needs_approval: bool = False
    timeout_seconds: float | None = None
    input_model: type[BaseModel] | None = None
    error_formatter: Callable[[Exception], str] | None = None

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def format_error(self, exc: Exception) -> str:
        if self.error_formatter is not None:
            return self.error_formatter(exc)
        return f"{type(exc).__name__}: {exc!s}"

    async def run(self, arguments: dict[str, Any], context: ToolContext | None = None) -> Any:
        if self.handler is None:
            raise NotSupportedError(f"tool '{self.name}'", "no handler bound")

        args: tuple[Any, ...] = ()
        kwargs: dict[str, Any] = {}
        if self.input_model is not None:
            args = (self.input_model.model_validate(arguments),)
        else:
            kwargs.update(arguments)
        if self.takes_context:
            kwargs["context"] = context

        if inspect.iscoroutinefunction(self.handler):
            return await self.handler(*args, **kwargs)

        # Sync handlers run in a worker thread so sibling calls keep progressing.
        result = await asyncio.to_thread(functools.partial(self.handler, *args, **kwargs))
        if inspect.isawaitable(result):
            result = await result
        return result


def tool_from_model(
    model: type[BaseModel],
    handler: Callable[..., Any],
    *,
    name: str,
    description: str | None = None,
    takes_context: bool = False,
    needs_approval: bool = False,
    timeout_seconds: float | None = None,
) -> Tool:
    """Build a tool whose arguments are validated into ``model`` before the handler runs."""

    resolved_description = description if description is not None else inspect.getdoc(model) or ""
    return Tool(
        name=name,
        description=resolved_description,
        parameters=model.model_json_schema(),
        handler=handler,
        takes_context=takes_context,
        needs_approval=needs_approval,
        timeout_seconds=timeout_seconds,
        input_model=model,
    )
