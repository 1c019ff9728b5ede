"""Tool discovery boundary."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from baton.errors import NotSupportedError
from baton.tools.base import Tool


@runtime_checkable
class ToolSource(Protocol):
    """Something that can list tools for an agent, possibly over a transport."""

    name: str

    async def connect(self) -> None: ...

    async def list_tools(self) -> list[Tool]: ...

    async def close(self) -> None: ...


class StaticToolSource:
    """Serves a fixed set of in-process tools."""

    def __init__(self, tools: Iterable[Tool], *, name: str = "static") -> None:
        self.name = name
        self._tools = list(tools)
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def list_tools(self) -> list[Tool]:
        return list(self._tools)

    async def close(self) -> None:
        self.connected = False


class UnsupportedToolSource:
    """Placeholder for a remote transport that is not available in this build."""

    def __init__(self, name: str, transport: str) -> None:
        self.name = name
        self.transport = transport

    async def connect(self) -> None:
        raise NotSupportedError(f"{self.transport} tool source", self.name)

    async def list_tools(self) -> list[Tool]:
        raise NotSupportedError(f"{self.transport} tool source", self.name)

    async def close(self) -> None:
        return None
