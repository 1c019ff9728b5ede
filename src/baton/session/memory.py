"""In-process session backend."""

from __future__ import annotations

from baton.items import RunItem
from baton.session.base import Session


class MemorySession(Session):
    """Lock-guarded list of items; lives as long as the object."""

    def __init__(self, session_id: str = "default") -> None:
        super().__init__(session_id)
        self._items: list[RunItem] = []

    def _read(self, limit: int | None) -> list[RunItem]:
        if limit is None or limit >= len(self._items):
            return list(self._items)
        return self._items[-limit:]

    def _append(self, items: list[RunItem]) -> None:
        self._items.extend(items)

    def _pop_last(self) -> RunItem | None:
        if not self._items:
            return None
        return self._items.pop()

    def _clear(self) -> None:
        self._items.clear()
