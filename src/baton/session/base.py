"""Session contract shared by all backends."""

from __future__ import annotations

import asyncio
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, TypeVar

from rapidfuzz import fuzz, process

from baton.errors import SessionError
from baton.items import MessageInput, MessageOutput, RunItem, item_text

T = TypeVar("T")

WORD_PATTERN = re.compile(r"[a-z0-9_/-]+")
MIN_FUZZY_QUERY_LENGTH = 3
MIN_FUZZY_SCORE = 80
MAX_FUZZY_CANDIDATES = 128


def normalize_limit(limit: int | None) -> int | None:
    if limit is None:
        return None
    return max(0, limit)


class Session(ABC):
    """Ordered, append/pop-only log of run items keyed by ``session_id``.

    Every operation runs under a per-session lock, so readers always get a
    snapshot taken between whole appends. Backends with blocking I/O set
    ``offload`` and have their work moved to a worker thread.
    """

    offload: ClassVar[bool] = False

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._lock = threading.Lock()

    async def read(self, limit: int | None = None) -> list[RunItem]:
        """Return the most recent ``limit`` items in insertion order (all when ``None``)."""

        normalized = normalize_limit(limit)
        if normalized == 0:
            return []
        return await self._call("read", self._read, normalized)

    async def append(self, items: Sequence[RunItem] | None) -> None:
        if not items:
            return
        await self._call("append", self._append, list(items))

    async def pop_last(self) -> RunItem | None:
        return await self._call("pop_last", self._pop_last)

    async def clear(self) -> None:
        await self._call("clear", self._clear)

    async def search(self, query: str, *, limit: int = 20) -> list[RunItem]:
        """Find message items matching ``query``, newest first."""

        normalized_query = query.strip().lower()
        if not normalized_query or limit <= 0:
            return []
        results: list[RunItem] = []
        for item in reversed(await self.read()):
            if not isinstance(item, (MessageInput, MessageOutput)):
                continue
            text = item_text(item)
            if normalized_query in text.lower() or self._is_fuzzy_match(normalized_query, text):
                results.append(item)
                if len(results) >= limit:
                    break
        return results

    async def _call(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        def locked() -> T:
            with self._lock:
                return func(*args)

        try:
            if self.offload:
                return await asyncio.to_thread(locked)
            return locked()
        except SessionError:
            raise
        except Exception as exc:
            raise SessionError(f"Session '{self.session_id}' {operation} failed: {exc}") from exc

    @staticmethod
    def _is_fuzzy_match(normalized_query: str, text: str) -> bool:
        if len(normalized_query) < MIN_FUZZY_QUERY_LENGTH:
            return False

        query_tokens = WORD_PATTERN.findall(normalized_query)
        if not query_tokens:
            return False
        query_phrase = " ".join(query_tokens)
        window_size = len(query_tokens)

        source_tokens = WORD_PATTERN.findall(text.lower())
        if not source_tokens:
            return False

        candidates: list[str] = source_tokens[:MAX_FUZZY_CANDIDATES]
        if window_size > 1:
            max_window_start = len(source_tokens) - window_size + 1
            for idx in range(max(0, max_window_start)):
                if len(candidates) >= MAX_FUZZY_CANDIDATES:
                    break
                candidates.append(" ".join(source_tokens[idx : idx + window_size]))

        best_match = process.extractOne(
            query_phrase,
            candidates,
            scorer=fuzz.WRatio,
            score_cutoff=MIN_FUZZY_SCORE,
        )
        return best_match is not None

    @abstractmethod
    def _read(self, limit: int | None) -> list[RunItem]: ...

    @abstractmethod
    def _append(self, items: list[RunItem]) -> None: ...

    @abstractmethod
    def _pop_last(self) -> RunItem | None: ...

    @abstractmethod
    def _clear(self) -> None: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(session_id={self.session_id!r})"
