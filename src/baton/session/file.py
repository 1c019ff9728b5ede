"""JSONL session backend."""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any

from loguru import logger

from baton.items import RunItem, dump_item, load_item
from baton.session.base import Session

SESSION_FILE_SUFFIX = ".jsonl"


class FileSession(Session):
    """One JSONL file per session.

    Each line holds one item tagged with its batch id, batch size and position.
    A batch whose lines are not all present (a crash mid-append) is ignored on
    read, which makes append all-or-nothing.
    """

    offload = True

    def __init__(self, session_id: str, directory: str | Path) -> None:
        super().__init__(session_id)
        self.directory = Path(directory)
        self.path = self.directory / f"{_safe_name(session_id)}{SESSION_FILE_SUFFIX}"

    def _read(self, limit: int | None) -> list[RunItem]:
        items = [item for batch in self._read_batches() for item in batch]
        if limit is None or limit >= len(items):
            return items
        return items[-limit:]

    def _append(self, items: list[RunItem]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        lines = self._encode_batch(items)
        self._drop_torn_tail()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write("".join(lines))
            handle.flush()
            os.fsync(handle.fileno())

    def _pop_last(self) -> RunItem | None:
        batches = self._read_batches()
        if not batches:
            return None
        last = batches[-1].pop()
        if not batches[-1]:
            batches.pop()
        self._rewrite(batches)
        return last

    def _clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def _read_batches(self) -> list[list[RunItem]]:
        if not self.path.exists():
            return []

        batches: list[list[RunItem]] = []
        current_id: str | None = None
        current: list[RunItem] = []
        expected = 0
        with self.path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    # A torn final line belongs to an unfinished batch.
                    continue
                batch_id = record.get("batch")
                if batch_id != current_id:
                    if current_id is not None and len(current) == expected:
                        batches.append(current)
                    current_id = batch_id
                    current = []
                    expected = int(record.get("size", 0))
                current.append(load_item(record["item"]))
        if current_id is not None and len(current) == expected:
            batches.append(current)
        return batches

    def _drop_torn_tail(self) -> None:
        """Truncate a final line left without its newline by an interrupted append."""

        if not self.path.exists():
            return
        with self.path.open("rb+") as handle:
            size = handle.seek(0, os.SEEK_END)
            if size == 0:
                return
            handle.seek(size - 1)
            if handle.read(1) == b"\n":
                return
            handle.seek(0)
            keep = handle.read().rfind(b"\n") + 1
            handle.truncate(keep)
            handle.flush()
            os.fsync(handle.fileno())
        logger.warning("session.file.torn_tail path={} dropped_bytes={}", self.path, size - keep)

    def _rewrite(self, batches: list[list[RunItem]]) -> None:
        tmp_path = self.path.with_suffix(f"{SESSION_FILE_SUFFIX}.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            for batch in batches:
                handle.write("".join(self._encode_batch(batch)))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self.path)

    @staticmethod
    def _encode_batch(items: list[RunItem]) -> list[str]:
        batch_id = uuid.uuid4().hex
        lines: list[str] = []
        for index, item in enumerate(items):
            record: dict[str, Any] = {
                "batch": batch_id,
                "size": len(items),
                "index": index,
                "item": dump_item(item),
            }
            lines.append(json.dumps(record, ensure_ascii=False) + "\n")
        return lines


def _safe_name(session_id: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in session_id)
