from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from baton.errors import SessionError
from baton.items import MessageInput, MessageOutput, ToolCall, ToolOutput
from baton.session import FileSession, MemorySession, Session, SQLiteSession


@pytest.fixture(params=["memory", "sqlite", "file"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> Session:
    if request.param == "memory":
        return MemorySession("s1")
    if request.param == "sqlite":
        return SQLiteSession("s1", tmp_path / "sessions.db")
    return FileSession("s1", tmp_path / "sessions")


def _items(*contents: str) -> list[MessageInput]:
    return [MessageInput(content=content) for content in contents]


@pytest.mark.asyncio
async def test_append_then_read_keeps_order(backend: Session) -> None:
    await backend.append(_items("a", "b"))
    await backend.append(
        [
            ToolCall(call_id="c1", name="lookup", arguments={"q": "x"}),
            ToolOutput(call_id="c1", name="lookup", output={"hits": 1}),
            MessageOutput(content="done", agent="triage"),
        ]
    )

    items = await backend.read()

    assert [item.type for item in items] == ["message_input", "message_input", "tool_call", "tool_output", "message_output"]
    assert items[0].content == "a"
    assert items[3].output == {"hits": 1}
    assert items[4].agent == "triage"


@pytest.mark.asyncio
async def test_read_limit_semantics(backend: Session) -> None:
    await backend.append(_items("a", "b", "c"))

    assert [item.content for item in await backend.read(2)] == ["b", "c"]
    assert [item.content for item in await backend.read(3)] == ["a", "b", "c"]
    assert [item.content for item in await backend.read(10)] == ["a", "b", "c"]
    assert await backend.read(0) == []
    assert await backend.read(-4) == []


@pytest.mark.asyncio
async def test_empty_append_is_noop(backend: Session) -> None:
    await backend.append([])
    await backend.append(None)

    assert await backend.read() == []


@pytest.mark.asyncio
async def test_pop_last(backend: Session) -> None:
    assert await backend.pop_last() is None

    await backend.append(_items("a"))
    await backend.append(_items("b", "c"))

    popped = await backend.pop_last()

    assert popped is not None
    assert popped.content == "c"
    assert [item.content for item in await backend.read()] == ["a", "b"]
    assert backend.session_id == "s1"


@pytest.mark.asyncio
async def test_clear(backend: Session) -> None:
    await backend.append(_items("a", "b"))

    await backend.clear()

    assert await backend.read() == []
    assert await backend.pop_last() is None


@pytest.mark.asyncio
async def test_search_returns_newest_messages_first(backend: Session) -> None:
    await backend.append(_items("deploy the staging cluster", "unrelated note"))
    await backend.append([MessageOutput(content="staging deploy finished"), ToolCall(call_id="c1", name="staging")])

    results = await backend.search("staging")

    assert [item.content for item in results] == ["staging deploy finished", "deploy the staging cluster"]
    assert await backend.search("   ") == []


@pytest.mark.asyncio
async def test_search_matches_fuzzy_terms() -> None:
    session = MemorySession()
    await session.append(_items("the kubernetes rollout is stuck"))

    results = await session.search("kubernets")

    assert len(results) == 1


@pytest.mark.asyncio
async def test_sqlite_sessions_share_a_database(tmp_path: Path) -> None:
    db_path = tmp_path / "shared.db"
    first = SQLiteSession("first", db_path)
    second = SQLiteSession("second", db_path)

    await first.append(_items("one"))
    await second.append(_items("two", "three"))
    await first.clear()

    assert await first.read() == []
    assert [item.content for item in await second.read()] == ["two", "three"]

    reopened = SQLiteSession("second", db_path)
    assert [item.content for item in await reopened.read(1)] == ["three"]
    first.close()
    second.close()
    reopened.close()


@pytest.mark.asyncio
async def test_file_session_ignores_incomplete_trailing_batch(tmp_path: Path) -> None:
    session = FileSession("chat", tmp_path)
    await session.append(_items("a", "b"))

    torn = {"batch": "deadbeef", "size": 3, "index": 0, "item": {"type": "message_input", "content": "lost"}}
    with session.path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(torn) + "\n")
        handle.write('{"batch": "deadbeef", "size": 3, "index": 1, "item": {"type": "mess')

    assert [item.content for item in await session.read()] == ["a", "b"]


@pytest.mark.asyncio
async def test_file_session_survives_reopen(tmp_path: Path) -> None:
    await FileSession("chat", tmp_path).append(_items("a", "b"))

    reopened = FileSession("chat", tmp_path)

    assert [item.content for item in await reopened.read()] == ["a", "b"]


@pytest.mark.asyncio
async def test_storage_failure_surfaces_as_session_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    session = FileSession("chat", blocker)

    with pytest.raises(SessionError, match="append failed"):
        await session.append(_items("a"))


@pytest.mark.asyncio
async def test_append_after_torn_tail_is_kept(tmp_path: Path) -> None:
    session = FileSession("chat", tmp_path)
    await session.append(_items("a"))
    with session.path.open("a", encoding="utf-8") as handle:
        handle.write('{"batch": "deadbeef", "size": 2, "index": 0, "item": {"type": "mess')

    await session.append(_items("b", "c"))

    assert [item.content for item in await session.read()] == ["a", "b", "c"]
    assert session.path.read_text(encoding="utf-8").endswith("\n")
    assert [item.content for item in await FileSession("chat", tmp_path).read()] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_concurrent_appends_keep_batches_whole(backend: Session) -> None:
    await asyncio.gather(*(backend.append(_items(f"{n}-a", f"{n}-b", f"{n}-c")) for n in range(20)))

    contents = [item.content for item in await backend.read()]

    assert len(contents) == 60
    for start in range(0, 60, 3):
        batch = contents[start : start + 3]
        prefix = batch[0].split("-")[0]
        assert batch == [f"{prefix}-a", f"{prefix}-b", f"{prefix}-c"]
    assert sorted({content.split("-")[0] for content in contents}, key=int) == [str(n) for n in range(20)]


@pytest.mark.asyncio
async def test_concurrent_pops_remove_distinct_items(backend: Session) -> None:
    await backend.append(_items(*(str(n) for n in range(10))))

    popped = await asyncio.gather(*(backend.pop_last() for _ in range(4)))

    assert sorted(item.content for item in popped) == ["6", "7", "8", "9"]
    assert [item.content for item in await backend.read()] == [str(n) for n in range(6)]
