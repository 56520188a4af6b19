import json
import logging

import pytest

from auth.session_store import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    Session,
    SessionStore,
)


class BrokenStore(KeyValueStore):
    async def get_item(self, key: str) -> str | None:
        raise OSError("disk unavailable")

    async def set_items(self, items: dict[str, str]) -> None:
        raise OSError("disk unavailable")

    async def remove_items(self, keys: list[str]) -> None:
        raise OSError("disk unavailable")


@pytest.mark.asyncio
async def test_memory_store_set_get() -> None:
    store = MemoryKeyValueStore()

    await store.set_items({"access_token": "access"})

    assert await store.get_item("access_token") == "access"


@pytest.mark.asyncio
async def test_memory_store_get_missing() -> None:
    store = MemoryKeyValueStore()

    assert await store.get_item("missing") is None


@pytest.mark.asyncio
async def test_memory_store_remove() -> None:
    store = MemoryKeyValueStore()
    await store.set_items({"access_token": "access", "refresh_token": "refresh"})

    await store.remove_items(["access_token", "refresh_token", "never-set"])

    assert await store.get_item("access_token") is None
    assert await store.get_item("refresh_token") is None


@pytest.mark.asyncio
async def test_file_store_persists(tmp_path) -> None:
    path = tmp_path / "session.json"
    await FileKeyValueStore(path).set_items({"access_token": "access"})

    assert await FileKeyValueStore(path).get_item("access_token") == "access"
    assert json.loads(path.read_text(encoding="utf-8")) == {"access_token": "access"}


@pytest.mark.asyncio
async def test_file_store_missing_file(tmp_path) -> None:
    store = FileKeyValueStore(tmp_path / "missing.json")

    assert await store.get_item("access_token") is None


@pytest.mark.asyncio
async def test_file_store_rejects_non_object(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(RuntimeError, match="expected top-level JSON object"):
        await FileKeyValueStore(path).get_item("access_token")


@pytest.mark.asyncio
async def test_file_store_leaves_no_temp_files(tmp_path) -> None:
    path = tmp_path / "session.json"
    store = FileKeyValueStore(path)

    await store.set_items({"access_token": "a", "refresh_token": "r"})
    await store.remove_items(["access_token"])

    assert sorted(p.name for p in tmp_path.iterdir()) == ["session.json"]


@pytest.mark.asyncio
async def test_session_round_trip_survives_reload(tmp_path) -> None:
    path = tmp_path / "session.json"
    await SessionStore(FileKeyValueStore(path)).save("access-a", "refresh-r")

    reloaded = await SessionStore(FileKeyValueStore(path)).load()

    assert reloaded == Session(access_token="access-a", refresh_token="refresh-r")


@pytest.mark.asyncio
async def test_session_clear_removes_both_tokens(tmp_path) -> None:
    path = tmp_path / "session.json"
    store = SessionStore(FileKeyValueStore(path))
    await store.save("access-a", "refresh-r")

    await store.clear()

    assert await store.load() == Session()


@pytest.mark.asyncio
async def test_load_empty_store(session_store) -> None:
    assert await session_store.load() == Session()


@pytest.mark.asyncio
async def test_load_ignores_access_token_without_refresh_token(kv_store, session_store) -> None:
    await kv_store.set_items({"access_token": "orphan"})

    assert await session_store.load() == Session()


@pytest.mark.asyncio
async def test_persistence_failures_are_logged_not_raised(caplog) -> None:
    store = SessionStore(BrokenStore())

    with caplog.at_level(logging.ERROR, logger="lexgate.api"):
        await store.save("access", "refresh")
        loaded = await store.load()
        await store.clear()

    assert loaded == Session()
    messages = [record.getMessage() for record in caplog.records]
    assert any("Failed to save tokens" in message for message in messages)
    assert any("Failed to load tokens" in message for message in messages)
    assert any("Failed to clear tokens" in message for message in messages)


def test_session_requires_token_pair() -> None:
    session = Session()

    with pytest.raises(ValueError):
        session.set("access", "")

    session.set("access", "refresh")
    assert session.is_authenticated() is True

    session.clear()
    assert session == Session()
    assert session.is_authenticated() is False
