import pytest

from auth.session_store import MemoryKeyValueStore, SessionStore


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def session_store(kv_store) -> SessionStore:
    return SessionStore(kv_store)
