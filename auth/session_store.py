from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from lexgate.constants import (
    ACCESS_TOKEN_KEY,
    DEFAULT_SESSION_STORE_PATH,
    LOGGER,
    REFRESH_TOKEN_KEY,
)

PERSISTENCE_ERRORS = (OSError, RuntimeError, ValueError)


@dataclass
class Session:
    access_token: str | None = None
    refresh_token: str | None = None

    def set(self, access_token: str, refresh_token: str) -> None:
        if not access_token or not refresh_token:
            raise ValueError("A session needs both an access token and a refresh token.")
        self.access_token = access_token
        self.refresh_token = refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None

    def is_authenticated(self) -> bool:
        return bool(self.access_token) and bool(self.refresh_token)


class KeyValueStore(ABC):
    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set_items(self, items: dict[str, str]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def remove_items(self, keys: list[str]) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_items(self, items: dict[str, str]) -> None:
        self._items.update(items)

    async def remove_items(self, keys: list[str]) -> None:
        for key in keys:
            self._items.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """String entries kept in one JSON object on disk, replaced atomically."""

    def __init__(self, path: str | Path = DEFAULT_SESSION_STORE_PATH) -> None:
        self._path = Path(path)

    async def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise RuntimeError(f"Stored value for {key!r} is not a string.")
        return value

    async def set_items(self, items: dict[str, str]) -> None:
        all_items = self._read_all()
        all_items.update(items)
        self._write_all(all_items)

    async def remove_items(self, keys: list[str]) -> None:
        all_items = self._read_all()
        for key in keys:
            all_items.pop(key, None)
        self._write_all(all_items)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("Session store file is invalid; expected top-level JSON object.")
        return raw

    def _write_all(self, payload: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


class SessionStore:
    """Persists the token pair; failures are logged and never raised.

    An unsynced session stays usable in memory for the current process, it
    just will not survive a restart.
    """

    def __init__(self, store: KeyValueStore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._logger = logger or LOGGER

    @property
    def backend(self) -> KeyValueStore:
        return self._store

    async def load(self) -> Session:
        try:
            access_token = await self._store.get_item(ACCESS_TOKEN_KEY)
            refresh_token = await self._store.get_item(REFRESH_TOKEN_KEY)
        except PERSISTENCE_ERRORS as error:
            self._logger.error("Failed to load tokens: %s", error)
            return Session()

        if access_token and not refresh_token:
            self._logger.warning("Stored access token has no refresh token; ignoring it.")
            return Session()
        return Session(access_token=access_token, refresh_token=refresh_token)

    async def save(self, access_token: str, refresh_token: str) -> None:
        try:
            await self._store.set_items(
                {ACCESS_TOKEN_KEY: access_token, REFRESH_TOKEN_KEY: refresh_token}
            )
        except PERSISTENCE_ERRORS as error:
            self._logger.error("Failed to save tokens: %s", error)

    async def clear(self) -> None:
        try:
            await self._store.remove_items([ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY])
        except PERSISTENCE_ERRORS as error:
            self._logger.error("Failed to clear tokens: %s", error)
