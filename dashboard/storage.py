"""Persistent storage for the client-side authentication session."""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Dict, Optional, Protocol

from .models import User

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteKeyValueStore:
    """String key-value table kept in a local SQLite file."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the storage table if it does not already exist."""

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS local_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM local_storage WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO local_storage (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def remove(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM local_storage WHERE key = ?", (key,))


class MemoryKeyValueStore:
    """Dictionary-backed store, mostly useful for tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SessionStore:
    """Read and write the persisted bearer token and user record.

    When no backend is available every read returns ``None`` and every write
    is silently ignored.
    """

    def __init__(self, backend: Optional[KeyValueBackend] = None) -> None:
        self._backend = backend

    @property
    def available(self) -> bool:
        return self._backend is not None

    def get_token(self) -> Optional[str]:
        if self._backend is None:
            return None
        return self._backend.get(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        if self._backend is None:
            return
        self._backend.set(TOKEN_KEY, token)

    def remove_token(self) -> None:
        if self._backend is None:
            return
        self._backend.remove(TOKEN_KEY)

    def get_user(self) -> Optional[User]:
        """Return the stored user.

        Raises :class:`ValueError` when the stored record is not valid JSON.
        """
        if self._backend is None:
            return None
        raw = self._backend.get(USER_KEY)
        if not raw:
            return None
        return User.from_dict(json.loads(raw))

    def set_user(self, user: User) -> None:
        if self._backend is None:
            return
        self._backend.set(USER_KEY, json.dumps(user.to_dict()))

    def remove_user(self) -> None:
        if self._backend is None:
            return
        self._backend.remove(USER_KEY)

    def clear_auth(self) -> None:
        if self._backend is None:
            return
        self._backend.remove(TOKEN_KEY)
        self._backend.remove(USER_KEY)

    def has_session(self) -> bool:
        return bool(self.get_token() and self.get_user())


def open_session_store(path: Path) -> SessionStore:
    """Return a :class:`SessionStore` backed by an initialised SQLite file."""

    backend = SQLiteKeyValueStore(path)
    backend.initialize()
    return SessionStore(backend)


__all__ = [
    "KeyValueBackend",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "SessionStore",
    "TOKEN_KEY",
    "USER_KEY",
    "open_session_store",
]
