"""
Persistence for session state.

Each session key maps to one record holding the full serialized state.
There are no partial updates and no secondary indices.
"""

import asyncio
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from typing import Any, Dict, Optional

from codereview.errors import StorageError

DB_NAME = ".review_sessions.db"


class StateStorage(ABC):
    """Get/put pair keyed by session identifier."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored record for ``key``, or None if nothing is stored."""

    @abstractmethod
    async def put(self, key: str, value: Dict[str, Any]) -> None:
        """Replace the stored record for ``key``."""


class SQLiteStorage(StateStorage):
    """Stores one JSON document per session key in a local SQLite file."""

    def __init__(self, db_path: str = DB_NAME):
        self.db_path = db_path
        self.init_db()

    def get_connection(self):
        """Get a database connection with row factory for dict-like access."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        try:
            with closing(self.get_connection()) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS session_state (
                        session_key TEXT PRIMARY KEY,
                        state_json TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            logging.error(f"Failed to initialize database: {e}")
            raise StorageError(f"Failed to initialize database: {e}") from e

    def _load(self, key: str) -> Optional[str]:
        with closing(self.get_connection()) as conn:
            row = conn.execute(
                "SELECT state_json FROM session_state WHERE session_key = ?", (key,)
            ).fetchone()
        return row["state_json"] if row is not None else None

    def _save(self, key: str, state_json: str):
        with closing(self.get_connection()) as conn:
            conn.execute("""
                INSERT INTO session_state (session_key, state_json, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(session_key) DO UPDATE SET
                    state_json = excluded.state_json,
                    updated_at = CURRENT_TIMESTAMP
            """, (key, state_json))
            conn.commit()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.to_thread(self._load, key)
        except sqlite3.Error as e:
            logging.error(f"Failed to load session state for {key}: {e}")
            raise StorageError(f"Failed to load session state: {e}") from e

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logging.error(f"Corrupt session state for {key}: {e}")
            raise StorageError(f"Corrupt session state: {e}") from e

    async def put(self, key: str, value: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._save, key, json.dumps(value))
        except sqlite3.Error as e:
            logging.error(f"Failed to save session state for {key}: {e}")
            raise StorageError(f"Failed to save session state: {e}") from e


class MemoryStorage(StateStorage):
    """Process-local storage; state is lost on restart."""

    def __init__(self):
        self._records: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._records.get(key)
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: Dict[str, Any]) -> None:
        # Stored as text so callers never share mutable state with the store
        self._records[key] = json.dumps(value)
