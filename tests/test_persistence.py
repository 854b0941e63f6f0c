import asyncio
import sqlite3
from unittest import mock

import pytest

from codereview.database import MemoryStorage, SQLiteStorage
from codereview.errors import StorageError
from codereview.session import ReviewSession


@pytest.fixture
def temp_db(tmp_path):
    return SQLiteStorage(str(tmp_path / "test_sessions.db"))


def test_sqlite_get_missing_key(temp_db):
    assert asyncio.run(temp_db.get("nope")) is None


def test_sqlite_put_and_replace(temp_db):
    async def run_test():
        await temp_db.put("k1", {"reviews": [], "createdAt": 1, "lastAccessedAt": 2})
        assert await temp_db.get("k1") == {"reviews": [], "createdAt": 1, "lastAccessedAt": 2}

        # Upsert keeps a single record per key
        await temp_db.put("k1", {"reviews": [], "createdAt": 1, "lastAccessedAt": 5})
        assert (await temp_db.get("k1"))["lastAccessedAt"] == 5

        conn = sqlite3.connect(temp_db.db_path)
        count = conn.execute("SELECT COUNT(*) FROM session_state").fetchone()[0]
        conn.close()
        assert count == 1

    asyncio.run(run_test())


def test_sqlite_backs_review_session(tmp_path):
    db_path = str(tmp_path / "sessions.db")

    async def run_test():
        session = ReviewSession("abc", SQLiteStorage(db_path))
        entry = await session.add_review("print(1)", "python", "ok", context="ctx")

        # A separate storage object on the same file sees the same history
        reopened = ReviewSession("abc", SQLiteStorage(db_path))
        assert await reopened.get_reviews() == [entry]
        assert await ReviewSession("other", SQLiteStorage(db_path)).get_reviews() == []

    asyncio.run(run_test())


def test_sqlite_failure_raises_storage_error(temp_db):
    with mock.patch.object(temp_db, "get_connection", side_effect=sqlite3.OperationalError("locked")):
        with pytest.raises(StorageError):
            asyncio.run(temp_db.put("k1", {"reviews": []}))
        with pytest.raises(StorageError):
            asyncio.run(temp_db.get("k1"))


def test_sqlite_corrupt_record_raises_storage_error(temp_db):
    conn = sqlite3.connect(temp_db.db_path)
    conn.execute("INSERT INTO session_state (session_key, state_json) VALUES (?, ?)", ("bad", "{not json"))
    conn.commit()
    conn.close()

    with pytest.raises(StorageError):
        asyncio.run(temp_db.get("bad"))


def test_memory_storage_returns_copies():
    storage = MemoryStorage()

    async def run_test():
        value = {"reviews": [], "createdAt": 1, "lastAccessedAt": 1}
        await storage.put("k", value)
        value["createdAt"] = 99
        assert (await storage.get("k"))["createdAt"] == 1

    asyncio.run(run_test())


def test_sqlite_closes_connection_when_query_fails(temp_db):
    conn = mock.Mock()
    conn.execute.side_effect = sqlite3.OperationalError("database is locked")

    with mock.patch.object(temp_db, "get_connection", return_value=conn):
        with pytest.raises(StorageError):
            asyncio.run(temp_db.put("k1", {"reviews": []}))
        with pytest.raises(StorageError):
            asyncio.run(temp_db.get("k1"))

    assert conn.close.call_count == 2
