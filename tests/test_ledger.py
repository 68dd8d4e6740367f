"""Tests for the ledger facade and its reference backends."""

import json
import sqlite3

import pytest

from entityledger.core.errors import QueryUnsupportedError, StoreReadError, StoreWriteError
from entityledger.core.ledger import Cursor, MemoryLedger, SqliteLedger
from tests.conftest import CloseCounter


class TestCursor:
    def test_iterates_source(self):
        cursor = Cursor(iter([1, 2, 3]))
        assert list(cursor) == [1, 2, 3]

    def test_close_runs_hook_once(self):
        counter = CloseCounter()
        cursor = Cursor(iter([]), on_close=counter)
        cursor.close()
        cursor.close()
        assert counter.calls == 1
        assert cursor.closed

    def test_context_manager_closes(self):
        counter = CloseCounter()
        with Cursor(iter([1]), on_close=counter) as cursor:
            next(cursor)
        assert counter.calls == 1

    def test_context_manager_closes_on_error(self):
        counter = CloseCounter()
        with pytest.raises(RuntimeError):
            with Cursor(iter([1]), on_close=counter):
                raise RuntimeError("boom")
        assert counter.calls == 1

    def test_read_after_close(self):
        cursor = Cursor(iter([1]))
        cursor.close()
        with pytest.raises(StoreReadError, match="closed"):
            next(cursor)


class TestPutGet:
    def test_get_missing_is_empty(self, any_ledger):
        assert any_ledger.get("nobody") == b""

    def test_put_then_get(self, any_ledger):
        any_ledger.put("u1", b'{"id":"u1"}')
        assert any_ledger.get("u1") == b'{"id":"u1"}'

    def test_put_overwrites(self, any_ledger):
        any_ledger.put("k", b'{"v":1}')
        any_ledger.put("k", b'{"v":2}')
        assert any_ledger.get("k") == b'{"v":2}'

    def test_empty_key_rejected(self, any_ledger):
        with pytest.raises(StoreWriteError):
            any_ledger.put("", b"{}")

    def test_non_bytes_value_rejected(self, any_ledger):
        with pytest.raises(StoreWriteError):
            any_ledger.put("k", "not bytes")

    def test_delete_clears_state(self, any_ledger):
        any_ledger.put("k", b"{}")
        any_ledger.delete("k")
        assert any_ledger.get("k") == b""


class TestQuery:
    def _load(self, ledger):
        for rec in (
            {"docType": "User", "id": "u2", "firstName": "Ben"},
            {"docType": "User", "id": "u1", "firstName": "Ana"},
            {"docType": "Activity", "id": "a1"},
        ):
            ledger.put(rec["id"], json.dumps(rec).encode())

    def test_selector_filters(self, any_ledger):
        self._load(any_ledger)
        with any_ledger.query('{"selector": {"docType": "User"}}') as cursor:
            keys = [r.key for r in cursor]
        assert keys == ["u1", "u2"]

    def test_limit(self, any_ledger):
        self._load(any_ledger)
        with any_ledger.query('{"selector": {}, "limit": 2}') as cursor:
            assert len(list(cursor)) == 2

    def test_values_are_stored_bytes(self, any_ledger):
        self._load(any_ledger)
        with any_ledger.query('{"selector": {"id": "a1"}}') as cursor:
            (result,) = list(cursor)
        assert json.loads(result.value) == {"docType": "Activity", "id": "a1"}

    def test_no_matches(self, any_ledger):
        self._load(any_ledger)
        with any_ledger.query('{"selector": {"docType": "Car"}}') as cursor:
            assert list(cursor) == []

    def test_malformed_expression(self, any_ledger):
        with pytest.raises(StoreReadError, match="Invalid query"):
            any_ledger.query("not json")

    def test_unsupported_operator_surfaces_on_read(self, any_ledger):
        self._load(any_ledger)
        cursor = any_ledger.query('{"selector": {"id": {"$near": 1}}}')
        with pytest.raises(StoreReadError):
            list(cursor)
        cursor.close()

    def test_memory_without_rich_query(self):
        with pytest.raises(QueryUnsupportedError):
            MemoryLedger(rich_query=False).query('{"selector": {}}')

    def test_sqlite_without_rich_query(self, tmp_path):
        with pytest.raises(QueryUnsupportedError):
            SqliteLedger(tmp_path / "l.db", rich_query=False).query('{"selector": {}}')


class TestHistory:
    def test_unknown_key_is_empty(self, any_ledger):
        with any_ledger.history("nobody") as cursor:
            assert list(cursor) == []

    def test_entries_are_chronological(self, any_ledger):
        any_ledger.put("k", b'{"v":1}')
        any_ledger.put("k", b'{"v":2}')
        with any_ledger.history("k") as cursor:
            entries = list(cursor)
        assert [e.value for e in entries] == [b'{"v":1}', b'{"v":2}']
        assert all(not e.is_delete for e in entries)
        assert len({e.tx_id for e in entries}) == 2

    def test_delete_appends_tombstone(self, any_ledger):
        any_ledger.put("k", b'{"v":1}')
        any_ledger.delete("k")
        with any_ledger.history("k") as cursor:
            entries = list(cursor)
        assert len(entries) == 2
        assert entries[-1].is_delete

    def test_timestamps_populated(self, any_ledger):
        any_ledger.put("k", b"{}")
        with any_ledger.history("k") as cursor:
            (entry,) = list(cursor)
        assert entry.timestamp_seconds > 0
        assert 0 <= entry.timestamp_nanos < 1_000_000_000

    def test_history_scoped_to_key(self, any_ledger):
        any_ledger.put("a", b"{}")
        any_ledger.put("b", b"{}")
        with any_ledger.history("a") as cursor:
            assert len(list(cursor)) == 1


class TestSqlitePersistence:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "ledger.db"
        SqliteLedger(path).put("u1", b'{"id":"u1"}')

        reopened = SqliteLedger(path)
        assert reopened.get("u1") == b'{"id":"u1"}'
        with reopened.history("u1") as cursor:
            assert len(list(cursor)) == 1

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "ledger.db"
        SqliteLedger(path)
        assert path.exists()

    def test_failed_cursor_open_closes_connection(self, tmp_path, monkeypatch):
        ledger = SqliteLedger(tmp_path / "ledger.db")
        with sqlite3.connect(ledger.db_path) as conn:
            conn.execute("DROP TABLE history")

        opened = []
        real_connect = sqlite3.connect

        class TrackingConnection:
            def __init__(self, conn):
                self.conn = conn
                self.closed = False

            def execute(self, *args):
                return self.conn.execute(*args)

            def close(self):
                self.closed = True
                self.conn.close()

        def tracking_connect(*args, **kwargs):
            conn = TrackingConnection(real_connect(*args, **kwargs))
            opened.append(conn)
            return conn

        monkeypatch.setattr(sqlite3, "connect", tracking_connect)

        with pytest.raises(StoreReadError, match="Failed to open cursor"):
            ledger.history("u1")
        assert [c.closed for c in opened] == [True]
