"""Tests for connection checkout and error handling in src.api.db."""

from typing import List

import psycopg2
import pytest

from src.api import db


class StubConnection:
    def __init__(self, closed: int = 0) -> None:
        self.closed = closed
        self.rollbacks = 0

    def rollback(self) -> None:
        if self.closed:
            raise psycopg2.InterfaceError("connection already closed")
        self.rollbacks += 1


class StubPool:
    def __init__(self, conn: StubConnection) -> None:
        self.conn = conn
        self.returned: List[StubConnection] = []

    def getconn(self) -> StubConnection:
        return self.conn

    def putconn(self, conn: StubConnection) -> None:
        self.returned.append(conn)


class TestGetConn:
    """Tests for db._get_conn."""

    def test_open_connection_rolled_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        pool = StubPool(StubConnection())
        monkeypatch.setattr(db, "_POOL", pool)

        with pytest.raises(psycopg2.ProgrammingError):
            with db._get_conn():
                raise psycopg2.ProgrammingError("syntax error")

        assert pool.conn.rollbacks == 1
        assert pool.returned == [pool.conn]

    def test_dropped_connection_keeps_original_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A closed connection is not rolled back, so the real cause surfaces."""
        pool = StubPool(StubConnection(closed=2))
        monkeypatch.setattr(db, "_POOL", pool)

        with pytest.raises(psycopg2.OperationalError, match="server closed the connection unexpectedly"):
            with db._get_conn():
                raise psycopg2.OperationalError("server closed the connection unexpectedly")

        assert pool.returned == [pool.conn]

    def test_close_pool_without_pool(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(db, "_POOL", None)
        db.close_db_pool()
        assert db._POOL is None
