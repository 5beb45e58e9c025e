import re
from typing import Any, Dict, List, Optional, Sequence

import psycopg2.errors
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api import db
from src.api.main import create_app
from src.api.metrics import RequestMetrics


def _normalize(query: str) -> str:
    return " ".join(query.split())


class FakeUsersTable:
    """In-memory stand-in for the `users` table behind src.api.db.

    Understands only the handful of statements the service issues.
    """

    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.next_id = 1
        self.table_present = True
        self.fail_with: Optional[Exception] = None
        self.queries: List[str] = []

    # --- helpers ---

    def _record(self, query: str) -> str:
        q = _normalize(query)
        self.queries.append(q)
        if self.fail_with is not None:
            raise self.fail_with
        return q

    @staticmethod
    def _project(row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        return {c.strip(): row[c.strip()] for c in columns.split(",")}

    def _find(self, q: str, params: Sequence[Any]) -> Optional[Dict[str, Any]]:
        if "WHERE email=%s" in q:
            return next((r for r in self.rows if r["email"] == params[0]), None)
        if "WHERE id=%s" in q:
            return next((r for r in self.rows if r["id"] == params[-1]), None)
        raise AssertionError(f"Unsupported lookup: {q}")

    def _insert(self, q: str, params: Sequence[Any]) -> Dict[str, Any]:
        columns = re.search(r"INSERT INTO users \((.+?)\) VALUES", q).group(1)
        row = dict(zip([c.strip() for c in columns.split(",")], params))
        if any(r["email"] == row["email"] for r in self.rows):
            raise psycopg2.errors.UniqueViolation("duplicate key value violates unique constraint")
        row["id"] = self.next_id
        self.next_id += 1
        self.rows.append(row)
        return row

    def insert_user(self, name: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        return self._insert(
            "INSERT INTO users (name, email, password, role) VALUES (%s, %s, %s, %s)",
            [name, email, password, role],
        )

    def by_email(self, email: str) -> List[Dict[str, Any]]:
        return [r for r in self.rows if r["email"] == email]

    # --- db module API ---

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        q = self._record(query)
        if "information_schema.tables" in q:
            return [{"table_name": params[0]}] if self.table_present else []
        select = re.match(r"SELECT (.+?) FROM users ORDER BY id", q)
        if select:
            return [self._project(r, select.group(1)) for r in sorted(self.rows, key=lambda r: r["id"])]
        raise AssertionError(f"Unsupported query: {q}")

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        q = self._record(query)
        columns = re.match(r"SELECT (.+?) FROM users", q).group(1)
        row = self._find(q, params or [])
        return self._project(row, columns) if row else None

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        q = self._record(query)
        params = params or []
        if q.startswith("INSERT INTO users"):
            self._insert(q, params)
            return 1
        if q.startswith("DELETE FROM users"):
            before = len(self.rows)
            self.rows = [r for r in self.rows if r["id"] != params[0]]
            return before - len(self.rows)
        raise AssertionError(f"Unsupported statement: {q}")

    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        q = self._record(query)
        params = params or []
        returning = q.split(" RETURNING ")[1]
        if q.startswith("INSERT INTO users"):
            return self._project(self._insert(q, params), returning)
        if q.startswith("UPDATE users SET"):
            row = self._find(q, params)
            if row is None:
                raise RuntimeError("Expected one row returned, got none.")
            set_clause = re.match(r"UPDATE users SET (.+?) WHERE", q).group(1)
            for col, val in zip(re.findall(r"(\w+)=%s", set_clause), params):
                row[col] = val
            return self._project(row, returning)
        raise AssertionError(f"Unsupported statement: {q}")


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JWT_SECRET", "test-secret")


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeUsersTable:
    """Route every src.api.db query to an in-memory users table."""
    fake = FakeUsersTable()
    monkeypatch.setattr(db, "fetch_one", fake.fetch_one)
    monkeypatch.setattr(db, "fetch_all", fake.fetch_all)
    monkeypatch.setattr(db, "execute", fake.execute)
    monkeypatch.setattr(db, "execute_returning_one", fake.execute_returning_one)
    return fake


@pytest.fixture
def metrics() -> RequestMetrics:
    """Fresh metrics registry per test."""
    return RequestMetrics()


@pytest.fixture
def app(fake_db: FakeUsersTable, metrics: RequestMetrics) -> FastAPI:
    return create_app(metrics)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
