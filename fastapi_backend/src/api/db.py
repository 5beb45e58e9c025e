import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from src.api.config import required_env

logger = logging.getLogger(__name__)


def _build_dsn() -> str:
    """
    Build DSN from the standardized database env vars.

    Uses:
      - POSTGRES_URL (optional full DSN; if provided, it wins)
      - POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_PORT, POSTGRES_HOST
    """
    url = os.getenv("POSTGRES_URL")
    if url:
        return url

    user = required_env("POSTGRES_USER")
    password = required_env("POSTGRES_PASSWORD")
    db = required_env("POSTGRES_DB")
    port = required_env("POSTGRES_PORT")
    host = os.getenv("POSTGRES_HOST", "localhost")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


_POOL: Optional[ThreadedConnectionPool] = None


# PUBLIC_INTERFACE
def init_db_pool() -> None:
    """Initialize the global PostgreSQL connection pool."""
    global _POOL
    if _POOL is not None:
        return

    _POOL = ThreadedConnectionPool(
        minconn=int(os.getenv("DB_POOL_MIN", "1")),
        maxconn=int(os.getenv("DB_POOL_MAX", "10")),
        dsn=_build_dsn(),
    )
    logger.info("Database pool ready (min=%d max=%d)", _POOL.minconn, _POOL.maxconn)


# PUBLIC_INTERFACE
def close_db_pool() -> None:
    """Close every pooled connection; the next query opens a fresh pool."""
    global _POOL
    if _POOL is None:
        return
    _POOL.closeall()
    _POOL = None


@contextmanager
def _get_conn():
    if _POOL is None:
        init_db_pool()
    assert _POOL is not None
    conn = _POOL.getconn()
    try:
        yield conn
    except psycopg2.Error:
        # A dropped connection cannot roll back; keep the original error.
        if not conn.closed:
            conn.rollback()
        raise
    finally:
        _POOL.putconn(conn)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
def fetch_one(query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            return dict(row) if row else None


# PUBLIC_INTERFACE
def fetch_all(query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            return [dict(r) for r in cur.fetchall()]


# PUBLIC_INTERFACE
def execute(query: str, params: Optional[Sequence[Any]] = None) -> int:
    """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
    with _get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params or [])
            affected = cur.rowcount
            conn.commit()
            return affected


# PUBLIC_INTERFACE
def execute_returning_one(query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """Execute a statement with RETURNING and return the first row as dict."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            if not row:
                conn.rollback()
                raise RuntimeError("Expected one row returned, got none.")
            conn.commit()
            return dict(row)
