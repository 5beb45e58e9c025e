"""
Startup sequencing: wait for the database, seed the admin account, build the app.

States move strictly forward:

    waiting_for_db -> seeding -> routes_mounted -> listening

with `aborted` as the only terminal failure. `DatabaseUnavailable` or an
error building the app aborts; seeding errors are logged and startup carries on.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import psycopg2.errors
from fastapi import FastAPI

from src.api import db
from src.api.auth_utils import hash_password
from src.api.schemas import AdminAccountSpec

logger = logging.getLogger(__name__)

TABLE_EXISTS_QUERY = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = current_schema() AND table_name=%s"
)


class DatabaseUnavailable(RuntimeError):
    """The required table never showed up within the retry budget."""

    def __init__(self, table: str, attempts: int, last_error: Optional[str]) -> None:
        self.table = table
        self.attempts = attempts
        self.last_error = last_error
        message = f"Database table '{table}' not available after {attempts} attempts"
        if last_error:
            message += f": {last_error}"
        super().__init__(message)


@dataclass(frozen=True)
class ReadinessResult:
    ready: bool
    attempts: int
    last_error: Optional[str] = None


# PUBLIC_INTERFACE
def poll_for_table(
    table: str = "users",
    retries: int = 30,
    delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Poll the database until `table` exists or `retries` attempts are spent.

    Attempts are strictly sequential; every failed attempt is followed by a
    constant `delay`. Returns as soon as an attempt sees the table and never
    raises for query errors.
    """
    if retries < 1:
        raise ValueError("retries must be >= 1")

    last_error: Optional[str] = None
    attempts = 0
    remaining = retries
    while remaining > 0:
        attempts += 1
        try:
            rows = db.fetch_all(TABLE_EXISTS_QUERY, [table])
            if rows:
                logger.info("Database table '%s' found after %d attempt(s)", table, attempts)
                return ReadinessResult(ready=True, attempts=attempts)
            last_error = f"table '{table}' does not exist yet"
            logger.warning("Waiting for database (%s table)... retries left: %d", table, remaining)
        except Exception as exc:
            last_error = str(exc).strip() or exc.__class__.__name__
            logger.error("Database readiness query failed: %s", last_error)

        remaining -= 1
        sleep(delay)

    return ReadinessResult(ready=False, attempts=attempts, last_error=last_error)


# PUBLIC_INTERFACE
def wait_for_table(
    table: str = "users",
    retries: int = 30,
    delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Block until `table` exists; raise DatabaseUnavailable once the budget is spent."""
    result = poll_for_table(table, retries=retries, delay=delay, sleep=sleep)
    if not result.ready:
        raise DatabaseUnavailable(table, result.attempts, result.last_error)
    return result


# PUBLIC_INTERFACE
def seed_admin(spec: AdminAccountSpec) -> bool:
    """Insert the admin account unless a user with the same email exists.

    Returns True when a row was inserted. Never raises: any failure is logged
    and reported as False so startup can continue.
    """
    try:
        existing = db.fetch_one("SELECT id FROM users WHERE email=%s", [spec.email])
        if existing:
            logger.info("Admin user already exists: %s", spec.email)
            return False

        db.execute(
            "INSERT INTO users (name, email, password, role) VALUES (%s, %s, %s, %s)",
            [spec.name, spec.email, hash_password(spec.password), spec.role],
        )
    except psycopg2.errors.UniqueViolation:
        # Another writer inserted the same email between our check and insert.
        logger.info("Admin user already exists: %s (created concurrently)", spec.email)
        return False
    except Exception as exc:
        logger.error("Admin seeding failed: %s", exc)
        return False

    logger.info("Admin user created: %s", spec.email)
    return True


class StartupState(str, Enum):
    waiting_for_db = "waiting_for_db"
    seeding = "seeding"
    routes_mounted = "routes_mounted"
    listening = "listening"
    aborted = "aborted"


class StartupSequence:
    """One-shot startup: readiness wait, admin seeding, app construction.

    `app_factory` and `sleep` are injectable so the sequence can run against
    a fake database in tests.
    """

    def __init__(
        self,
        admin: AdminAccountSpec,
        app_factory: Callable[[], FastAPI],
        retries: int = 30,
        delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.admin = admin
        self.app_factory = app_factory
        self.retries = retries
        self.delay = delay
        self.sleep = sleep
        self.state = StartupState.waiting_for_db

    def _transition(self, state: StartupState) -> None:
        logger.debug("Startup state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self) -> FastAPI:
        """Drive the sequence up to `routes_mounted` and return the app."""
        if self.state is not StartupState.waiting_for_db:
            raise RuntimeError(f"Startup sequence already ran (state={self.state.value})")

        try:
            wait_for_table("users", retries=self.retries, delay=self.delay, sleep=self.sleep)
        except Exception:
            self._transition(StartupState.aborted)
            raise

        self._transition(StartupState.seeding)
        seed_admin(self.admin)

        try:
            app = self.app_factory()
        except Exception:
            self._transition(StartupState.aborted)
            raise
        self._transition(StartupState.routes_mounted)
        return app

    def mark_listening(self) -> None:
        if self.state is not StartupState.routes_mounted:
            raise RuntimeError(f"Cannot listen from state {self.state.value}")
        self._transition(StartupState.listening)
