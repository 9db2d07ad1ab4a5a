# Overview: Transaction helpers shared by writers: exclusive begin, row locks, retry.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def begin_exclusive() -> None:
    """
    Take the database write lock before the first read of a unit of work.

    SQLite only locks on the first write, so a read-then-write checkout would
    let two tills read the same stock level. BEGIN IMMEDIATE takes the
    reserved lock up front; other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (busy database, deadlocks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before each
    new attempt; the last failure is re-raised.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
