# Overview: Service-layer helpers for concurrency; transaction scopes, locking and retries.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the write transaction for a unit of work.

    SQLite: BEGIN IMMEDIATE takes the database write lock up front, so
    concurrent writers queue instead of interleaving read-then-decide logic.
    It also makes SAVEPOINTs safe under pysqlite. Other databases start the
    transaction lazily and rely on row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def is_session_fatal(exc: BaseException) -> bool:
    """
    True when an exception means the whole unit of work is unusable.

    Lost connections, lock timeouts and deadlocks abort the session; anything
    else (including constraint violations) is scoped to the record being
    processed.
    """
    if isinstance(exc, (OperationalError, InterfaceError, StaleDataError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run from scratch.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
