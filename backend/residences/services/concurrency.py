# Overview: Row locking and retry helpers shared by the ledger services.

from __future__ import annotations

import time

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ValidationError
from ..extensions import db


def serialize_sqlite_writers(engine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite only emits BEGIN before the first INSERT/UPDATE, and SQLite
    ignores FOR UPDATE, so the reads behind a check-then-write would run
    unlocked. Taking the database write lock at BEGIN makes ledger
    transactions on SQLite run one at a time; a waiting writer blocks for
    the driver's busy timeout and then surfaces as OperationalError, which
    run_with_retry retries.

    An in-memory database lives on a single shared connection and is left
    alone.
    """
    if engine.url.database in (None, "", ":memory:"):
        return

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    PostgreSQL honors SELECT ... FOR UPDATE. SQLite ignores it; there the
    whole transaction holds the write lock (see serialize_sqlite_writers).
    """
    return query.with_for_update()


def flush_or_conflict(message: str) -> None:
    """
    Flush pending changes; a unique-index violation becomes ValidationError.

    The partial unique indexes on is_active are the storage-level backstop
    for the one-active-relationship rule.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ValidationError(message) from exc


def get_locked(model, record_id: int):
    """Load one row by primary key under FOR UPDATE, or None."""
    return lock_for_update(db.session.query(model).filter_by(id=record_id)).first()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (version_id conflicts). Ledger errors are never retried.
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


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
