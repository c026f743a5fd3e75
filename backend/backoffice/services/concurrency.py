# Overview: Transaction boundary, row locking and retry for every multi-row ledger operation.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there writers are serialized by
    BEGIN IMMEDIATE (see begin_write) and stale writes are caught by the
    version_id columns.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    A deferred SQLite transaction lets two writers read the same stock level
    before either upgrades to a write lock. BEGIN IMMEDIATE makes the second
    writer wait (up to the connection timeout) and then read committed state.
    """
    if db.engine.dialect.name != "sqlite":
        return
    session = db.session()
    if session.in_transaction():
        if session.new or session.dirty or session.deleted:
            # Pending work from the caller: join its transaction as-is
            return
        # Close the read-only snapshot left by earlier queries
        session.commit()
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, busy database) and StaleDataError
    (optimistic locking conflicts) with exponential backoff. The session is
    rolled back before every retry and on every failure, so a raised error never
    leaves partial work behind. Exhausted retries and other database failures
    surface as StorageError; LedgerErrors raised by func propagate unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError(
                    "Database is busy, retry the operation",
                    {"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(
                "Database operation failed",
                {"cause": exc.__class__.__name__},
            ) from exc
        except Exception:
            db.session.rollback()
            raise


def atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as one committed transaction.

    func does its reads and writes on db.session without committing; the
    commit happens once, after func returns. Any exception rolls the whole
    unit back, and lock conflicts re-run func against fresh state.
    """
    def _op():
        begin_write()
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
