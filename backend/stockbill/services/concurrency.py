# Overview: Transaction boundaries, row locking and retry for the billing engine.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    covers it there by taking the database write lock up front.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Take the writer lock before the first read of a read-modify-write flow.

    On SQLite this issues BEGIN IMMEDIATE so two issuers can never both read
    the same sequence value. Other stores serialize on the row locks taken by
    UPDATE / SELECT ... FOR UPDATE, so nothing is needed here.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """
    All-or-nothing boundary: commit on success, rollback on any exception.

    Nothing inside the block is visible to other transactions until commit.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must run its own unit_of_work so a
    retry starts from a clean session. The final failure is raised as
    StorageError; constraint violations are raised as ConflictError.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    attempts = max(attempts, 1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError(
                    "Transaction could not be committed; no changes were applied",
                    details={"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            current_app.logger.warning(
                "Retrying after %s (attempt %d of %d)",
                exc.__class__.__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(
                "Write rejected by a uniqueness or integrity constraint; no changes were applied",
                details={"cause": str(exc.orig)},
            ) from exc
