# Overview: Locking, write-transaction and retry helpers for stock mutations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, StorageError, StoreError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes the locked read overwrite whatever the session
    already had cached, so the caller validates against the locked row.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Open the write transaction up front.

    SQLite has no row locks, so take the database write lock immediately
    (BEGIN IMMEDIATE) instead of on first write. Two workers confirming
    against the same product then serialize on this statement and the second
    one reads the first one's committed counter.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before every
    retry and on every failure, so nothing from a failed attempt is committed.

    - StoreError raised by func propagates unchanged (business outcome).
    - StaleDataError left after the last attempt becomes ConflictError.
    - Any other database failure becomes StorageError.
    """
    if attempts is None:
        attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except StoreError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    current_app.logger.warning("Concurrent update lost after %s attempts", attempts)
                    raise ConflictError(
                        "Record was modified concurrently; reload and retry"
                    ) from exc
                current_app.logger.error("Database unavailable after %s attempts: %s", attempts, exc)
                raise StorageError("Database temporarily unavailable") from exc
            current_app.logger.info("Retrying after concurrency failure (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Database error")
            raise StorageError("Database error") from exc
