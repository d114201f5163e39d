# Overview: Transaction primitive shared by every hot write path (cycle, lots, accounts, counters).

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import FoodOpsError, TransactionConflictError
from ..extensions import db


DEFAULT_ATTEMPTS = 5
DEFAULT_BACKOFF = 0.05


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id_col
    check at flush time is what detects the conflicting writer.
    """
    return query.with_for_update()


def _retry_settings(attempts, backoff_base):
    if has_app_context():
        if attempts is None:
            attempts = current_app.config.get("TX_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS)
        if backoff_base is None:
            backoff_base = current_app.config.get("TX_RETRY_BACKOFF", DEFAULT_BACKOFF)
    return (
        max(1, int(attempts if attempts is not None else DEFAULT_ATTEMPTS)),
        float(backoff_base if backoff_base is not None else DEFAULT_BACKOFF),
    )


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a read-modify-write operation with retry on concurrency failures.

    `func` does its reads, its writes and its own commit. Retries on
    OperationalError (locked database, deadlock) and StaleDataError (a
    version_id_col mismatch from a concurrent writer). Once the attempts are
    used up the session is rolled back and TransactionConflictError is raised.

    Domain errors roll the session back and propagate unchanged so no partial
    write survives a failed operation.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt < attempts - 1:
                time.sleep(backoff_base * (2 ** attempt))
        except FoodOpsError:
            db.session.rollback()
            raise

    if has_app_context():
        current_app.logger.warning("Transaction conflict after %s attempts: %s", attempts, last_exc)
    raise TransactionConflictError(
        "Concurrent update conflict; please retry",
        details={"attempts": attempts},
    ) from last_exc


def commit_with_retry(*, attempts: int | None = None, backoff_base: float | None = None):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
