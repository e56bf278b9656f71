# Overview: Transaction discipline for the core; row locking, retry and the all-or-nothing unit of work.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalError, LedgerError
from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows that matter also carry a version_id column, so a lost update on
    SQLite surfaces as StaleDataError and is retried.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and IntegrityError (unique collisions such
    as two writers creating the same inventory position).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` as one unit of work: commit on success, roll back on any error.

    Domain errors (LedgerError) propagate unchanged. Datastore failures that
    survive the retries are translated: IntegrityError -> ConflictError,
    anything else -> InternalError.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except LedgerError:
        raise
    except IntegrityError as exc:
        raise ConflictError(f"Conflicting concurrent write: {exc.orig}") from exc
    except (SQLAlchemyError, StaleDataError) as exc:
        raise InternalError(f"Datastore failure: {exc}") from exc
