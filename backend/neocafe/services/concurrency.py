# Overview: Retry and row-locking helpers for wallet and room mutations.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Wallets and sessions also carry a version_id, so SQLite still detects
    lost updates (StaleDataError) on flush.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each retry starts from a clean session,
    so func must re-read everything it depends on.
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


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    run_with_retry for all-or-nothing units of work.

    func is expected to commit on success. Any other failure (business
    errors included) rolls the session back before propagating, so no
    half-applied state survives in the identity map.
    """
    def _guarded():
        try:
            return func()
        except (OperationalError, StaleDataError):
            raise
        except Exception:
            db.session.rollback()
            raise
    return run_with_retry(_guarded, attempts=attempts, backoff_base=backoff_base)
