# Overview: Transaction helpers shared by services that mutate stock or tiers.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-check-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; callers that write stock
    compare-and-set against the value they read so the guard holds there too.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Run `func` as one unit of work.

    Any exception rolls the session back so a failed sequence never leaves
    partial writes pending. OperationalError (deadlocks, lock timeouts),
    StaleDataError (optimistic locking conflicts) and any extra `retry_on`
    types are retried with exponential backoff; everything else propagates
    on the first failure.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency failure (attempt %s/%s): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
