# Overview: Unit-of-work helpers: row locking, rollback-on-error and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows a workflow is about to rewrite.

    SQLite drops the clause; there ProductVariant.version_id is what turns
    a lost update into StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one unit of work. func commits its own changes on success.

    Whatever func raises, the session is rolled back first, so a workflow
    that fails halfway (a missing variant on the second receipt line, short
    stock on the third order line) leaves no rows behind. Lock contention
    and version conflicts are retried with exponential backoff; domain
    errors propagate on the first attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Unit of work conflicted (%s), retry %d/%d", type(exc).__name__, attempt, attempts - 1
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
