# Overview: Row locking and retry helpers shared by the stock-mutating services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Lock the selected product rows until the surrounding transaction ends.

    SQLite ignores FOR UPDATE; there the single-writer lock serializes sales.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a stock write, retrying when the database reports a lock conflict.

    The session is rolled back before each retry so ``func`` starts from a
    clean transaction. Domain errors raised by ``func`` propagate untouched.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
