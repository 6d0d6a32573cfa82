# Overview: Conditional-update and retry helpers for racing state transitions.

"""
Every state transition in the system (dealer review, enquiry disposition,
OTP consumption, password reset) is a single UPDATE/DELETE whose WHERE clause
restates the precondition. The row count says whether this request won.

WHY: A read-then-write would let two admins both "approve" a pending row.
With the precondition inside the statement the database serializes the two
writers and exactly one of them matches.
"""

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError

from ..extensions import db


def conditional_update(model, criteria: list, values: dict) -> bool:
    """
    UPDATE model SET values WHERE criteria.

    Returns True when exactly one row matched. Does not commit.
    """
    matched = (
        db.session.query(model)
        .filter(*criteria)
        .update(values, synchronize_session=False)
    )
    return matched == 1


def conditional_delete(model, criteria: list) -> bool:
    """DELETE FROM model WHERE criteria. True when exactly one row went away."""
    deleted = db.session.query(model).filter(*criteria).delete(synchronize_session=False)
    return deleted == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on lock contention.

    Retries on OperationalError (e.g. SQLite "database is locked").
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
