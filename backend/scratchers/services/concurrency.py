# Overview: Locking, compare-and-swap and retry helpers shared by the scratcher services.

"""
Storage contract the engine depends on (no in-process locks):

- lock_for_update(): SELECT ... FOR UPDATE on rows that are read-then-written
  (slot rows during activation and end-snapshot submission).
- compare_and_set(): single-row UPDATE guarded by the column's expected
  value; a zero rowcount means someone else changed the row first.
- unique constraints: (shift_report_id, snapshot_type) on snapshots and the
  partial "one active pack per slot" index on packs.

SQLite ignores FOR UPDATE but serializes writers per database, so the same
code is safe there; PostgreSQL honors both.
"""
from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.orm.util import identity_key

from ..extensions import db


def lock_for_update(query):
    """Apply row-level locking for critical operations."""
    return query.with_for_update()


def compare_and_set(model, row_id: int, column: str, *, expected, new) -> bool:
    """
    Set model.<column> = new on row_id only if it currently equals expected.

    Returns True when the row was updated. NULL is compared with IS NULL.
    The in-session copy of the row is refreshed from the database.
    """
    col = getattr(model, column)
    guard = col.is_(None) if expected is None else col == expected

    stmt = (
        update(model)
        .where(model.id == row_id, guard)
        .values({column: new})
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    instance = db.session.identity_map.get(identity_key(model, row_id))
    if instance is not None:
        db.session.expire(instance, [column])
    return result.rowcount == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors propagate untouched.
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


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
