# Overview: Transaction envelope for engine operations; retry on optimistic conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import FulfillmentError, Internal


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Take the write lock up front on SQLite so the read phase of a transaction
    sees the same snapshot its writes commit against.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    dbapi_connection = session.connection().connection.dbapi_connection
    # Already inside a write transaction (e.g. pending flushes): nothing to upgrade
    if getattr(dbapi_connection, "in_transaction", False):
        return
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, session: Session, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any error rolls the session back before
    it propagates, so no partial write survives.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise


def run_transaction(func, *, session: Session, description: str, attempts: int | None = None):
    """
    run_with_retry plus error normalization: operational errors pass through,
    everything else is logged and surfaced as Internal.
    """
    try:
        return run_with_retry(func, session=session, attempts=attempts)
    except FulfillmentError:
        raise
    except Exception as exc:
        current_app.logger.exception("%s failed", description)
        raise Internal(f"{description} failed. Please try again.") from exc
