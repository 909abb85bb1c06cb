# Overview: Transaction boundary, row locking, conditional updates and bounded retry.

"""
Every multi-step stock mutation runs as:

    def _op():
        with atomic():
            ...checks...
            ...conditional writes...
    return run_with_retry(_op)

atomic() owns commit/rollback, so an error raised anywhere inside the block
leaves no partial writes behind. State transitions go through
conditional_update(), whose affected-row count tells us whether a
concurrent writer got there first.
"""

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, InternalError, StockError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() covers it there.
    """
    return query.with_for_update()


def _dialect_name() -> str:
    return db.engine.dialect.name


def begin_immediate() -> None:
    """
    On SQLite, take the database write lock before the first read so a
    check-then-write sequence cannot interleave with another writer.
    No-op on other dialects and when a transaction is already open.
    """
    if _dialect_name() != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if raw is not None and not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_keys(namespace: str, values) -> None:
    """
    Serialize writers that claim the same logical keys.

    On PostgreSQL each key takes a transaction-scoped advisory lock, released
    at commit/rollback. Keys are locked in sorted order so two batches cannot
    deadlock. SQLite already holds the database write lock (begin_immediate).
    """
    if _dialect_name() != "postgresql":
        return
    for value in sorted(set(values)):
        db.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"{namespace}:{value}"},
        )


@contextmanager
def atomic():
    """Run the block in one transaction: commit on success, roll back on any error."""
    begin_immediate()
    try:
        yield db.session
        db.session.commit()
    except (OperationalError, StaleDataError):
        # Left as-is so run_with_retry can retry them
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            "Write conflicts with an existing record",
            details={"constraint": str(exc.orig)},
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Storage failure") from exc
    except BaseException:
        db.session.rollback()
        raise


def conditional_update(model, ident: int, *, where, values: dict, error: StockError) -> None:
    """
    UPDATE model SET values WHERE id = ident AND <where>.

    Zero affected rows means the guard no longer holds (usually because a
    concurrent request changed the row first); raise `error` so the
    surrounding atomic() block rolls everything back.
    """
    stmt = (
        update(model)
        .where(model.id == ident, *where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise error


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, serialization failures) and
    StaleDataError. The bound comes from STOCK_RETRY_ATTEMPTS; once it is
    exhausted the failure surfaces as InternalError.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCK_RETRY_ATTEMPTS", 2)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise InternalError("Transaction failed, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
