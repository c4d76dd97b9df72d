"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for short, safe transactions
- set_lock_timeout(): Bound how long a transaction waits on row locks
"""

import os
from contextlib import contextmanager
from typing import Iterator
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor


def _dsn_has_password(dsn: str) -> bool:
    """Return True if the DSN (URL or libpq key=value form) carries a password."""
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    When the DSN has no password and DB_PASSWORD is set (secret mounted
    separately from the connection string), the password is passed as a
    keyword argument.

    Returns:
        psycopg2 connection object.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=db_password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Args:
        conn: Optional existing connection. If None, creates new one.

    Yields:
        Cursor for executing queries within the transaction.

    Example:
        with txn() as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def set_lock_timeout(cur: PgCursor, timeout_ms: int) -> None:
    """Limit lock waits for the current transaction only (SET LOCAL).

    A waiting statement that exceeds the timeout fails with
    psycopg2.errors.LockNotAvailable, which callers may treat as retryable.

    Args:
        cur: Database cursor inside a transaction.
        timeout_ms: Maximum wait in milliseconds (must be positive).
    """
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be positive")
    # SET does not accept bind parameters; the value is a validated int.
    cur.execute(f"SET LOCAL lock_timeout = {int(timeout_ms)}")
