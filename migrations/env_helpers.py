"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without triggering
alembic.context at import time.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url


def _libpq_dsn_to_url(dsn: str) -> URL:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    A Unix-socket host (e.g. /cloudsql/PROJECT:REGION:INSTANCE) is passed
    through as the `host` query parameter.
    """
    params = parse_dsn(dsn)
    password = params.get("password") or os.environ.get("DB_PASSWORD") or None
    host = params.get("host", "localhost")

    if host.startswith("/"):
        return URL.create(
            "postgresql+psycopg2",
            username=params.get("user"),
            password=password,
            database=params.get("dbname"),
            query={"host": host},
        )

    return URL.create(
        "postgresql+psycopg2",
        username=params.get("user"),
        password=password,
        host=host,
        port=int(params.get("port", "5432")),
        database=params.get("dbname"),
    )


def _get_database_url() -> URL:
    """Resolve DATABASE_URL (URL or libpq DSN) into a psycopg2 SQLAlchemy URL.

    DB_PASSWORD is injected when the DSN carries no password.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")

    if "://" not in raw:
        return _libpq_dsn_to_url(raw)

    url = make_url(raw)
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+psycopg2")
    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not url.password:
        url = url.set(password=db_password)
    return url
