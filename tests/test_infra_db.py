"""Tests for database layer."""

import os
from unittest.mock import MagicMock, patch

import pytest

from roomledger.infra.db import set_lock_timeout, txn


class TestGetConnPasswordFallback:
    """DB_PASSWORD fallback in get_conn() - no real DB needed."""

    def test_db_password_fallback_dsn_without_password(self):
        from roomledger.infra.db import get_conn

        env = {"DATABASE_URL": "dbname=db user=u host=h port=5432", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("roomledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u host=h port=5432",
                password="from-env",
            )

    def test_db_password_not_used_when_dsn_has_password(self):
        from roomledger.infra.db import get_conn

        env = {"DATABASE_URL": "dbname=db user=u password=from-dsn host=h", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("roomledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("dbname=db user=u password=from-dsn host=h")

    def test_db_password_fallback_url_without_password(self):
        from roomledger.infra.db import get_conn

        env = {"DATABASE_URL": "postgres://u@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("roomledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u@h/db", password="from-env")

    def test_db_password_not_used_when_url_has_password(self):
        from roomledger.infra.db import get_conn

        env = {"DATABASE_URL": "postgres://u:p@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("roomledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u:p@h/db")

    def test_missing_database_url_raises(self):
        from roomledger.infra.db import get_conn

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL"):
                get_conn()


class TestTxnWithMockConnection:
    def test_commits_on_success(self):
        conn = MagicMock()
        with txn(conn) as cur:
            cur.execute("SELECT 1")
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_not_called()  # caller owns the connection

    def test_rolls_back_and_reraises(self):
        conn = MagicMock()
        with pytest.raises(ValueError):
            with txn(conn):
                raise ValueError("boom")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_owned_connection_is_closed(self):
        conn = MagicMock()
        with patch("roomledger.infra.db.get_conn", return_value=conn):
            with txn():
                pass
        conn.close.assert_called_once()


class TestSetLockTimeout:
    def test_sets_local_timeout(self):
        cur = MagicMock()
        set_lock_timeout(cur, 2500)
        cur.execute.assert_called_once_with("SET LOCAL lock_timeout = 2500")

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            set_lock_timeout(MagicMock(), 0)


# Skip integration tests if DATABASE_URL is not set
_skip_no_db = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@_skip_no_db
class TestTxnIntegration:
    def test_select_one(self):
        with txn() as cur:
            cur.execute("SELECT 1")
            assert cur.fetchone()[0] == 1

    def test_exclusion_constraint_installed(self):
        with txn() as cur:
            cur.execute(
                "SELECT 1 FROM pg_constraint WHERE conname = 'no_room_overlap'"
            )
            assert cur.fetchone() is not None
