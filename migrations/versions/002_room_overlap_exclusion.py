"""Exclusion constraint: no overlapping active reservations per room.

Second layer of double-booking protection behind the booking coordinator's
lock-and-check. Requires btree_gist for the equality operator on room_id.

Revision ID: 002_room_overlap_exclusion
Revises: 001_initial_schema
Create Date: 2026-10-19
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_room_overlap_exclusion"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_room_overlap_exclusion.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    op.execute("ALTER TABLE reservation_rooms DROP CONSTRAINT IF EXISTS no_room_overlap")
    # btree_gist is kept: other indexes may depend on it.
