"""Create the library book table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "book",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("author", sa.String(), nullable=True),
        sa.Column("reading_level", sa.String(), nullable=True),
        sa.Column("isbn", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(trim(title)) > 0", name="ck_book_title_not_blank"),
        sa.PrimaryKeyConstraint("id", name="pk_book"),
    )
    op.create_index("ix_book_title", "book", ["title"])
    op.create_index("ix_book_author", "book", ["author"])
    op.create_index("ix_book_isbn", "book", ["isbn"])


def downgrade() -> None:
    op.drop_index("ix_book_isbn", table_name="book")
    op.drop_index("ix_book_author", table_name="book")
    op.drop_index("ix_book_title", table_name="book")
    op.drop_table("book")
