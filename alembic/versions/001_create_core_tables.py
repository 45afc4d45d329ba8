"""Create users, books and idempotency_records tables

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Initial schema for the Bookshelf API.
How:   Portable column types (Uuid, DateTime(timezone=True), JSON) matching
       bookshelf/models; ids and timestamps are set by the application.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "email",
            sa.String(320),
            nullable=False,
            comment="Lower-cased email address, unique per user",
        ),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column(
            "password_hash",
            sa.String(255),
            nullable=False,
            comment="argon2 password hash",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "books",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column(
            "isbn",
            sa.String(13),
            nullable=True,
            comment="Normalised ISBN-10 or ISBN-13 (digits, trailing X allowed)",
        ),
        sa.Column("published_year", sa.Integer(), nullable=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("isbn"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_books_owner_id", "books", ["owner_id"])
    op.create_index("idx_books_author", "books", ["author"])
    # Default list order is newest first
    op.create_index("idx_books_created_at", "books", [sa.text("created_at DESC")])

    op.create_table(
        "idempotency_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("request_fingerprint", sa.String(64), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("response_body", sa.JSON(), nullable=False),
        sa.Column("resource_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        # Concurrent requests with the same key race on this constraint; the loser gets 409
        sa.UniqueConstraint("user_id", "key", name="uq_idempotency_user_key"),
    )
    op.create_index("idx_idempotency_expires_at", "idempotency_records", ["expires_at"])


def downgrade() -> None:
    """Drop all tables. All data is lost."""
    op.drop_index("idx_idempotency_expires_at", table_name="idempotency_records")
    op.drop_table("idempotency_records")

    op.drop_index("idx_books_created_at", table_name="books")
    op.drop_index("idx_books_author", table_name="books")
    op.drop_index("ix_books_owner_id", table_name="books")
    op.drop_table("books")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
