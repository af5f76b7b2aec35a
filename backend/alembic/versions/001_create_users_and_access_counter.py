"""Create access_counter and users tables

Revision ID: 001
Revises: None
Create Date: 2026-10-16 00:00:00.000000+00:00

What:  Initial schema: the single-row access counter and the users table.
How:   Generic column types (Uuid, DateTime(timezone=True)) so the same
       revision runs on PostgreSQL and on SQLite.

access_counter carries a UNIQUE singleton_key so concurrent first increments
converge on one row via INSERT ... ON CONFLICT. count has no CHECK
constraint; GET /api/access/health reports negative values.

Rollback: downgrade() drops both tables (destructive).
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
        "access_counter",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("singleton_key", sa.String(32), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_access_counter"),
        sa.UniqueConstraint("singleton_key", name="uq_access_counter_singleton_key"),
    )
    op.create_index(
        "idx_access_counter_last_updated",
        "access_counter",
        [sa.text("last_updated DESC")],
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("idx_users_created_at", "users", [sa.text("created_at DESC")])


def downgrade() -> None:
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_index("idx_access_counter_last_updated", table_name="access_counter")
    op.drop_table("access_counter")
