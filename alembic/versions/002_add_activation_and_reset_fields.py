"""Add account activation and password reset fields to user table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("user", sa.Column("activation_digest", sa.String(length=60), nullable=True))
    op.add_column("user", sa.Column("activated", sa.Boolean(), nullable=False, server_default="0"))
    op.add_column("user", sa.Column("activated_at", sa.DateTime(), nullable=True))
    op.add_column("user", sa.Column("reset_digest", sa.String(length=60), nullable=True))
    op.add_column("user", sa.Column("reset_sent_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    op.drop_column("user", "reset_sent_at")
    op.drop_column("user", "reset_digest")
    op.drop_column("user", "activated_at")
    op.drop_column("user", "activated")
    op.drop_column("user", "activation_digest")
