"""Create micropost table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "micropost",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.String(length=140), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_micropost_user_id"), "micropost", ["user_id"], unique=False)
    op.create_index(op.f("ix_micropost_created_at"), "micropost", ["created_at"], unique=False)
    op.create_index("ix_micropost_user_id_created_at", "micropost", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_micropost_user_id_created_at", table_name="micropost")
    op.drop_index(op.f("ix_micropost_created_at"), table_name="micropost")
    op.drop_index(op.f("ix_micropost_user_id"), table_name="micropost")
    op.drop_table("micropost")
