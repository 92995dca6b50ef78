"""Turf moderation: status and rejection reason.

Revision ID: 002_turf_moderation
Revises: 001_initial
Create Date: 2024-05-27

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_turf_moderation"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("turfs") as batch_op:
        batch_op.add_column(
            sa.Column("status", sa.String(), nullable=False, server_default="pending")
        )
        batch_op.add_column(sa.Column("rejection_reason", sa.String(length=500), nullable=True))
        batch_op.create_check_constraint(
            "ck_turfs_status", "status IN ('pending', 'approved', 'rejected')"
        )
    op.create_index(op.f("ix_turfs_status"), "turfs", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_turfs_status"), table_name="turfs")
    with op.batch_alter_table("turfs") as batch_op:
        batch_op.drop_constraint("ck_turfs_status", type_="check")
        batch_op.drop_column("rejection_reason")
        batch_op.drop_column("status")
