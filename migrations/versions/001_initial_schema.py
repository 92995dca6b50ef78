"""Initial schema: users, turfs, bookings.

Revision ID: 001_initial
Revises:
Create Date: 2024-05-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "turfs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.Column("opening_minute", sa.Integer(), nullable=False),
        sa.Column("closing_minute", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "opening_minute >= 0 AND closing_minute < 1440 AND opening_minute < closing_minute",
            name="ck_turfs_operating_window",
        ),
        sa.CheckConstraint("price_per_hour >= 0", name="ck_turfs_price_not_negative"),
    )
    op.create_index(op.f("ix_turfs_owner_id"), "turfs", ["owner_id"], unique=False)
    op.create_index(op.f("ix_turfs_city"), "turfs", ["city"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("turf_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=False),
        sa.Column("end_minute", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="booked"),
        sa.Column("payment_status", sa.String(), nullable=False, server_default="paid"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["turf_id"], ["turfs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_minute < end_minute", name="ck_bookings_range"),
    )
    op.create_index(op.f("ix_bookings_turf_id"), "bookings", ["turf_id"], unique=False)
    op.create_index(
        "ix_bookings_turf_date_status", "bookings", ["turf_id", "date", "status"], unique=False
    )
    op.create_index("ix_bookings_user_status", "bookings", ["user_id", "status"], unique=False)

    if op.get_bind().dialect.name == "postgresql":
        # No two booked ranges of one turf may share a minute on the same day.
        # int4range is half-open by default, so back-to-back bookings are allowed.
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings ADD CONSTRAINT ex_bookings_no_overlap
            EXCLUDE USING gist (
                turf_id WITH =,
                date WITH =,
                int4range(start_minute, end_minute) WITH &&
            ) WHERE (status = 'booked')
            """
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_no_overlap")
    op.drop_index("ix_bookings_user_status", table_name="bookings")
    op.drop_index("ix_bookings_turf_date_status", table_name="bookings")
    op.drop_index(op.f("ix_bookings_turf_id"), table_name="bookings")
    op.drop_table("bookings")
    op.drop_index(op.f("ix_turfs_city"), table_name="turfs")
    op.drop_index(op.f("ix_turfs_owner_id"), table_name="turfs")
    op.drop_table("turfs")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
