# backend/alembic/versions/001_schedule_expansion.py
"""Schedule expansion - rules, exceptions and appointment slots

Revision ID: 001_schedule_expansion
Revises:
Create Date: 2024-12-20 00:00:00.000000

Creates doctor_schedule_rules (recurrence + expansion watermark),
doctor_schedule_exceptions (single-date overrides) and appointments
(materialized slots, unique per doctor and start time).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_schedule_expansion"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create schedule expansion tables."""
    print("Creating schedule expansion tables...")

    op.create_table(
        "doctor_schedule_rules",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("doctor_id", sa.String(26), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("frequency", sa.String(20), nullable=False, server_default="weekly"),
        sa.Column("repeat_interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("by_week_day", sa.JSON(), nullable=False),
        sa.Column("by_month_day", sa.JSON(), nullable=False),
        sa.Column("by_set_pos", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("slot_duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("appointment_type", sa.String(20), nullable=False, server_default="video"),
        sa.Column("studio_address", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_expanded_at", sa.Date(), nullable=True),
        sa.Column("last_expanded_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("repeat_interval >= 1", name="ck_schedule_rules_interval_positive"),
        sa.CheckConstraint("slot_duration > 0", name="ck_schedule_rules_slot_duration_positive"),
        sa.CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR start_date <= end_date",
            name="ck_schedule_rules_date_order",
        ),
        comment="Recurring availability rules with expansion watermark",
    )
    op.create_index("ix_doctor_schedule_rules_doctor_id", "doctor_schedule_rules", ["doctor_id"])
    op.create_index(
        "idx_schedule_rules_doctor_active",
        "doctor_schedule_rules",
        ["doctor_id", "is_active"],
    )

    op.create_table(
        "doctor_schedule_exceptions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("doctor_id", sa.String(26), nullable=False),
        sa.Column("exception_date", sa.Date(), nullable=False),
        sa.Column("exception_type", sa.String(20), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=True),
        sa.Column("end_time", sa.String(5), nullable=True),
        sa.Column("slot_duration", sa.Integer(), nullable=True),
        sa.Column("appointment_type", sa.String(20), nullable=True),
        sa.Column("studio_address", sa.String(255), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "exception_type IN ('block', 'modify', 'one_time_slot')",
            name="ck_schedule_exceptions_type",
        ),
        comment="Single-date blocks, modifications and one-off slots",
    )
    op.create_index(
        "ix_doctor_schedule_exceptions_doctor_id", "doctor_schedule_exceptions", ["doctor_id"]
    )
    op.create_index(
        "idx_schedule_exceptions_doctor_date",
        "doctor_schedule_exceptions",
        ["doctor_id", "exception_date"],
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("doctor_id", sa.String(26), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("appointment_type", sa.String(20), nullable=True),
        sa.Column("studio_address", sa.String(255), nullable=True),
        sa.Column("origin_type", sa.String(20), nullable=True),
        sa.Column("origin_id", sa.String(26), nullable=True),
        sa.Column("origin_version", sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "start_time", name="uq_appointments_doctor_start"),
        comment="Materialized appointment slots with expansion provenance",
    )
    op.create_index("idx_appointments_origin", "appointments", ["origin_type", "origin_id"])

    print("Schedule expansion tables created successfully!")


def downgrade() -> None:
    """Drop schedule expansion tables."""
    print("Dropping schedule expansion tables...")

    op.drop_index("idx_appointments_origin", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("idx_schedule_exceptions_doctor_date", table_name="doctor_schedule_exceptions")
    op.drop_index(
        "ix_doctor_schedule_exceptions_doctor_id", table_name="doctor_schedule_exceptions"
    )
    op.drop_table("doctor_schedule_exceptions")

    op.drop_index("idx_schedule_rules_doctor_active", table_name="doctor_schedule_rules")
    op.drop_index("ix_doctor_schedule_rules_doctor_id", table_name="doctor_schedule_rules")
    op.drop_table("doctor_schedule_rules")

    print("Schedule expansion tables dropped successfully!")
