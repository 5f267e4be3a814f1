"""Initial time tracking schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

entry_type = postgresql.ENUM(
    "WORK",
    "OVERTIME",
    "VACATION",
    "SICK",
    "HOLIDAY",
    name="entry_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    entry_type.create(bind, checkfirst=True)

    op.create_table(
        "time_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Numeric(7, 2), nullable=False),
        sa.Column("type", entry_type, nullable=False, server_default=sa.text("'WORK'")),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("import_batch_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("user_id", "day_date", "start_time", name="uq_time_entries_user_id_day_date_start_time"),
    )
    op.create_index("ix_time_entries_user_id_day_date", "time_entries", ["user_id", "day_date"])
    op.create_index("ix_time_entries_import_batch_id", "time_entries", ["import_batch_id"])

    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("weekly_work_hours", sa.Numeric(5, 2), nullable=False, server_default=sa.text("40")),
        sa.Column(
            "work_days",
            postgresql.ARRAY(sa.Integer()),
            nullable=False,
            server_default=sa.text("'{1,2,3,4,5}'"),
        ),
        sa.Column("default_start_time", sa.String(length=5), nullable=False, server_default=sa.text("'09:00'")),
        sa.Column("default_end_time", sa.String(length=5), nullable=False, server_default=sa.text("'17:00'")),
        sa.Column("break_duration", sa.Numeric(4, 2), nullable=False, server_default=sa.text("0.5")),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default=sa.text("'Europe/Berlin'")),
        sa.Column("overtime_notification", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("language", sa.String(length=8), nullable=False, server_default=sa.text("'de'")),
        sa.Column("theme", sa.String(length=16), nullable=False, server_default=sa.text("'system'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("user_id", name="uq_user_settings_user_id"),
    )

    op.create_table(
        "reviewed_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("user_id", "day_date", name="uq_reviewed_days_user_id_day_date"),
    )
    op.create_index("ix_reviewed_days_user_id", "reviewed_days", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_reviewed_days_user_id", table_name="reviewed_days")
    op.drop_table("reviewed_days")
    op.drop_table("user_settings")
    op.drop_index("ix_time_entries_import_batch_id", table_name="time_entries")
    op.drop_index("ix_time_entries_user_id_day_date", table_name="time_entries")
    op.drop_table("time_entries")

    bind = op.get_bind()
    entry_type.drop(bind, checkfirst=True)
