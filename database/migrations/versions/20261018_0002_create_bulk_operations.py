"""create bulk operations and operation logs

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


bulk_operation_type_enum = sa.Enum(
    "clone_timetable", "faculty_replace", "bulk_reschedule", name="bulk_operation_type"
)
operation_status_enum = sa.Enum(
    "pending", "running", "paused", "completed", "failed", "cancelled", name="operation_status"
)
log_level_enum = sa.Enum("debug", "info", "warn", "error", name="log_level")


def upgrade() -> None:
    op.create_table(
        "bulk_operations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("type", bulk_operation_type_enum, nullable=False),
        sa.Column("status", operation_status_enum, nullable=False, server_default="pending"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("parameters", sa.JSON(), nullable=False),
        sa.Column("results", sa.JSON(), nullable=True),
        sa.Column("error_log", sa.Text(), nullable=True),
        sa.Column("affected_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bulk_operations_type", "bulk_operations", ["type"])
    op.create_index("ix_bulk_operations_status", "bulk_operations", ["status"])
    op.create_index("ix_bulk_operations_user_id", "bulk_operations", ["user_id"])

    op.create_table(
        "operation_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "operation_id",
            sa.String(length=36),
            sa.ForeignKey("bulk_operations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", log_level_enum, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_operation_logs_operation_id", "operation_logs", ["operation_id"])


def downgrade() -> None:
    op.drop_index("ix_operation_logs_operation_id", table_name="operation_logs")
    op.drop_table("operation_logs")
    op.drop_index("ix_bulk_operations_user_id", table_name="bulk_operations")
    op.drop_index("ix_bulk_operations_status", table_name="bulk_operations")
    op.drop_index("ix_bulk_operations_type", table_name="bulk_operations")
    op.drop_table("bulk_operations")

    bind = op.get_bind()
    for enum in (log_level_enum, operation_status_enum, bulk_operation_type_enum):
        enum.drop(bind, checkfirst=True)
