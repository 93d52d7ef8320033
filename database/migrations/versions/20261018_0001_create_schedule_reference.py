"""create schedule reference tables

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "scheduler", "faculty", "student", name="user_role")
exam_type_enum = sa.Enum("theory", "practical", "jury", "project", name="exam_type")
subject_type_enum = sa.Enum("core", "elective", "specialization", name="subject_type")
day_of_week_enum = sa.Enum(
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday", name="day_of_week"
)
entry_type_enum = sa.Enum("regular", "event", name="entry_type")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("program_name", sa.String(length=200), nullable=True),
        sa.Column("semester", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_year", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("total_hours", sa.Integer(), nullable=False, server_default="45"),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("primary_faculty_id", sa.String(length=36), nullable=True),
        sa.Column("co_faculty_id", sa.String(length=36), nullable=True),
        sa.Column("exam_type", exam_type_enum, nullable=False, server_default="theory"),
        sa.Column("subject_type", subject_type_enum, nullable=False, server_default="core"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("batch_id", "code", name="uq_subjects_batch_code"),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"])
    op.create_index("ix_subjects_batch_id", "subjects", ["batch_id"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_time_slots_sort_order", "time_slots", ["sort_order"])

    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("faculty_id", sa.String(length=36), nullable=True),
        sa.Column("time_slot_id", sa.String(length=36), nullable=False),
        sa.Column("day_of_week", day_of_week_enum, nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("entry_type", entry_type_enum, nullable=False, server_default="regular"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetable_entries_date", "timetable_entries", ["date"])
    op.create_index("ix_timetable_entries_is_active", "timetable_entries", ["is_active"])
    op.create_index(
        "ix_timetable_entries_batch_slot_day",
        "timetable_entries",
        ["batch_id", "time_slot_id", "day_of_week"],
    )
    op.create_index(
        "ix_timetable_entries_faculty_slot_day",
        "timetable_entries",
        ["faculty_id", "time_slot_id", "day_of_week"],
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False, server_default="university"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_holidays_date", "holidays", ["date"])

    op.create_table(
        "exam_periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("exam_type", sa.String(length=50), nullable=False, server_default="internal"),
        sa.Column("block_regular_classes", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("allow_review_classes", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_exam_periods_start_date", "exam_periods", ["start_date"])
    op.create_index("ix_exam_periods_end_date", "exam_periods", ["end_date"])

    op.create_table(
        "faculty_blackout_periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_faculty_blackout_periods_faculty_id", "faculty_blackout_periods", ["faculty_id"])


def downgrade() -> None:
    op.drop_index("ix_faculty_blackout_periods_faculty_id", table_name="faculty_blackout_periods")
    op.drop_table("faculty_blackout_periods")
    op.drop_index("ix_exam_periods_end_date", table_name="exam_periods")
    op.drop_index("ix_exam_periods_start_date", table_name="exam_periods")
    op.drop_table("exam_periods")
    op.drop_index("ix_holidays_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_index("ix_timetable_entries_faculty_slot_day", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_batch_slot_day", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_is_active", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_date", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    op.drop_index("ix_time_slots_sort_order", table_name="time_slots")
    op.drop_table("time_slots")
    op.drop_index("ix_subjects_batch_id", table_name="subjects")
    op.drop_index("ix_subjects_code", table_name="subjects")
    op.drop_table("subjects")
    op.drop_table("batches")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (entry_type_enum, day_of_week_enum, subject_type_enum, exam_type_enum, user_role_enum):
        enum.drop(bind, checkfirst=True)
