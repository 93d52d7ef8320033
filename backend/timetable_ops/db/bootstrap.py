from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

import timetable_ops.models  # noqa: F401
from timetable_ops.db.base import Base

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "name", "role", "is_active"},
    "batches": {"id", "name"},
    "subjects": {"id", "code", "batch_id", "primary_faculty_id", "co_faculty_id"},
    "time_slots": {"id", "name", "start_time", "end_time", "sort_order", "is_active"},
    "timetable_entries": {
        "id",
        "batch_id",
        "subject_id",
        "faculty_id",
        "time_slot_id",
        "day_of_week",
        "date",
        "is_active",
        "notes",
    },
    "holidays": {"id", "date", "is_recurring"},
    "exam_periods": {"id", "start_date", "end_date", "block_regular_classes"},
    "faculty_blackout_periods": {"id", "faculty_id", "start_date", "end_date"},
    "bulk_operations": {
        "id",
        "type",
        "status",
        "progress",
        "user_id",
        "parameters",
        "results",
        "error_log",
        "affected_count",
        "success_count",
        "failed_count",
        "started_at",
        "completed_at",
    },
    "operation_logs": {"id", "operation_id", "sequence", "level", "message", "details", "timestamp"},
}


def _assert_required_columns(engine: Engine) -> None:
    with engine.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema(engine: Engine, *, create_missing: bool = False) -> None:
    try:
        if create_missing:
            Base.metadata.create_all(bind=engine)
        _assert_required_columns(engine)
    except Exception as exc:
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
