from datetime import date

import pytest
from sqlalchemy import select

from timetable_ops.core.exceptions import ConfigurationError
from timetable_ops.db.base import Base
from timetable_ops.db.bootstrap import ensure_runtime_schema
from timetable_ops.db.session import build_engine, create_session_factory, tracking_database_url
from timetable_ops.models.batch import Batch
from timetable_ops.models.bulk_operation import OperationStatus
from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import DayOfWeek, TimetableEntry
from timetable_ops.schemas.bulk_operation import RescheduleParams
from timetable_ops.services.bulk_operations import BulkOperationService
from timetable_ops.services.operation_tracker import OperationTracker


def test_postgres_schedule_store_shares_tracking():
    assert tracking_database_url("postgresql://u:p@db:5432/timetable") is None
    assert tracking_database_url("postgresql://u:p@db/timetable", "postgresql://u:p@db/ops") == (
        "postgresql+psycopg://u:p@db/ops"
    )


def test_sqlite_file_gets_a_sibling_tracking_database(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'timetable.db'}"

    assert tracking_database_url(url) == f"sqlite+pysqlite:///{tmp_path / 'timetable.operations.db'}"


def test_in_memory_sqlite_gets_a_fresh_database():
    assert tracking_database_url("sqlite+pysqlite://") == "sqlite+pysqlite://"


def test_explicit_tracking_url_cannot_reuse_the_sqlite_file(tmp_path):
    url = f"sqlite:///{tmp_path / 'timetable.db'}"

    with pytest.raises(ConfigurationError, match="must not point at the SQLite schedule database"):
        tracking_database_url(url, url)

    other = f"sqlite:///{tmp_path / 'ops.db'}"
    assert tracking_database_url(url, other) == other


def test_execute_on_file_backed_sqlite_tracks_progress(tmp_path, settings):
    url = f"sqlite+pysqlite:///{tmp_path / 'timetable.db'}"
    engine = build_engine(url)
    operations_engine = build_engine(tracking_database_url(url))
    Base.metadata.create_all(bind=engine)
    ensure_runtime_schema(operations_engine, create_missing=True)

    schedule_sessions = create_session_factory(engine)
    with schedule_sessions() as db:
        db.add_all(
            [
                Batch(id="batch-a", name="Batch A", semester=3),
                TimeSlot(id="p1", name="Period 1", start_time="09:00", end_time="10:00", sort_order=1),
            ]
        )
        for day in range(4, 9):
            on_date = date(2025, 8, day)
            db.add(
                TimetableEntry(
                    batch_id="batch-a",
                    time_slot_id="p1",
                    day_of_week=DayOfWeek.from_date(on_date),
                    date=on_date,
                )
            )
        db.commit()

    tracker = OperationTracker(create_session_factory(operations_engine))
    service = BulkOperationService(schedule_sessions, tracker, settings)
    try:
        result = service.execute(
            RescheduleParams(
                source_start=date(2025, 8, 4),
                source_end=date(2025, 8, 8),
                target_start=date(2025, 8, 11),
            ),
            "admin",
        )

        assert result.errors == []
        assert (result.successful, result.failed) == (5, 0)
        progress = tracker.get_progress(result.operation_id)
        assert progress.status == OperationStatus.completed
        assert progress.progress == 100
        with schedule_sessions() as db:
            moved = sorted(row.date for row in db.execute(select(TimetableEntry)).scalars())
        assert moved == [date(2025, 8, day) for day in range(11, 16)]
    finally:
        operations_engine.dispose()
        engine.dispose()
