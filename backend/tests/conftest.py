import os

# main.py reads settings at import time.
os.environ["DATABASE_URL"] = "sqlite+pysqlite://"
os.environ["AUTO_CREATE_SCHEMA"] = "true"

from datetime import date  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from timetable_ops.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from timetable_ops.api.deps import get_operations_session_factory, get_session_factory  # noqa: E402
from timetable_ops.core.security import create_access_token  # noqa: E402
from timetable_ops.db.base import Base  # noqa: E402
from timetable_ops.db.session import create_session_factory  # noqa: E402
from timetable_ops.main import app  # noqa: E402
from timetable_ops.models.batch import Batch  # noqa: E402
from timetable_ops.models.subject import Subject  # noqa: E402
from timetable_ops.models.time_slot import TimeSlot  # noqa: E402
from timetable_ops.models.timetable_entry import DayOfWeek, TimetableEntry  # noqa: E402
from timetable_ops.models.user import User, UserRole  # noqa: E402
from timetable_ops.services.bulk_operations import BulkOperationService  # noqa: E402
from timetable_ops.services.operation_tracker import OperationTracker  # noqa: E402


def _memory_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def schedule_sessions():
    # Schedule store; bulk operations hold one transaction on it.
    engine = _memory_engine()
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def operations_sessions():
    # Tracking store; progress and logs are committed independently.
    engine = _memory_engine()
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def seed(schedule_sessions):
    users = {
        "admin": User(id="admin", name="Admin User", email="admin@example.edu", role=UserRole.admin),
        "scheduler": User(id="scheduler", name="Scheduler", email="scheduler@example.edu", role=UserRole.scheduler),
        "f1": User(id="f1", name="Faculty One", email="f1@example.edu", role=UserRole.faculty),
        "f2": User(id="f2", name="Faculty Two", email="f2@example.edu", role=UserRole.faculty),
        "f3": User(id="f3", name="Faculty Three", email="f3@example.edu", role=UserRole.faculty),
        "student": User(id="student", name="Student", email="student@example.edu", role=UserRole.student),
    }
    batches = {
        "a": Batch(id="batch-a", name="Batch A", semester=3),
        "b": Batch(id="batch-b", name="Batch B", semester=3),
        "c": Batch(id="batch-c", name="Batch C", semester=5),
    }
    slots = {
        "p1": TimeSlot(id="p1", name="Period 1", start_time="09:00", end_time="10:00", sort_order=1),
        "p2": TimeSlot(id="p2", name="Period 2", start_time="10:00", end_time="11:00", sort_order=2),
        "p3": TimeSlot(id="p3", name="Period 3", start_time="11:15", end_time="12:15", sort_order=3),
        "p4": TimeSlot(id="p4", name="Period 4", start_time="13:15", end_time="14:15", sort_order=4),
    }
    design = Subject(
        id="dt-a",
        name="Design Thinking",
        code="DT101",
        batch_id="batch-a",
        primary_faculty_id="f1",
    )
    with schedule_sessions() as db:
        db.add_all([*users.values(), *batches.values(), *slots.values(), design])
        db.commit()
    return SimpleNamespace(
        admin="admin",
        scheduler="scheduler",
        f1="f1",
        f2="f2",
        f3="f3",
        student="student",
        batch_a="batch-a",
        batch_b="batch-b",
        batch_c="batch-c",
        p1="p1",
        p2="p2",
        p3="p3",
        p4="p4",
        design="dt-a",
    )


@pytest.fixture()
def add_entry(schedule_sessions):
    def _add(
        batch_id: str,
        time_slot_id: str,
        day: DayOfWeek | None = None,
        *,
        on_date: date | None = None,
        faculty_id: str | None = None,
        subject_id: str | None = None,
        notes: str | None = None,
    ) -> str:
        if day is None:
            day = DayOfWeek.from_date(on_date)
        entry = TimetableEntry(
            batch_id=batch_id,
            time_slot_id=time_slot_id,
            day_of_week=day,
            date=on_date,
            faculty_id=faculty_id,
            subject_id=subject_id,
            notes=notes,
        )
        with schedule_sessions() as db:
            db.add(entry)
            db.commit()
            return entry.id

    return _add


@pytest.fixture()
def fetch_entries(schedule_sessions):
    def _fetch(batch_id: str | None = None, *, active_only: bool = True) -> list[TimetableEntry]:
        query = select(TimetableEntry)
        if batch_id is not None:
            query = query.where(TimetableEntry.batch_id == batch_id)
        if active_only:
            query = query.where(TimetableEntry.is_active.is_(True))
        with schedule_sessions() as db:
            return list(db.execute(query).scalars())

    return _fetch


@pytest.fixture()
def tracker(operations_sessions):
    return OperationTracker(operations_sessions)


@pytest.fixture()
def service(schedule_sessions, tracker, settings):
    return BulkOperationService(schedule_sessions, tracker, settings)


@pytest.fixture()
def client(schedule_sessions, operations_sessions):
    app.dependency_overrides[get_session_factory] = lambda: schedule_sessions
    app.dependency_overrides[get_operations_session_factory] = lambda: operations_sessions

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
