"""Seed a small demo schedule for trying bulk operations locally.

Creates an admin, two faculty members, two batches, weekday time slots, one
subject per batch and a week of weekly entries for the first batch. Existing
rows (matched by email, batch name, slot name or subject code) are reused.

Run:
  PYTHONPATH=backend python scripts/seed_demo_schedule.py
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from timetable_ops.core.config import get_settings
from timetable_ops.core.security import create_access_token
from timetable_ops.db.bootstrap import ensure_runtime_schema
from timetable_ops.db.session import build_engine, create_session_factory
from timetable_ops.models.batch import Batch
from timetable_ops.models.subject import Subject
from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import DayOfWeek, TimetableEntry
from timetable_ops.models.user import User, UserRole

DEMO_USERS = [
    ("Demo Admin", "admin.demo@example.edu", UserRole.admin),
    ("Demo Faculty One", "faculty1.demo@example.edu", UserRole.faculty),
    ("Demo Faculty Two", "faculty2.demo@example.edu", UserRole.faculty),
]
DEMO_BATCHES = ["B.Des UX Sem 3", "B.Des UX Sem 5"]
DEMO_SLOTS = [
    ("Period 1", "09:00", "10:00"),
    ("Period 2", "10:00", "11:00"),
    ("Period 3", "11:15", "12:15"),
    ("Period 4", "13:15", "14:15"),
]
WEEKDAYS = [DayOfWeek.monday, DayOfWeek.tuesday, DayOfWeek.wednesday, DayOfWeek.thursday, DayOfWeek.friday]


def _upsert_user(session: Session, name: str, email: str, role: UserRole) -> User:
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(name=name, email=email, role=role, department="Design", is_active=True)
        session.add(user)
        session.flush()
    return user


def _upsert_batch(session: Session, name: str) -> Batch:
    batch = session.execute(select(Batch).where(Batch.name == name)).scalar_one_or_none()
    if batch is None:
        batch = Batch(name=name, program_name="B.Des UX", semester=int(name.rsplit(" ", 1)[-1]))
        session.add(batch)
        session.flush()
    return batch


def _upsert_slots(session: Session) -> list[TimeSlot]:
    slots = []
    for order, (name, start, end) in enumerate(DEMO_SLOTS, start=1):
        slot = session.execute(select(TimeSlot).where(TimeSlot.name == name)).scalar_one_or_none()
        if slot is None:
            slot = TimeSlot(name=name, start_time=start, end_time=end, duration_minutes=60, sort_order=order)
            session.add(slot)
            session.flush()
        slots.append(slot)
    return slots


def _upsert_subject(session: Session, batch: Batch, faculty: User) -> Subject:
    subject = session.execute(
        select(Subject).where(Subject.batch_id == batch.id, Subject.code == "DT101")
    ).scalar_one_or_none()
    if subject is None:
        subject = Subject(name="Design Thinking", code="DT101", batch_id=batch.id, primary_faculty_id=faculty.id)
        session.add(subject)
        session.flush()
    return subject


def _seed_week(session: Session, batch: Batch, subject: Subject, faculty: User, slots: list[TimeSlot]) -> int:
    created = 0
    for day, slot in zip(WEEKDAYS, slots * 2):
        exists = session.execute(
            select(TimetableEntry.id).where(
                TimetableEntry.batch_id == batch.id,
                TimetableEntry.time_slot_id == slot.id,
                TimetableEntry.day_of_week == day,
                TimetableEntry.date.is_(None),
                TimetableEntry.is_active.is_(True),
            )
        ).first()
        if exists:
            continue
        session.add(
            TimetableEntry(
                batch_id=batch.id,
                subject_id=subject.id,
                faculty_id=faculty.id,
                time_slot_id=slot.id,
                day_of_week=day,
            )
        )
        created += 1
    return created


def main() -> None:
    settings = get_settings()
    engine = build_engine(settings.database_url)
    ensure_runtime_schema(engine, create_missing=settings.auto_create_schema)
    session_factory = create_session_factory(engine)

    with session_factory() as session:
        admin, faculty_one, faculty_two = (_upsert_user(session, *item) for item in DEMO_USERS)
        source, target = (_upsert_batch(session, name) for name in DEMO_BATCHES)
        slots = _upsert_slots(session)
        subject = _upsert_subject(session, source, faculty_one)
        created = _seed_week(session, source, subject, faculty_one, slots)
        session.commit()

        print(f"Seeded {created} weekly entries for {source.name}")
        print(f"  source batch: {source.id}")
        print(f"  target batch: {target.id}")
        print(f"  faculty one:  {faculty_one.id}")
        print(f"  faculty two:  {faculty_two.id}")
        print(f"\nAdmin bearer token:\n  {create_access_token(admin.id)}")

    engine.dispose()


if __name__ == "__main__":
    main()
