from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date

from sqlalchemy import func, or_, select, true
from sqlalchemy.orm import Session

from timetable_ops.models.academic_calendar import ExamPeriod, Holiday
from timetable_ops.models.batch import Batch
from timetable_ops.models.faculty_blackout import FacultyBlackoutPeriod
from timetable_ops.models.subject import Subject
from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import DayOfWeek, TimetableEntry
from timetable_ops.models.user import User, UserRole


def occupies_same_date(first: date | None, second: date | None) -> bool:
    """Weekly entries (no date) collide with every date on their weekday."""
    return first is None or second is None or first == second


def _occupancy_clause(value: date | None):
    if value is None:
        return true()
    return or_(TimetableEntry.date.is_(None), TimetableEntry.date == value)


def is_holiday(holidays: Iterable[Holiday], value: date) -> bool:
    for holiday in holidays:
        if holiday.date == value:
            return True
        if holiday.is_recurring and (holiday.date.month, holiday.date.day) == (value.month, value.day):
            return True
    return False


class ScheduleRepository:
    """Query surface over the timetable store used by the bulk engine.

    Every method runs against the session it was built with, so a caller that
    holds one session sees its own uncommitted writes. Writes flush immediately.
    """

    def __init__(self, db: Session):
        self.db = db

    # Reference data

    def get_batch(self, batch_id: str) -> Batch | None:
        return self.db.get(Batch, batch_id)

    def get_faculty(self, faculty_id: str) -> User | None:
        user = self.db.get(User, faculty_id)
        if user is None or user.role != UserRole.faculty:
            return None
        return user

    def get_users(self, user_ids: Iterable[str]) -> dict[str, User]:
        ids = {item for item in user_ids if item}
        if not ids:
            return {}
        rows = self.db.execute(select(User).where(User.id.in_(ids))).scalars().all()
        return {row.id: row for row in rows}

    def get_batches(self, batch_ids: Iterable[str]) -> dict[str, Batch]:
        ids = {item for item in batch_ids if item}
        if not ids:
            return {}
        rows = self.db.execute(select(Batch).where(Batch.id.in_(ids))).scalars().all()
        return {row.id: row for row in rows}

    def get_subjects(self, subject_ids: Iterable[str]) -> dict[str, Subject]:
        ids = {item for item in subject_ids if item}
        if not ids:
            return {}
        rows = self.db.execute(select(Subject).where(Subject.id.in_(ids))).scalars().all()
        return {row.id: row for row in rows}

    def find_subject_by_code(self, batch_id: str, code: str) -> Subject | None:
        return self.db.execute(
            select(Subject).where(Subject.batch_id == batch_id, Subject.code == code)
        ).scalar_one_or_none()

    def list_subject_codes(self, batch_id: str) -> set[str]:
        return set(self.db.execute(select(Subject.code).where(Subject.batch_id == batch_id)).scalars())

    def get_time_slots(self) -> dict[str, TimeSlot]:
        rows = self.db.execute(select(TimeSlot)).scalars().all()
        return {row.id: row for row in rows}

    def list_time_slots(self, *, exclude_id: str | None = None) -> list[TimeSlot]:
        query = select(TimeSlot).where(TimeSlot.is_active.is_(True))
        if exclude_id is not None:
            query = query.where(TimeSlot.id != exclude_id)
        return list(self.db.execute(query.order_by(TimeSlot.sort_order, TimeSlot.start_time)).scalars())

    def list_holidays(self, start: date, end: date) -> list[Holiday]:
        rows = self.db.execute(
            select(Holiday).where(
                or_(
                    Holiday.date.between(start, end),
                    Holiday.is_recurring.is_(True),
                )
            )
        ).scalars()
        return [row for row in rows if not row.is_recurring or _recurs_within(row.date, start, end)]

    def list_blocking_exam_periods(self, start: date, end: date) -> list[ExamPeriod]:
        return list(
            self.db.execute(
                select(ExamPeriod)
                .where(
                    ExamPeriod.block_regular_classes.is_(True),
                    ExamPeriod.start_date <= end,
                    ExamPeriod.end_date >= start,
                )
                .order_by(ExamPeriod.start_date)
            ).scalars()
        )

    def list_blackouts(
        self,
        faculty_ids: Iterable[str],
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FacultyBlackoutPeriod]:
        ids = {item for item in faculty_ids if item}
        if not ids:
            return []
        query = select(FacultyBlackoutPeriod).where(FacultyBlackoutPeriod.faculty_id.in_(ids))
        if end is not None:
            query = query.where(FacultyBlackoutPeriod.start_date <= end)
        if start is not None:
            query = query.where(FacultyBlackoutPeriod.end_date >= start)
        return list(self.db.execute(query.order_by(FacultyBlackoutPeriod.start_date)).scalars())

    # Timetable entries

    def list_entries(
        self,
        *,
        batch_ids: Iterable[str] | None = None,
        faculty_ids: Iterable[str] | None = None,
        subject_ids: Iterable[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        dated_only: bool = False,
    ) -> list[TimetableEntry]:
        """Active entries matching the filters, ordered by date then slot order.

        A date bound only constrains dated entries unless ``dated_only`` is set,
        in which case weekly entries are excluded altogether. An explicit empty
        ``faculty_ids`` matches nothing.
        """
        query = (
            select(TimetableEntry)
            .join(TimeSlot, TimeSlot.id == TimetableEntry.time_slot_id)
            .where(TimetableEntry.is_active.is_(True))
        )
        batch_filter = list(batch_ids or [])
        if batch_filter:
            query = query.where(TimetableEntry.batch_id.in_(batch_filter))
        subject_filter = list(subject_ids or [])
        if subject_filter:
            query = query.where(TimetableEntry.subject_id.in_(subject_filter))
        faculty_filter = [item for item in (faculty_ids or []) if item]
        if faculty_ids is not None:
            query = query.where(TimetableEntry.faculty_id.in_(faculty_filter))
        if dated_only:
            query = query.where(TimetableEntry.date.is_not(None))
        if date_from is not None:
            query = query.where(or_(TimetableEntry.date.is_(None), TimetableEntry.date >= date_from))
        if date_to is not None:
            query = query.where(or_(TimetableEntry.date.is_(None), TimetableEntry.date <= date_to))
        query = query.order_by(
            TimetableEntry.date.asc().nulls_first(),
            TimeSlot.sort_order,
            TimetableEntry.id,
        )
        return list(self.db.execute(query).scalars())

    def find_batch_entry(
        self,
        batch_id: str,
        time_slot_id: str,
        day_of_week: DayOfWeek,
        on_date: date | None,
        *,
        exclude_id: str | None = None,
    ) -> TimetableEntry | None:
        query = select(TimetableEntry).where(
            TimetableEntry.batch_id == batch_id,
            TimetableEntry.time_slot_id == time_slot_id,
            TimetableEntry.day_of_week == day_of_week,
            TimetableEntry.is_active.is_(True),
            _occupancy_clause(on_date),
        )
        if exclude_id is not None:
            query = query.where(TimetableEntry.id != exclude_id)
        return self.db.execute(query.limit(1)).scalars().first()

    def find_faculty_entry(
        self,
        faculty_id: str,
        time_slot_id: str,
        day_of_week: DayOfWeek,
        on_date: date | None,
        *,
        exclude_id: str | None = None,
        exclude_batch_id: str | None = None,
    ) -> TimetableEntry | None:
        query = select(TimetableEntry).where(
            TimetableEntry.faculty_id == faculty_id,
            TimetableEntry.time_slot_id == time_slot_id,
            TimetableEntry.day_of_week == day_of_week,
            TimetableEntry.is_active.is_(True),
            _occupancy_clause(on_date),
        )
        if exclude_id is not None:
            query = query.where(TimetableEntry.id != exclude_id)
        if exclude_batch_id is not None:
            query = query.where(TimetableEntry.batch_id != exclude_batch_id)
        return self.db.execute(query.limit(1)).scalars().first()

    def count_active_entries(self, faculty_id: str) -> int:
        return int(
            self.db.execute(
                select(func.count(TimetableEntry.id)).where(
                    TimetableEntry.faculty_id == faculty_id,
                    TimetableEntry.is_active.is_(True),
                )
            ).scalar_one()
        )

    def add_subject(self, subject: Subject) -> Subject:
        self.db.add(subject)
        self.db.flush()
        return subject

    def add_entry(self, entry: TimetableEntry) -> TimetableEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def flush(self) -> None:
        self.db.flush()


def _recurs_within(anchor: date, start: date, end: date) -> bool:
    for year in range(start.year, end.year + 1):
        try:
            candidate = anchor.replace(year=year)
        except ValueError:
            # Feb 29 anchor in a non-leap year.
            continue
        if start <= candidate <= end:
            return True
    return False


class UnitOfWork:
    """One session, one transaction.

    Used as a context manager; leaving the block with an exception rolls back,
    leaving it without ``commit()`` discards the work when the session closes.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self.session: Session | None = None
        self.schedule: ScheduleRepository | None = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.schedule = ScheduleRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
