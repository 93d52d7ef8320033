import uuid
import datetime as dt
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetable_ops.db.base import Base


class DayOfWeek(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"

    @classmethod
    def from_date(cls, value: dt.date) -> "DayOfWeek":
        return DAY_ORDER[value.weekday()]

    @property
    def weekday_number(self) -> int:
        return DAY_ORDER.index(self)


DAY_ORDER = list(DayOfWeek)


class EntryType(str, Enum):
    regular = "regular"
    event = "event"


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"
    __table_args__ = (
        Index("ix_timetable_entries_batch_slot_day", "batch_id", "time_slot_id", "day_of_week"),
        Index("ix_timetable_entries_faculty_slot_day", "faculty_id", "time_slot_id", "day_of_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    faculty_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    time_slot_id: Mapped[str] = mapped_column(String(36), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(SAEnum(DayOfWeek, name="day_of_week"), nullable=False)
    # NULL date means the entry repeats every week on day_of_week.
    date: Mapped[dt.date | None] = mapped_column(Date, index=True, nullable=True)
    entry_type: Mapped[EntryType] = mapped_column(
        SAEnum(EntryType, name="entry_type"),
        nullable=False,
        default=EntryType.regular,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
