import uuid
import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetable_ops.db.base import Base


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="university")
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ExamPeriod(Base):
    __tablename__ = "exam_periods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    exam_type: Mapped[str] = mapped_column(String(50), nullable=False, default="internal")
    block_regular_classes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_review_classes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def covers(self, value: dt.date) -> bool:
        return self.start_date <= value <= self.end_date
