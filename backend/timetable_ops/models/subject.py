import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetable_ops.db.base import Base


class SubjectType(str, Enum):
    core = "core"
    elective = "elective"
    specialization = "specialization"


class ExamType(str, Enum):
    theory = "theory"
    practical = "practical"
    jury = "jury"
    project = "project"


class Subject(Base):
    __tablename__ = "subjects"
    __table_args__ = (UniqueConstraint("batch_id", "code", name="uq_subjects_batch_code"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    total_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=45)
    batch_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    primary_faculty_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    co_faculty_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    exam_type: Mapped[ExamType] = mapped_column(
        SAEnum(ExamType, name="exam_type"),
        nullable=False,
        default=ExamType.theory,
    )
    subject_type: Mapped[SubjectType] = mapped_column(
        SAEnum(SubjectType, name="subject_type"),
        nullable=False,
        default=SubjectType.core,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
