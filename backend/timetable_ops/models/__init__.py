from timetable_ops.models.academic_calendar import ExamPeriod, Holiday  # noqa: F401
from timetable_ops.models.batch import Batch  # noqa: F401
from timetable_ops.models.bulk_operation import (  # noqa: F401
    BulkOperation,
    BulkOperationType,
    LogLevel,
    OperationLog,
    OperationStatus,
)
from timetable_ops.models.faculty_blackout import FacultyBlackoutPeriod  # noqa: F401
from timetable_ops.models.subject import ExamType, Subject, SubjectType  # noqa: F401
from timetable_ops.models.time_slot import TimeSlot  # noqa: F401
from timetable_ops.models.timetable_entry import DayOfWeek, EntryType, TimetableEntry  # noqa: F401
from timetable_ops.models.user import User, UserRole  # noqa: F401
