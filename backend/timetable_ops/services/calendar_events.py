from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import TimetableEntry
from timetable_ops.schemas.bulk_operation import ProposedChanges
from timetable_ops.schemas.conflict import CalendarEvent, ConflictResult
from timetable_ops.services.conflict_detection import detect_event_conflicts
from timetable_ops.services.schedule_repository import ScheduleRepository, occupies_same_date

# Weekly entries are anchored in the week starting on this Monday.
REFERENCE_MONDAY = date(2024, 1, 1)

_UNCHANGED = object()


def parse_clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def same_cell(first: TimetableEntry, second: TimetableEntry) -> bool:
    return (
        first.time_slot_id == second.time_slot_id
        and first.day_of_week == second.day_of_week
        and occupies_same_date(first.date, second.date)
    )


class EventFactory:
    """Turns timetable rows into calendar events, optionally relabelled."""

    def __init__(self, schedule: ScheduleRepository, slots: dict[str, TimeSlot]):
        self.schedule = schedule
        self.slots = slots
        self.batches: dict = {}
        self.users: dict = {}
        self.subjects: dict = {}

    def prime(self, entries: Iterable[TimetableEntry], *, extra_batch_ids: Iterable[str] = (), extra_user_ids: Iterable[str] = ()) -> None:
        rows = list(entries)
        batch_ids = {row.batch_id for row in rows} | set(extra_batch_ids)
        user_ids = {row.faculty_id for row in rows if row.faculty_id} | set(extra_user_ids)
        subject_ids = {row.subject_id for row in rows if row.subject_id}
        self.batches.update(self.schedule.get_batches(batch_ids - self.batches.keys()))
        self.users.update(self.schedule.get_users(user_ids - self.users.keys()))
        self.subjects.update(self.schedule.get_subjects(subject_ids - self.subjects.keys()))

    def build(
        self,
        entry: TimetableEntry,
        *,
        event_id: Optional[str] = None,
        batch_id: Optional[str] = None,
        faculty_id=_UNCHANGED,
        on_date=_UNCHANGED,
        time_slot_id: Optional[str] = None,
    ) -> CalendarEvent:
        batch_id = batch_id or entry.batch_id
        faculty_id = entry.faculty_id if faculty_id is _UNCHANGED else faculty_id
        on_date = entry.date if on_date is _UNCHANGED else on_date
        slot = self.slots[time_slot_id or entry.time_slot_id]

        if on_date is None:
            anchor = REFERENCE_MONDAY + timedelta(days=entry.day_of_week.weekday_number)
        else:
            anchor = on_date

        batch = self.batches.get(batch_id)
        faculty = self.users.get(faculty_id) if faculty_id else None
        subject = self.subjects.get(entry.subject_id) if entry.subject_id else None
        faculty_name = faculty.name if faculty else None
        subject_name = subject.name if subject else "Unassigned"

        start = datetime.combine(anchor, parse_clock(slot.start_time))
        end = datetime.combine(anchor, parse_clock(slot.end_time))
        if end <= start:
            # Slot runs past midnight.
            end += timedelta(days=1)

        return CalendarEvent(
            id=event_id or entry.id,
            title=f"{subject_name} - {faculty_name or 'Unassigned'}",
            start=start,
            end=end,
            batch_id=batch_id,
            faculty_id=faculty_id,
            subject_id=entry.subject_id,
            time_slot_id=slot.id,
            batch_name=batch.name if batch else None,
            faculty_name=faculty_name,
            recurring=on_date is None,
        )


@dataclass
class Simulation:
    """Proposed post-operation calendar for one request; never persisted."""

    affected_count: int = 0
    existing: list[CalendarEvent] = field(default_factory=list)
    proposed: list[CalendarEvent] = field(default_factory=list)
    changes: ProposedChanges = field(default_factory=ProposedChanges)
    conflicts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    detection: ConflictResult = field(default_factory=ConflictResult)

    def detect(self) -> ConflictResult:
        """Run the detector, keeping only conflicts that touch a proposed event."""
        proposed_ids = {event.id for event in self.proposed}
        result = detect_event_conflicts([*self.existing, *self.proposed])
        relevant = [
            conflict
            for conflict in result.conflicts
            if conflict.event_id in proposed_ids or conflict.conflicting_event_id in proposed_ids
        ]
        self.detection = ConflictResult(
            has_conflicts=bool(relevant),
            conflict_count=len(relevant),
            critical_count=sum(1 for conflict in relevant if conflict.severity == "critical"),
            conflicts=relevant,
        )
        return self.detection

    def conflicted_proposals(self) -> int:
        proposed_ids = {event.id for event in self.proposed}
        return len(proposed_ids & self.detection.involved_event_ids())
