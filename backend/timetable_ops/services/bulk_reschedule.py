from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.academic_calendar import ExamPeriod, Holiday
from timetable_ops.models.batch import Batch
from timetable_ops.models.bulk_operation import BulkOperationType
from timetable_ops.models.faculty_blackout import FacultyBlackoutPeriod
from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import DayOfWeek, TimetableEntry
from timetable_ops.models.user import User
from timetable_ops.schemas.bulk_operation import RescheduleParams, ResourceImpact
from timetable_ops.services.bulk_handler import BulkOperationHandler, count_by
from timetable_ops.services.calendar_events import EventFactory, Simulation
from timetable_ops.services.date_mapping import (
    advance_past_weekend,
    default_target_end,
    map_target_date,
    validate_window,
)
from timetable_ops.services.operation_outcomes import EntryOutcome, Failed, OperationTally, Succeeded
from timetable_ops.services.schedule_repository import ScheduleRepository, is_holiday

logger = logging.getLogger(__name__)

# Moving a Saturday or Sunday forward can land up to two days past the window.
WEEKEND_SPILL = timedelta(days=2)


class BulkRescheduleHandler(BulkOperationHandler):
    operation_type = BulkOperationType.bulk_reschedule
    label = "Bulk reschedule"
    preview_verb = "reschedule"
    empty_message = "No timetable entries found in source date range"
    empty_summary = "No entries to reschedule"
    suggestions = (
        "Consider alternative time slots for conflicting entries",
        "Review faculty availability in target period",
    )

    params: RescheduleParams

    def __init__(self, params: RescheduleParams, settings):
        super().__init__(params, settings)
        self.target_end: date | None = None
        self._holidays: list[Holiday] = []
        self._exam_periods: list[ExamPeriod] = []
        self._blackouts: list[FacultyBlackoutPeriod] = []
        self._alternatives: list[TimeSlot] = []
        self._batches: dict[str, Batch] = {}
        self._faculty: dict[str, User] = {}

    def start_message(self) -> str:
        return f"Starting bulk reschedule from {self.params.source_start} to {self.params.target_start}"

    def resolve(self, schedule: ScheduleRepository) -> None:
        params = self.params
        validate_window(params.source_start, params.source_end, "Source")
        self.target_end = params.target_end or default_target_end(
            params.source_start, params.source_end, params.target_start
        )
        validate_window(params.target_start, self.target_end, "Target")

        if params.batch_ids:
            found = schedule.get_batches(params.batch_ids)
            missing = [batch_id for batch_id in params.batch_ids if batch_id not in found]
            if missing:
                raise BulkOperationInputError(
                    f"Batch with ID {missing[0]} not found",
                    details={"missing_batch_ids": missing},
                )
        self.slots = schedule.get_time_slots()

    def load_entries(self, schedule: ScheduleRepository) -> list[TimetableEntry]:
        return schedule.list_entries(
            batch_ids=self.params.batch_ids,
            date_from=self.params.source_start,
            date_to=self.params.source_end,
            dated_only=True,
        )

    def _calendar_window(self, entries: list[TimetableEntry]) -> tuple[date, date]:
        # Shifted dates ignore target_end, so widen to cover every final date.
        start, end = self.params.target_start, self.target_end + WEEKEND_SPILL
        finals = [self.map_entry_date(entry.date)[1] for entry in entries]
        if finals:
            start, end = min(start, *finals), max(end, *finals)
        return start, end

    def _load_calendar(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> None:
        start, end = self._calendar_window(entries)
        self._holidays = schedule.list_holidays(start, end)
        self._exam_periods = schedule.list_blocking_exam_periods(start, end)
        self._blackouts = []
        if self.params.respect_blackouts:
            self._blackouts = schedule.list_blackouts(
                (entry.faculty_id for entry in entries), start=start, end=end
            )

    def map_entry_date(self, value: date) -> tuple[date, date, bool]:
        """Return (mapped, final, moved_off_weekend) for a source date."""
        params = self.params
        mapped = map_target_date(
            value,
            move_type=params.move_type,
            source_start=params.source_start,
            source_end=params.source_end,
            target_start=params.target_start,
            target_end=self.target_end,
        )
        if not params.exclude_weekends:
            return mapped, mapped, False
        final, moved = advance_past_weekend(mapped)
        return mapped, final, moved

    def _blocked_by_exam(self, value: date) -> bool:
        return any(period.covers(value) for period in self._exam_periods)

    def _blackout_for(self, faculty_id: str | None, value: date) -> bool:
        if not faculty_id:
            return False
        return any(period.faculty_id == faculty_id and period.covers(value) for period in self._blackouts)

    def prepare(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> list[str]:
        self._load_calendar(schedule, entries)
        self._alternatives = schedule.list_time_slots()
        self._batches = schedule.get_batches(entry.batch_id for entry in entries)
        self._faculty = schedule.get_users(entry.faculty_id for entry in entries)
        return []

    def apply(self, schedule: ScheduleRepository, entry: TimetableEntry) -> EntryOutcome:
        warnings: list[str] = []
        mapped, target, moved = self.map_entry_date(entry.date)
        if moved:
            warnings.append(f"Moved entry from weekend {mapped.isoformat()} to {target.isoformat()}")

        if self._blocked_by_exam(target):
            return Failed(f"Cannot schedule during exam period: {target.isoformat()}", tuple(warnings))
        if is_holiday(self._holidays, target):
            warnings.append(f"Entry rescheduled to holiday: {target.isoformat()}")
        if self.params.respect_blackouts and self._blackout_for(entry.faculty_id, target):
            faculty = self._faculty.get(entry.faculty_id)
            warnings.append(f"Faculty {faculty.name if faculty else entry.faculty_id} has blackout on {target.isoformat()}")

        day = DayOfWeek.from_date(target)
        original_date = entry.date
        clash = schedule.find_batch_entry(entry.batch_id, entry.time_slot_id, day, target, exclude_id=entry.id)
        if clash is None:
            self._move(schedule, entry, target, day, original_date)
            return Succeeded(tuple(warnings))

        batch = self._batches.get(entry.batch_id)
        warnings.append(
            f"Conflict detected for {batch.name if batch else entry.batch_id} at "
            f"{target.isoformat()} {self.slot_name(entry.time_slot_id)}"
        )
        candidates = [slot for slot in self._alternatives if slot.id != entry.time_slot_id]
        for slot in candidates[: self.settings.bulk_alternative_slot_limit]:
            if schedule.find_batch_entry(entry.batch_id, slot.id, day, target, exclude_id=entry.id) is None:
                self._move(schedule, entry, target, day, original_date, slot=slot)
                warnings.append(f"Moved to alternative time slot: {slot.name}")
                return Succeeded(tuple(warnings))

        logger.debug("Reschedule found no free slot for entry %s on %s", entry.id, target)
        return Failed(f"No alternative time slots available for {target.isoformat()}", tuple(warnings))

    def _move(
        self,
        schedule: ScheduleRepository,
        entry: TimetableEntry,
        target: date,
        day: DayOfWeek,
        original_date: date,
        *,
        slot: TimeSlot | None = None,
    ) -> None:
        notes = f"Rescheduled from {original_date.isoformat()} to {target.isoformat()}"
        if slot is not None:
            notes = f"{notes}, time changed to {slot.name}"
            entry.time_slot_id = slot.id
        if entry.notes:
            notes = f"{notes} - {entry.notes}"
        entry.date = target
        entry.day_of_week = day
        entry.notes = notes
        schedule.flush()

    def summary(self, tally: OperationTally, affected: int) -> str:
        params = self.params
        return (
            f"Successfully rescheduled {tally.successful} out of {affected} entries "
            f"from {params.source_start} to {params.target_start} using {params.move_type} method"
        )

    def results(self, tally: OperationTally, affected: int) -> dict[str, Any]:
        params = self.params
        return {
            "rescheduledEntries": tally.successful,
            "moveType": params.move_type,
            "sourceRange": f"{params.source_start} to {params.source_end}",
            "targetRange": f"{params.target_start} to {self.target_end}",
            "summary": self.summary(tally, affected),
        }

    def simulate(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> Simulation:
        simulation = Simulation(affected_count=len(entries))
        self._load_calendar(schedule, entries)

        finals: dict[str, date] = {}
        weekend_moves = 0
        for entry in entries:
            _, final, moved = self.map_entry_date(entry.date)
            finals[entry.id] = final
            weekend_moves += int(moved)

        existing_rows: dict[str, TimetableEntry] = {}
        if finals:
            low, high = min(finals.values()), max(finals.values())
            affected_ids = set(finals)
            batch_ids = {entry.batch_id for entry in entries}
            faculty_ids = {entry.faculty_id for entry in entries if entry.faculty_id}
            scoped = schedule.list_entries(batch_ids=batch_ids, date_from=low, date_to=high)
            if faculty_ids:
                scoped += schedule.list_entries(faculty_ids=faculty_ids, date_from=low, date_to=high)
            existing_rows = {row.id: row for row in scoped if row.id not in affected_ids}

        events = EventFactory(schedule, self.slots)
        events.prime([*entries, *existing_rows.values()])
        simulation.existing = [events.build(row) for row in existing_rows.values()]
        for entry in entries:
            event = events.build(entry, event_id=f"rescheduled_{entry.id}", on_date=finals[entry.id])
            simulation.proposed.append(event)
            simulation.changes.update.append(event)

        detection = simulation.detect()
        if detection.critical_count:
            simulation.conflicts.append(f"{detection.critical_count} faculty conflicts detected in target schedule")
        batch_conflicts = detection.conflict_count - detection.critical_count
        if batch_conflicts:
            simulation.warnings.append(
                f"{batch_conflicts} batch conflicts in target schedule; alternative time slots will be tried"
            )

        blocked = sum(1 for value in finals.values() if self._blocked_by_exam(value))
        if blocked:
            simulation.conflicts.append(f"{blocked} entries fall inside exam periods that block regular classes")
        elif self._exam_periods:
            simulation.warnings.append(
                f"{len(self._exam_periods)} exam periods block regular classes in target range"
            )

        if self._holidays:
            simulation.warnings.append(f"{len(self._holidays)} holidays found in target date range")
        if weekend_moves:
            simulation.warnings.append(f"{weekend_moves} entries will move off weekends")
        if self.params.respect_blackouts:
            blackout_hits = sum(1 for entry in entries if self._blackout_for(entry.faculty_id, finals[entry.id]))
            if blackout_hits:
                simulation.warnings.append(f"{blackout_hits} entries fall within faculty blackout periods")
        return simulation

    def resource_impact(self, simulation: Simulation) -> ResourceImpact:
        return ResourceImpact(
            time_slot_utilization=count_by(event.time_slot_id for event in simulation.changes.update),
        )

    def recommendations(self, simulation: Simulation) -> list[str]:
        return [
            "Check for holidays in target date range",
            "Verify faculty availability",
            "Consider exam schedule conflicts",
        ]

    def throughput(self) -> int:
        return self.settings.bulk_reschedule_entries_per_minute
