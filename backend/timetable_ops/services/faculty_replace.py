from __future__ import annotations

import logging
from typing import Any

from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.bulk_operation import BulkOperationType
from timetable_ops.models.subject import Subject
from timetable_ops.models.timetable_entry import TimetableEntry
from timetable_ops.models.user import User
from timetable_ops.schemas.bulk_operation import FacultyReplaceParams, ResourceImpact
from timetable_ops.services.bulk_handler import BulkOperationHandler
from timetable_ops.services.calendar_events import EventFactory, Simulation, same_cell
from timetable_ops.services.operation_outcomes import EntryOutcome, OperationTally, Skipped, Succeeded
from timetable_ops.services.schedule_repository import ScheduleRepository

logger = logging.getLogger(__name__)


class FacultyReplaceHandler(BulkOperationHandler):
    operation_type = BulkOperationType.faculty_replace
    label = "Faculty replacement"
    preview_verb = "replace faculty in"
    empty_message = "No timetable entries found for the specified criteria"
    empty_summary = "No entries to update"
    suggestions = (
        "Review new faculty workload distribution",
        "Check subject expertise match",
    )

    params: FacultyReplaceParams

    def __init__(self, params: FacultyReplaceParams, settings):
        super().__init__(params, settings)
        self.current_faculty: User | None = None
        self.new_faculty: User | None = None
        self._subjects: dict[str, Subject] = {}
        self._prior_workload = 0

    def start_message(self) -> str:
        return f"Starting faculty replacement from {self.params.current_faculty_id} to {self.params.new_faculty_id}"

    def resolve(self, schedule: ScheduleRepository) -> None:
        params = self.params
        if params.current_faculty_id == params.new_faculty_id:
            raise BulkOperationInputError("Current and new faculty cannot be the same")
        self.current_faculty = schedule.get_faculty(params.current_faculty_id)
        if self.current_faculty is None:
            raise BulkOperationInputError("Current faculty not found or invalid")
        self.new_faculty = schedule.get_faculty(params.new_faculty_id)
        if self.new_faculty is None:
            raise BulkOperationInputError("New faculty not found or invalid")
        self.slots = schedule.get_time_slots()

    def load_entries(self, schedule: ScheduleRepository) -> list[TimetableEntry]:
        params = self.params
        # An effective date keeps dated occurrences on or after it.
        return schedule.list_entries(
            faculty_ids=[params.current_faculty_id],
            batch_ids=params.batch_ids,
            subject_ids=params.subject_ids,
            date_from=params.effective_date,
            dated_only=params.effective_date is not None,
        )

    def prepare(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> list[str]:
        warnings: list[str] = []
        self._prior_workload = schedule.count_active_entries(self.params.current_faculty_id)
        self._subjects = schedule.get_subjects(entry.subject_id for entry in entries)

        new_schedule = schedule.list_entries(faculty_ids=[self.params.new_faculty_id])
        clashes = [row for row in new_schedule if any(same_cell(row, entry) for entry in entries)]
        if clashes:
            batches = schedule.get_batches(row.batch_id for row in clashes)
            warnings.append(f"New faculty has {len(clashes)} conflicting time slots")
            for row in clashes[:3]:
                batch = batches.get(row.batch_id)
                warnings.append(
                    f"Conflict: {self.slot_name(row.time_slot_id)} on {row.day_of_week.value} "
                    f"with {batch.name if batch else row.batch_id}"
                )

        blackout_hits = self._blackout_hits(schedule, entries)
        if blackout_hits:
            warnings.append(f"{blackout_hits} entries fall within new faculty's blackout periods")
        return warnings

    def _blackout_hits(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> int:
        blackouts = schedule.list_blackouts([self.params.new_faculty_id])
        return sum(
            1
            for entry in entries
            if entry.date is not None and any(period.covers(entry.date) for period in blackouts)
        )

    def apply(self, schedule: ScheduleRepository, entry: TimetableEntry) -> EntryOutcome:
        params = self.params
        clash = schedule.find_faculty_entry(
            params.new_faculty_id,
            entry.time_slot_id,
            entry.day_of_week,
            entry.date,
            exclude_id=entry.id,
        )
        if clash is not None:
            logger.debug("Faculty replace skipped entry %s: new faculty busy with %s", entry.id, clash.id)
            return Skipped(
                f"Skipped {self.slot_name(entry.time_slot_id)} on {entry.day_of_week.value} - new faculty has conflict"
            )

        notes = f"Faculty changed from {self.current_faculty.name} to {self.new_faculty.name}"
        if entry.notes:
            notes = f"{notes} - {entry.notes}"
        entry.faculty_id = params.new_faculty_id
        entry.notes = notes

        subject = self._subjects.get(entry.subject_id) if entry.subject_id else None
        if subject is not None:
            if subject.primary_faculty_id == params.current_faculty_id:
                subject.primary_faculty_id = params.new_faculty_id
            if subject.co_faculty_id == params.current_faculty_id:
                subject.co_faculty_id = params.new_faculty_id
        schedule.flush()
        return Succeeded()

    def finalize(self, schedule: ScheduleRepository, tally: OperationTally) -> list[str]:
        if not self.params.maintain_workload:
            return []
        new_workload = schedule.count_active_entries(self.params.new_faculty_id)
        if new_workload > self._prior_workload * self.settings.bulk_workload_warning_ratio:
            logger.info(
                "Faculty %s workload rose to %s entries (previous holder had %s)",
                self.params.new_faculty_id,
                new_workload,
                self._prior_workload,
            )
            return ["New faculty workload significantly increased - consider redistribution"]
        return []

    def summary(self, tally: OperationTally, affected: int) -> str:
        return (
            f"Successfully replaced faculty in {tally.successful} out of {affected} timetable entries "
            f"from {self.current_faculty.name} to {self.new_faculty.name}"
        )

    def results(self, tally: OperationTally, affected: int) -> dict[str, Any]:
        return {
            "replacedEntries": tally.successful,
            "currentFaculty": self.current_faculty.name,
            "newFaculty": self.new_faculty.name,
            "summary": self.summary(tally, affected),
        }

    def simulate(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> Simulation:
        params = self.params
        simulation = Simulation(affected_count=len(entries))
        affected_ids = {entry.id for entry in entries}
        new_schedule = [
            row for row in schedule.list_entries(faculty_ids=[params.new_faculty_id]) if row.id not in affected_ids
        ]

        events = EventFactory(schedule, self.slots)
        events.prime([*entries, *new_schedule], extra_user_ids=[params.new_faculty_id])
        simulation.existing = [events.build(row) for row in new_schedule]
        for entry in entries:
            event = events.build(entry, event_id=f"updated_{entry.id}", faculty_id=params.new_faculty_id)
            simulation.proposed.append(event)
            simulation.changes.update.append(event)

        detection = simulation.detect()
        if detection.has_conflicts:
            simulation.conflicts.append(f"New faculty has {simulation.conflicted_proposals()} schedule conflicts")

        blackout_hits = self._blackout_hits(schedule, entries)
        if blackout_hits:
            simulation.warnings.append(f"{blackout_hits} entries fall within new faculty blackout periods")
        return simulation

    def resource_impact(self, simulation: Simulation) -> ResourceImpact:
        moved = len(simulation.changes.update)
        workload = {}
        if moved:
            workload = {
                self.params.new_faculty_id: moved,
                self.params.current_faculty_id: -moved,
            }
        return ResourceImpact(faculty_workload=workload)

    def recommendations(self, simulation: Simulation) -> list[str]:
        return [
            "Verify new faculty has expertise in assigned subjects",
            "Check faculty availability preferences",
            "Review workload balance across department",
        ]

    def throughput(self) -> int:
        return self.settings.bulk_faculty_replace_entries_per_minute
