from __future__ import annotations

import logging
from typing import Any

from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.batch import Batch
from timetable_ops.models.bulk_operation import BulkOperationType
from timetable_ops.models.subject import Subject
from timetable_ops.models.timetable_entry import TimetableEntry
from timetable_ops.schemas.bulk_operation import CloneParams, ResourceImpact
from timetable_ops.services.bulk_handler import BulkOperationHandler, count_by
from timetable_ops.services.calendar_events import EventFactory, Simulation, same_cell
from timetable_ops.services.operation_outcomes import EntryOutcome, OperationTally, Skipped, Succeeded
from timetable_ops.services.schedule_repository import ScheduleRepository

logger = logging.getLogger(__name__)


class CloneTimetableHandler(BulkOperationHandler):
    operation_type = BulkOperationType.clone_timetable
    label = "Clone operation"
    preview_verb = "clone"
    empty_message = "No timetable entries found in source batch for the specified criteria"
    empty_summary = "No entries to clone"
    suggestions = (
        'Consider using "skip conflicts" mode for safer cloning',
        "Review faculty availability before cloning",
    )

    params: CloneParams

    def __init__(self, params: CloneParams, settings):
        super().__init__(params, settings)
        self.source_batch: Batch | None = None
        self.target_batch: Batch | None = None
        self._source_subjects: dict[str, Subject] = {}

    def start_message(self) -> str:
        return f"Starting timetable clone from batch {self.params.source_batch_id} to {self.params.target_batch_id}"

    def resolve(self, schedule: ScheduleRepository) -> None:
        params = self.params
        if params.source_batch_id == params.target_batch_id:
            raise BulkOperationInputError("Source and target batches cannot be the same")
        if params.start_date and params.end_date and params.start_date > params.end_date:
            raise BulkOperationInputError(
                "Clone start date must not be after its end date",
                details={"start": params.start_date.isoformat(), "end": params.end_date.isoformat()},
            )

        self.source_batch = schedule.get_batch(params.source_batch_id)
        if self.source_batch is None:
            raise BulkOperationInputError(f"Source batch with ID {params.source_batch_id} not found")
        self.target_batch = schedule.get_batch(params.target_batch_id)
        if self.target_batch is None:
            raise BulkOperationInputError(f"Target batch with ID {params.target_batch_id} not found")
        self.slots = schedule.get_time_slots()

    def load_entries(self, schedule: ScheduleRepository) -> list[TimetableEntry]:
        params = self.params
        # A date window selects dated occurrences only.
        return schedule.list_entries(
            batch_ids=[params.source_batch_id],
            date_from=params.start_date,
            date_to=params.end_date,
            dated_only=params.start_date is not None or params.end_date is not None,
        )

    def prepare(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> list[str]:
        self._source_subjects = schedule.get_subjects(entry.subject_id for entry in entries)
        return []

    def apply(self, schedule: ScheduleRepository, entry: TimetableEntry) -> EntryOutcome:
        params = self.params
        warnings: list[str] = []
        slot_name = self.slot_name(entry.time_slot_id)
        day = entry.day_of_week.value

        occupant = schedule.find_batch_entry(
            params.target_batch_id, entry.time_slot_id, entry.day_of_week, entry.date
        )
        if occupant is not None:
            if params.handle_conflicts == "skip":
                logger.debug("Clone skipped entry %s: target slot occupied by %s", entry.id, occupant.id)
                return Skipped(f"Skipped {slot_name} on {day} - slot already occupied")
            occupant.is_active = False
            schedule.flush()
            warnings.append(f"Overrode existing entry for {slot_name} on {day}")

        if params.preserve_faculty and entry.faculty_id:
            clash = schedule.find_faculty_entry(
                entry.faculty_id,
                entry.time_slot_id,
                entry.day_of_week,
                entry.date,
                exclude_batch_id=params.source_batch_id,
            )
            if clash is not None:
                if params.handle_conflicts == "skip":
                    logger.debug("Clone skipped entry %s: faculty busy with %s", entry.id, clash.id)
                    return Skipped(f"Skipped {slot_name} on {day} - faculty conflict", tuple(warnings))
                warnings.append(f"Kept faculty conflict for {slot_name} on {day} under override policy")

        target_subject_id = None
        faculty_id = entry.faculty_id if params.preserve_faculty else None
        source_subject = self._source_subjects.get(entry.subject_id) if entry.subject_id else None
        if source_subject is not None:
            target_subject = self._resolve_target_subject(schedule, source_subject, warnings)
            target_subject_id = target_subject.id
            if not params.preserve_faculty:
                faculty_id = target_subject.primary_faculty_id

        notes = f"Cloned from {self.source_batch.name}"
        if entry.notes:
            notes = f"{notes} - {entry.notes}"
        schedule.add_entry(
            TimetableEntry(
                batch_id=params.target_batch_id,
                subject_id=target_subject_id,
                faculty_id=faculty_id,
                time_slot_id=entry.time_slot_id,
                day_of_week=entry.day_of_week,
                date=entry.date,
                entry_type=entry.entry_type,
                is_active=True,
                notes=notes,
            )
        )
        return Succeeded(tuple(warnings))

    def _resolve_target_subject(
        self,
        schedule: ScheduleRepository,
        source_subject: Subject,
        warnings: list[str],
    ) -> Subject:
        existing = schedule.find_subject_by_code(self.params.target_batch_id, source_subject.code)
        if existing is not None:
            return existing

        keep_faculty = self.params.preserve_faculty
        created = schedule.add_subject(
            Subject(
                name=source_subject.name,
                code=source_subject.code,
                credits=source_subject.credits,
                total_hours=source_subject.total_hours,
                batch_id=self.params.target_batch_id,
                primary_faculty_id=source_subject.primary_faculty_id if keep_faculty else None,
                co_faculty_id=source_subject.co_faculty_id if keep_faculty else None,
                exam_type=source_subject.exam_type,
                subject_type=source_subject.subject_type,
                description=source_subject.description,
            )
        )
        warnings.append(f"Created new subject: {created.name} ({created.code})")
        return created

    def summary(self, tally: OperationTally, affected: int) -> str:
        return (
            f"Successfully cloned {tally.successful} out of {affected} timetable entries "
            f"from {self.source_batch.name} to {self.target_batch.name}"
        )

    def results(self, tally: OperationTally, affected: int) -> dict[str, Any]:
        return {
            "clonedEntries": tally.successful,
            "sourceBatch": self.source_batch.name,
            "targetBatch": self.target_batch.name,
            "summary": self.summary(tally, affected),
        }

    def simulate(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> Simulation:
        params = self.params
        simulation = Simulation(affected_count=len(entries))

        target_entries = schedule.list_entries(batch_ids=[params.target_batch_id])
        other_entries: list[TimetableEntry] = []
        if params.preserve_faculty:
            faculty_ids = {entry.faculty_id for entry in entries if entry.faculty_id}
            if faculty_ids:
                other_entries = [
                    row
                    for row in schedule.list_entries(faculty_ids=faculty_ids)
                    if row.batch_id not in (params.source_batch_id, params.target_batch_id)
                ]

        events = EventFactory(schedule, self.slots)
        events.prime([*entries, *target_entries, *other_entries], extra_batch_ids=[params.target_batch_id])

        source_subjects = schedule.get_subjects(entry.subject_id for entry in entries)
        target_codes = schedule.list_subject_codes(params.target_batch_id)
        missing_codes: list[str] = []
        for entry in entries:
            subject = source_subjects.get(entry.subject_id) if entry.subject_id else None
            if subject is not None and subject.code not in target_codes and subject.code not in missing_codes:
                missing_codes.append(subject.code)

        replaced: set[str] = set()
        for entry in entries:
            slot_name = self.slot_name(entry.time_slot_id)
            day = entry.day_of_week.value
            occupant = next(
                (row for row in target_entries if row.id not in replaced and same_cell(row, entry)),
                None,
            )
            if occupant is not None:
                if params.handle_conflicts == "skip":
                    simulation.warnings.append(f"Skipped {slot_name} on {day} - slot already occupied")
                    continue
                replaced.add(occupant.id)
                simulation.changes.delete.append(events.build(occupant))
                simulation.warnings.append(f"Overrode existing entry for {slot_name} on {day}")

            if params.preserve_faculty and params.handle_conflicts == "skip" and entry.faculty_id:
                if any(row.faculty_id == entry.faculty_id and same_cell(row, entry) for row in other_entries):
                    simulation.warnings.append(f"Skipped {slot_name} on {day} - faculty conflict")
                    continue

            faculty_id = entry.faculty_id
            if not params.preserve_faculty:
                subject = source_subjects.get(entry.subject_id) if entry.subject_id else None
                target_subject = (
                    schedule.find_subject_by_code(params.target_batch_id, subject.code) if subject else None
                )
                faculty_id = target_subject.primary_faculty_id if target_subject else None
                if faculty_id:
                    events.prime([], extra_user_ids=[faculty_id])

            event = events.build(
                entry,
                event_id=f"clone_{entry.id}",
                batch_id=params.target_batch_id,
                faculty_id=faculty_id,
            )
            simulation.proposed.append(event)
            simulation.changes.create.append(event)

        simulation.existing = [events.build(row) for row in target_entries if row.id not in replaced]
        simulation.existing.extend(events.build(row) for row in other_entries)

        detection = simulation.detect()
        if detection.has_conflicts:
            simulation.conflicts.append(f"{detection.conflict_count} conflicts detected in target schedule")
            if detection.critical_count:
                simulation.conflicts.append(f"{detection.critical_count} critical conflicts that must be resolved")

        if missing_codes:
            listed = ", ".join(missing_codes[:3])
            more = "..." if len(missing_codes) > 3 else ""
            simulation.warnings.append(
                f"{len(missing_codes)} subjects will be created in target batch: {listed}{more}"
            )
        return simulation

    def resource_impact(self, simulation: Simulation) -> ResourceImpact:
        created = simulation.changes.create
        removed = simulation.changes.delete
        faculty = count_by(event.faculty_id for event in created)
        for event in removed:
            if event.faculty_id:
                faculty[event.faculty_id] = faculty.get(event.faculty_id, 0) - 1
        return ResourceImpact(
            faculty_workload=faculty,
            batch_load={self.params.target_batch_id: len(created) - len(removed)} if created or removed else {},
            time_slot_utilization=count_by(event.time_slot_id for event in created),
        )

    def recommendations(self, simulation: Simulation) -> list[str]:
        return [
            "Review faculty workload distribution after cloning",
            "Consider subject prerequisites and semester alignment",
            "Resolve critical conflicts before proceeding"
            if simulation.detection.critical_count
            else "No critical conflicts detected",
        ]

    def throughput(self) -> int:
        return self.settings.bulk_clone_entries_per_minute
