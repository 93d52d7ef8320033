from __future__ import annotations

from typing import Any

from timetable_ops.core.config import Settings
from timetable_ops.models.bulk_operation import BulkOperationType
from timetable_ops.models.time_slot import TimeSlot
from timetable_ops.models.timetable_entry import TimetableEntry
from timetable_ops.schemas.bulk_operation import ResourceImpact
from timetable_ops.services.calendar_events import Simulation
from timetable_ops.services.operation_outcomes import EntryOutcome, OperationTally
from timetable_ops.services.schedule_repository import ScheduleRepository


class BulkOperationHandler:
    """Per-kind rules shared by validation, dry runs and execution.

    A handler instance is bound to one request. ``resolve`` must run first; it
    checks the referenced records and keeps what later steps need. Execution
    then calls ``load_entries``, ``prepare``, ``apply`` per entry and
    ``finalize``, all against the same repository and transaction. Validation
    and previews call ``load_entries`` and ``simulate`` instead.
    """

    operation_type: BulkOperationType
    label: str = "Bulk operation"
    preview_verb: str = "process"
    empty_message: str = "No timetable entries found for the specified criteria"
    empty_summary: str = "No entries to process"
    suggestions: tuple[str, ...] = ()

    def __init__(self, params, settings: Settings):
        self.params = params
        self.settings = settings
        self.slots: dict[str, TimeSlot] = {}

    def start_message(self) -> str:
        raise NotImplementedError

    def resolve(self, schedule: ScheduleRepository) -> None:
        raise NotImplementedError

    def load_entries(self, schedule: ScheduleRepository) -> list[TimetableEntry]:
        raise NotImplementedError

    def prepare(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> list[str]:
        return []

    def apply(self, schedule: ScheduleRepository, entry: TimetableEntry) -> EntryOutcome:
        raise NotImplementedError

    def finalize(self, schedule: ScheduleRepository, tally: OperationTally) -> list[str]:
        return []

    def summary(self, tally: OperationTally, affected: int) -> str:
        raise NotImplementedError

    def results(self, tally: OperationTally, affected: int) -> dict[str, Any]:
        raise NotImplementedError

    def simulate(self, schedule: ScheduleRepository, entries: list[TimetableEntry]) -> Simulation:
        raise NotImplementedError

    def resource_impact(self, simulation: Simulation) -> ResourceImpact:
        return ResourceImpact()

    def recommendations(self, simulation: Simulation) -> list[str]:
        return []

    def throughput(self) -> int:
        raise NotImplementedError

    def slot_name(self, time_slot_id: str) -> str:
        slot = self.slots.get(time_slot_id)
        return slot.name if slot else time_slot_id


def count_by(values) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts
