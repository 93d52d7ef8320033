from __future__ import annotations

from timetable_ops.core.config import Settings
from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.schemas.bulk_operation import (
    BulkOperationRequest,
    CloneParams,
    FacultyReplaceParams,
    OperationParams,
    RescheduleParams,
)
from timetable_ops.services.bulk_handler import BulkOperationHandler
from timetable_ops.services.bulk_reschedule import BulkRescheduleHandler
from timetable_ops.services.clone_timetable import CloneTimetableHandler
from timetable_ops.services.faculty_replace import FacultyReplaceHandler

HANDLERS: dict[str, type[BulkOperationHandler]] = {
    "clone": CloneTimetableHandler,
    "faculty_replace": FacultyReplaceHandler,
    "reschedule": BulkRescheduleHandler,
}


def build_handler(params: OperationParams, settings: Settings) -> BulkOperationHandler:
    return HANDLERS[params.kind](params, settings)


def _pick(explicit, derived):
    return derived if explicit is None else explicit


def operation_params_from_request(request: BulkOperationRequest) -> OperationParams:
    """Translate the external request shape into typed operation parameters."""
    source, target, options = request.source_data, request.target_data, request.options

    if request.operation == "clone":
        if not source.batch_id or not target.batch_id:
            raise BulkOperationInputError("Source and target batch IDs are required")
        date_range = source.date_range
        return CloneParams(
            source_batch_id=source.batch_id,
            target_batch_id=target.batch_id,
            start_date=date_range.start if date_range else None,
            end_date=date_range.end if date_range else None,
            preserve_faculty=_pick(options.preserve_faculty, options.preserve_conflicts is not False),
            handle_conflicts=_pick(options.handle_conflicts, "override" if options.update_existing else "skip"),
        )

    if request.operation == "faculty_replace":
        if not source.faculty_id or not target.faculty_id:
            raise BulkOperationInputError("Current and new faculty IDs are required")
        batch_ids = list(source.batch_ids)
        if not batch_ids and target.batch_id:
            batch_ids = [target.batch_id]
        return FacultyReplaceParams(
            current_faculty_id=source.faculty_id,
            new_faculty_id=target.faculty_id,
            batch_ids=batch_ids,
            subject_ids=list(source.subject_ids),
            effective_date=source.date_range.start if source.date_range else None,
            maintain_workload=_pick(options.maintain_workload, True),
        )

    if request.operation == "reschedule":
        source_range, target_range = source.date_range, target.date_range
        if source_range is None or source_range.end is None or target_range is None:
            raise BulkOperationInputError("Source and target date ranges are required")
        batch_ids = list(source.batch_ids)
        if not batch_ids:
            fallback = target.batch_id or source.batch_id
            batch_ids = [fallback] if fallback else []
        return RescheduleParams(
            source_start=source_range.start,
            source_end=source_range.end,
            target_start=target_range.start,
            target_end=target_range.end,
            batch_ids=batch_ids,
            move_type=_pick(options.move_type, "shift" if target.day_offset is not None else "map"),
            exclude_weekends=_pick(options.exclude_weekends, True),
            respect_blackouts=_pick(options.respect_blackouts, True),
        )

    raise BulkOperationInputError(
        "Unsupported operation",
        details={"operation": request.operation},
    )
