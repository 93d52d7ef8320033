from datetime import date

import pytest

from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.bulk_operation import BulkOperationType
from timetable_ops.schemas.bulk_operation import (
    OPERATION_TYPE_BY_KIND,
    BulkOperationRequest,
    CloneParams,
    FacultyReplaceParams,
    RescheduleParams,
    params_from_json,
    params_to_json,
)
from timetable_ops.services.bulk_reschedule import BulkRescheduleHandler
from timetable_ops.services.operation_params import build_handler, operation_params_from_request


def request(payload):
    return BulkOperationRequest.model_validate(payload)


def test_clone_request_defaults_to_preserving_faculty_and_skipping():
    params = operation_params_from_request(
        request({"operation": "clone", "sourceData": {"batchId": "a"}, "targetData": {"batchId": "b"}})
    )

    assert isinstance(params, CloneParams)
    assert params.preserve_faculty is True
    assert params.handle_conflicts == "skip"
    assert params.start_date is None


def test_clone_request_maps_legacy_options():
    params = operation_params_from_request(
        request(
            {
                "operation": "clone",
                "sourceData": {"batchId": "a", "dateRange": {"start": "2025-08-01", "end": "2025-08-31"}},
                "targetData": {"batchId": "b"},
                "options": {"preserveConflicts": False, "updateExisting": True},
            }
        )
    )

    assert params.preserve_faculty is False
    assert params.handle_conflicts == "override"
    assert (params.start_date, params.end_date) == (date(2025, 8, 1), date(2025, 8, 31))


def test_explicit_options_win_over_derived_values():
    params = operation_params_from_request(
        request(
            {
                "operation": "clone",
                "sourceData": {"batchId": "a"},
                "targetData": {"batchId": "b"},
                "options": {"updateExisting": True, "handleConflicts": "skip", "preserveFaculty": False},
            }
        )
    )

    assert params.handle_conflicts == "skip"
    assert params.preserve_faculty is False


def test_clone_request_requires_both_batches():
    with pytest.raises(BulkOperationInputError, match="Source and target batch IDs are required"):
        operation_params_from_request(request({"operation": "clone", "sourceData": {"batchId": "a"}}))


def test_faculty_replace_request_uses_target_batch_and_effective_date():
    params = operation_params_from_request(
        request(
            {
                "operation": "faculty_replace",
                "sourceData": {"facultyId": "f1", "dateRange": {"start": "2025-08-05"}},
                "targetData": {"facultyId": "f2", "batchId": "a"},
            }
        )
    )

    assert isinstance(params, FacultyReplaceParams)
    assert params.batch_ids == ["a"]
    assert params.effective_date == date(2025, 8, 5)
    assert params.maintain_workload is True


def test_faculty_replace_request_requires_both_faculty():
    with pytest.raises(BulkOperationInputError, match="Current and new faculty IDs are required"):
        operation_params_from_request(request({"operation": "faculty_replace", "sourceData": {"facultyId": "f1"}}))


def test_reschedule_request_picks_shift_when_day_offset_given():
    payload = {
        "operation": "reschedule",
        "sourceData": {"dateRange": {"start": "2025-08-04", "end": "2025-08-08"}},
        "targetData": {"dateRange": {"start": "2025-08-11"}, "dayOffset": 7, "batchId": "a"},
    }

    params = operation_params_from_request(request(payload))

    assert isinstance(params, RescheduleParams)
    assert params.move_type == "shift"
    assert params.batch_ids == ["a"]
    assert params.target_end is None

    del payload["targetData"]["dayOffset"]
    assert operation_params_from_request(request(payload)).move_type == "map"


def test_reschedule_request_requires_both_ranges():
    with pytest.raises(BulkOperationInputError, match="Source and target date ranges are required"):
        operation_params_from_request(
            request({"operation": "reschedule", "sourceData": {"dateRange": {"start": "2025-08-04"}}})
        )


@pytest.mark.parametrize("operation", ["template_apply", "batch_assign"])
def test_unsupported_operations_are_rejected(operation):
    with pytest.raises(BulkOperationInputError, match="Unsupported operation"):
        operation_params_from_request(request({"operation": operation}))


def test_params_survive_the_persistence_edge(settings):
    params = RescheduleParams(
        source_start=date(2025, 8, 4),
        source_end=date(2025, 8, 8),
        target_start=date(2025, 8, 11),
        move_type="redistribute",
    )

    stored = params_to_json(params)
    assert stored["kind"] == "reschedule"
    assert stored["source_start"] == "2025-08-04"
    assert params_from_json(stored) == params
    assert OPERATION_TYPE_BY_KIND[params.kind] == BulkOperationType.bulk_reschedule
    assert isinstance(build_handler(params, settings), BulkRescheduleHandler)
