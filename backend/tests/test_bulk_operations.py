from timetable_ops.models.bulk_operation import LogLevel, OperationStatus
from timetable_ops.models.timetable_entry import DayOfWeek
from timetable_ops.schemas.bulk_operation import CloneParams
from timetable_ops.services.bulk_operations import loop_progress
from timetable_ops.services.clone_timetable import CloneTimetableHandler
from timetable_ops.services.operation_outcomes import Failed, OperationTally, Skipped, Succeeded


def clone_params(seed):
    return CloneParams(source_batch_id=seed.batch_a, target_batch_id=seed.batch_b)


def test_loop_progress_spans_setup_to_ninety():
    assert loop_progress(0, 4) == 10
    assert loop_progress(1, 3) == 36
    assert loop_progress(4, 4) == 90


def test_tally_counts_skips_as_failures_with_warnings():
    tally = (
        OperationTally()
        .record(Succeeded(("Moved to alternative time slot: Period 2",)))
        .record(Skipped("Slot occupied"))
        .record(Failed("No alternative time slots available"))
    )

    assert (tally.successful, tally.failed, tally.clean) == (1, 2, False)
    assert tally.errors == ("No alternative time slots available",)
    assert tally.warnings == ("Moved to alternative time slot: Period 2", "Slot occupied")


def test_execute_reports_progress_and_logs(seed, add_entry, service, tracker, monkeypatch):
    cells = [
        (seed.p1, DayOfWeek.monday),
        (seed.p2, DayOfWeek.monday),
        (seed.p3, DayOfWeek.monday),
        (seed.p4, DayOfWeek.monday),
        (seed.p1, DayOfWeek.tuesday),
        (seed.p2, DayOfWeek.tuesday),
    ]
    for slot, day in cells:
        add_entry(seed.batch_a, slot, day, faculty_id=seed.f1)

    recorded = []
    original = tracker.update_progress

    def recording(operation_id, progress):
        recorded.append(progress)
        return original(operation_id, progress)

    monkeypatch.setattr(tracker, "update_progress", recording)

    result = service.execute(clone_params(seed), seed.admin)

    assert result.successful == 6
    assert recorded == [10, 76, 90]

    progress = tracker.get_progress(result.operation_id)
    assert progress.status == OperationStatus.completed
    assert progress.progress == 100
    assert progress.message == "Clone operation completed: 6 successful, 0 failed"
    assert (progress.affected_count, progress.success_count, progress.failed_count) == (6, 6, 0)

    logs = tracker.list_logs(result.operation_id).logs
    assert logs[-1].message == "Starting timetable clone from batch batch-a to batch-b"
    assert logs[-1].details["kind"] == "clone"
    operation = tracker.get(result.operation_id)
    assert operation.user_id == seed.admin
    assert operation.parameters["source_batch_id"] == seed.batch_a
    assert operation.results["errors"] == []


def test_unexpected_error_rolls_back_schedule_writes(seed, add_entry, fetch_entries, service, tracker, monkeypatch):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1, subject_id=seed.design)
    add_entry(seed.batch_a, seed.p2, DayOfWeek.monday, faculty_id=seed.f1, subject_id=seed.design)

    applied = []
    original = CloneTimetableHandler.apply

    def flaky(self, schedule, entry):
        if applied:
            raise RuntimeError("storage unavailable")
        applied.append(entry.id)
        return original(self, schedule, entry)

    monkeypatch.setattr(CloneTimetableHandler, "apply", flaky)

    result = service.execute(clone_params(seed), seed.admin)

    assert result.success is False
    assert result.errors == ["storage unavailable"]
    assert result.summary == "Clone operation failed"
    assert len(applied) == 1
    assert fetch_entries(seed.batch_b) == []

    operation = tracker.get(result.operation_id)
    assert operation.status == OperationStatus.failed
    assert operation.error_log == "storage unavailable"
    latest = tracker.list_logs(result.operation_id).logs[0]
    assert latest.level == LogLevel.error
    assert latest.message == "Clone operation failed: storage unavailable"


def test_cancel_before_processing_leaves_schedule_untouched(seed, add_entry, fetch_entries, service, tracker, monkeypatch):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    original = tracker.start

    def start_then_cancel(operation_id, message, details=None):
        started = original(operation_id, message, details)
        tracker.cancel(operation_id)
        return started

    monkeypatch.setattr(tracker, "start", start_then_cancel)

    result = service.execute(clone_params(seed), seed.admin)

    assert result.success is False
    assert result.errors == ["Operation cancelled by user"]
    assert result.summary == "Clone operation cancelled"
    assert fetch_entries(seed.batch_b) == []
    assert tracker.get(result.operation_id).status == OperationStatus.cancelled


def test_cancel_during_processing_keeps_applied_changes(seed, add_entry, fetch_entries, service, tracker, monkeypatch):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    original = tracker.update_progress

    def cancel_mid_loop(operation_id, progress):
        if progress > 10:
            tracker.cancel(operation_id)
        return original(operation_id, progress)

    monkeypatch.setattr(tracker, "update_progress", cancel_mid_loop)

    result = service.execute(clone_params(seed), seed.admin)

    assert result.successful == 1
    assert "Operation was cancelled while running; changes already applied were kept" in result.warnings
    assert len(fetch_entries(seed.batch_b)) == 1
    operation = tracker.get(result.operation_id)
    assert operation.status == OperationStatus.cancelled
    assert operation.results is None
