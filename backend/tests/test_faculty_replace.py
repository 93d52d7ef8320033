from datetime import date

from timetable_ops.models.bulk_operation import OperationStatus
from timetable_ops.models.faculty_blackout import FacultyBlackoutPeriod
from timetable_ops.models.subject import Subject
from timetable_ops.models.timetable_entry import DayOfWeek
from timetable_ops.schemas.bulk_operation import FacultyReplaceParams


def replace_params(seed, **overrides):
    values = dict(current_faculty_id=seed.f1, new_faculty_id=seed.f2)
    values.update(overrides)
    return FacultyReplaceParams(**values)


def test_replacement_updates_faculty_notes_and_subject_owner(seed, add_entry, fetch_entries, service, schedule_sessions):
    entry_id = add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1, subject_id=seed.design)

    result = service.execute(replace_params(seed), seed.admin)

    assert result.success is True
    assert (result.affected, result.successful, result.failed) == (1, 1, 0)
    assert result.summary == (
        "Successfully replaced faculty in 1 out of 1 timetable entries from Faculty One to Faculty Two"
    )
    entry = {row.id: row for row in fetch_entries(seed.batch_a)}[entry_id]
    assert entry.faculty_id == seed.f2
    assert entry.notes == "Faculty changed from Faculty One to Faculty Two"
    with schedule_sessions() as db:
        assert db.get(Subject, seed.design).primary_faculty_id == seed.f2


def test_replacement_skips_slots_where_new_faculty_is_busy(seed, add_entry, fetch_entries, service, tracker):
    entry_id = add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    add_entry(seed.batch_b, seed.p1, DayOfWeek.monday, faculty_id=seed.f2)

    result = service.execute(replace_params(seed), seed.admin)

    assert result.success is False
    assert (result.affected, result.successful, result.failed) == (1, 0, 1)
    assert "New faculty has 1 conflicting time slots" in result.warnings
    assert "Conflict: Period 1 on monday with Batch B" in result.warnings
    assert "Skipped Period 1 on monday - new faculty has conflict" in result.warnings
    assert result.errors == []
    entry = {row.id: row for row in fetch_entries(seed.batch_a)}[entry_id]
    assert entry.faculty_id == seed.f1
    assert tracker.get(result.operation_id).status == OperationStatus.completed


def test_replacement_never_double_books_new_faculty(seed, add_entry, fetch_entries, service):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    add_entry(seed.batch_a, seed.p2, DayOfWeek.monday, faculty_id=seed.f1)
    add_entry(seed.batch_c, seed.p3, on_date=date(2025, 8, 5), faculty_id=seed.f1)
    add_entry(seed.batch_b, seed.p2, DayOfWeek.monday, faculty_id=seed.f2)
    add_entry(seed.batch_b, seed.p3, DayOfWeek.tuesday, faculty_id=seed.f2)

    service.execute(replace_params(seed), seed.admin)

    assigned = [row for row in fetch_entries() if row.faculty_id == seed.f2]
    for index, first in enumerate(assigned):
        for second in assigned[index + 1:]:
            same_cell = first.time_slot_id == second.time_slot_id and first.day_of_week == second.day_of_week
            same_day = first.date is None or second.date is None or first.date == second.date
            assert not (same_cell and same_day)


def test_replacement_warns_when_new_workload_grows(seed, add_entry, service):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    add_entry(seed.batch_b, seed.p2, DayOfWeek.tuesday, faculty_id=seed.f2)
    add_entry(seed.batch_c, seed.p3, DayOfWeek.wednesday, faculty_id=seed.f2)

    result = service.execute(replace_params(seed), seed.admin)

    assert result.successful == 1
    assert "New faculty workload significantly increased - consider redistribution" in result.warnings

    quiet = service.execute(replace_params(seed, current_faculty_id=seed.f2, new_faculty_id=seed.f3, maintain_workload=False), seed.admin)
    assert not any("workload" in warning for warning in quiet.warnings)


def test_replacement_rejects_same_faculty(seed, service, tracker):
    result = service.execute(replace_params(seed, new_faculty_id=seed.f1), seed.admin)

    assert result.success is False
    assert result.errors == ["Current and new faculty cannot be the same"]
    assert result.summary == "Faculty replacement failed"
    assert tracker.get(result.operation_id).status == OperationStatus.failed


def test_replacement_requires_faculty_role(seed, service):
    result = service.execute(replace_params(seed, new_faculty_id=seed.admin), seed.admin)

    assert result.errors == ["New faculty not found or invalid"]


def test_effective_date_limits_replacement_to_later_dated_entries(seed, add_entry, fetch_entries, service):
    weekly = add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    early = add_entry(seed.batch_a, seed.p2, on_date=date(2025, 8, 4), faculty_id=seed.f1)
    late = add_entry(seed.batch_a, seed.p2, on_date=date(2025, 8, 18), faculty_id=seed.f1)

    result = service.execute(replace_params(seed, effective_date=date(2025, 8, 10)), seed.admin)

    assert result.affected == 1
    faculty_by_id = {row.id: row.faculty_id for row in fetch_entries(seed.batch_a)}
    assert faculty_by_id == {weekly: seed.f1, early: seed.f1, late: seed.f2}


def test_replacement_scoped_to_batches(seed, add_entry, fetch_entries, service):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    other = add_entry(seed.batch_c, seed.p2, DayOfWeek.monday, faculty_id=seed.f1)

    result = service.execute(replace_params(seed, batch_ids=[seed.batch_a]), seed.admin)

    assert result.affected == 1
    assert fetch_entries(seed.batch_c)[0].id == other
    assert fetch_entries(seed.batch_c)[0].faculty_id == seed.f1


def test_validation_flags_new_faculty_clash(seed, add_entry, service):
    add_entry(seed.batch_a, seed.p1, DayOfWeek.monday, faculty_id=seed.f1)
    add_entry(seed.batch_b, seed.p1, DayOfWeek.monday, faculty_id=seed.f2)

    validation = service.validate(replace_params(seed))

    assert validation.is_valid is False
    assert validation.conflicts == ["New faculty has 1 schedule conflicts"]
    assert validation.detected_conflicts[0].severity == "critical"
    assert "Review new faculty workload distribution" in validation.suggestions


def test_validation_warns_about_new_faculty_blackouts(seed, add_entry, service, schedule_sessions):
    add_entry(seed.batch_a, seed.p1, on_date=date(2025, 8, 5), faculty_id=seed.f1)
    with schedule_sessions() as db:
        db.add(
            FacultyBlackoutPeriod(
                faculty_id=seed.f2,
                start_date=date(2025, 8, 1),
                end_date=date(2025, 8, 10),
                reason="Conference",
            )
        )
        db.commit()

    validation = service.validate(replace_params(seed))

    assert validation.is_valid is True
    assert validation.warnings == ["1 entries fall within new faculty blackout periods"]

    result = service.execute(replace_params(seed), seed.admin)
    assert "1 entries fall within new faculty's blackout periods" in result.warnings
    assert result.successful == 1
