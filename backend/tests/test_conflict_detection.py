from datetime import datetime
from itertools import product

from timetable_ops.schemas.conflict import CalendarEvent
from timetable_ops.services.conflict_detection import detect_event_conflicts


def make_event(event_id, *, day="2025-08-04", start="09:00", end="10:00", batch="b1", faculty="f1", recurring=False):
    return CalendarEvent(
        id=event_id,
        start=datetime.fromisoformat(f"{day}T{start}"),
        end=datetime.fromisoformat(f"{day}T{end}"),
        batch_id=batch,
        faculty_id=faculty,
        batch_name=batch.upper(),
        faculty_name=faculty.upper() if faculty else None,
        recurring=recurring,
    )


def test_shared_faculty_overlap_is_critical():
    result = detect_event_conflicts(
        [
            make_event("e1", batch="b1", faculty="f1"),
            make_event("e2", batch="b2", faculty="f1", start="09:30", end="10:30"),
        ]
    )

    assert result.has_conflicts
    assert result.conflict_count == 1
    assert result.critical_count == 1
    conflict = result.conflicts[0]
    assert conflict.dimension == "faculty"
    assert conflict.severity == "critical"
    assert {conflict.event_id, conflict.conflicting_event_id} == {"e1", "e2"}
    assert conflict.message == 'Faculty "F1" has overlapping teaching assignments'


def test_shared_batch_overlap_is_medium():
    result = detect_event_conflicts(
        [
            make_event("e1", batch="b1", faculty="f1"),
            make_event("e2", batch="b1", faculty="f2"),
        ]
    )

    assert result.conflict_count == 1
    assert result.critical_count == 0
    assert result.conflicts[0].dimension == "batch"
    assert result.conflicts[0].severity == "medium"
    assert result.conflicts[0].message == 'Batch "B1" has overlapping classes'


def test_sharing_faculty_and_batch_reports_both_dimensions():
    result = detect_event_conflicts([make_event("e1"), make_event("e2")])

    assert result.conflict_count == 2
    assert sorted(conflict.dimension for conflict in result.conflicts) == ["batch", "faculty"]
    assert result.involved_event_ids() == {"e1", "e2"}


def test_overlap_without_shared_resource_is_not_a_conflict():
    result = detect_event_conflicts(
        [
            make_event("e1", batch="b1", faculty="f1"),
            make_event("e2", batch="b2", faculty="f2"),
        ]
    )

    assert not result.has_conflicts
    assert result.conflicts == []


def test_back_to_back_sessions_do_not_overlap():
    result = detect_event_conflicts(
        [
            make_event("e1", start="09:00", end="10:00"),
            make_event("e2", start="10:00", end="11:00"),
        ]
    )

    assert not result.has_conflicts


def test_same_weekday_in_different_weeks_does_not_conflict():
    result = detect_event_conflicts(
        [
            make_event("e1", day="2025-08-04"),
            make_event("e2", day="2025-08-11"),
        ]
    )

    assert not result.has_conflicts


def test_weekly_event_conflicts_with_dated_event_on_same_weekday():
    result = detect_event_conflicts(
        [
            make_event("weekly", day="2024-01-01", recurring=True),
            make_event("dated", day="2025-08-04", batch="b2"),
        ]
    )

    assert result.conflict_count == 1
    assert result.conflicts[0].dimension == "faculty"


def test_conflict_iff_overlap_and_shared_faculty_or_batch():
    windows = [("09:00", "10:00"), ("09:30", "10:30"), ("10:00", "11:00")]
    for (first_window, second_window, batch, faculty) in product(windows, windows, ["b1", "b2"], ["f1", "f2"]):
        first = make_event("x", start=first_window[0], end=first_window[1], batch="b1", faculty="f1")
        second = make_event("y", start=second_window[0], end=second_window[1], batch=batch, faculty=faculty)
        overlaps = first_window[0] < second_window[1] and second_window[0] < first_window[1]
        shares = batch == "b1" or faculty == "f1"

        result = detect_event_conflicts([first, second])

        assert result.has_conflicts == (overlaps and shares)


def late_event(event_id, *, day="2025-08-04", start="23:00", end_day="2025-08-05", end="00:00", recurring=False):
    return CalendarEvent(
        id=event_id,
        start=datetime.fromisoformat(f"{day}T{start}"),
        end=datetime.fromisoformat(f"{end_day}T{end}"),
        batch_id=event_id,
        faculty_id="f1",
        recurring=recurring,
    )


def test_events_ending_at_midnight_still_overlap():
    result = detect_event_conflicts([late_event("e1"), late_event("e2", start="23:30")])

    assert result.critical_count == 1
    assert result.conflicts[0].dimension == "faculty"


def test_recurring_event_crossing_midnight_overlaps_dated_event():
    result = detect_event_conflicts(
        [
            late_event("weekly", day="2024-01-01", end_day="2024-01-02", end="00:30", recurring=True),
            late_event("dated", start="23:45"),
        ]
    )

    assert result.critical_count == 1


def test_dated_events_on_different_weeks_do_not_overlap_at_night():
    result = detect_event_conflicts([late_event("e1"), late_event("e2", day="2025-08-11", end_day="2025-08-12")])

    assert result.has_conflicts is False
