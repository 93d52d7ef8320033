from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Tuple

from timetable_ops.schemas.conflict import CalendarEvent, ConflictResult, EventConflict


def _same_day(first: CalendarEvent, second: CalendarEvent) -> bool:
    if first.recurring or second.recurring:
        return True
    return first.start.date() == second.start.date()


def _offsets_from_midnight(event: CalendarEvent) -> Tuple[timedelta, timedelta]:
    midnight = datetime.combine(event.start.date(), time.min, tzinfo=event.start.tzinfo)
    start = event.start - midnight
    return start, start + (event.end - event.start)


def _overlaps(first: CalendarEvent, second: CalendarEvent) -> bool:
    if not (first.recurring or second.recurring):
        return first.start < second.end and second.start < first.end
    # Recurring anchors only fix the weekday, so line events up by time of day.
    first_start, first_end = _offsets_from_midnight(first)
    second_start, second_end = _offsets_from_midnight(second)
    return first_start < second_end and second_start < first_end


def detect_event_conflicts(events: Iterable[CalendarEvent]) -> ConflictResult:
    """Find faculty and batch double bookings among calendar events.

    Events are bucketed by weekday and compared pairwise inside a bucket. A pair
    conflicts only when the intervals overlap and the events share a faculty
    (critical) or a batch (medium); sharing both yields one conflict per
    dimension. Pure function, nothing is read or written.
    """
    by_weekday: Dict[int, List[CalendarEvent]] = defaultdict(list)
    for event in events:
        by_weekday[event.start.weekday()].append(event)

    conflicts: List[EventConflict] = []
    for weekday in sorted(by_weekday):
        day_events = by_weekday[weekday]
        n = len(day_events)
        for i in range(n):
            first = day_events[i]
            for j in range(i + 1, n):
                second = day_events[j]
                if not _same_day(first, second) or not _overlaps(first, second):
                    continue

                if first.faculty_id and first.faculty_id == second.faculty_id:
                    faculty_name = first.faculty_name or first.faculty_id
                    conflicts.append(
                        EventConflict(
                            event_id=first.id,
                            conflicting_event_id=second.id,
                            dimension="faculty",
                            severity="critical",
                            message=f'Faculty "{faculty_name}" has overlapping teaching assignments',
                        )
                    )
                if first.batch_id == second.batch_id:
                    batch_name = first.batch_name or first.batch_id
                    conflicts.append(
                        EventConflict(
                            event_id=first.id,
                            conflicting_event_id=second.id,
                            dimension="batch",
                            severity="medium",
                            message=f'Batch "{batch_name}" has overlapping classes',
                        )
                    )

    critical_count = sum(1 for conflict in conflicts if conflict.severity == "critical")
    return ConflictResult(
        has_conflicts=bool(conflicts),
        conflict_count=len(conflicts),
        critical_count=critical_count,
        conflicts=conflicts,
    )
