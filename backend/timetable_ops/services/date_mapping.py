from __future__ import annotations

from datetime import date, timedelta
from typing import Literal

from timetable_ops.core.exceptions import BulkOperationInputError

MoveType = Literal["shift", "map", "redistribute"]

SATURDAY = 5


def validate_window(start: date, end: date, label: str) -> None:
    if start >= end:
        raise BulkOperationInputError(
            f"{label} start date must be before its end date",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )


def default_target_end(source_start: date, source_end: date, target_start: date) -> date:
    return target_start + (source_end - source_start)


def shift_date(value: date, source_start: date, target_start: date) -> date:
    return value + (target_start - source_start)


def map_date(value: date, source_start: date, source_end: date, target_start: date, target_end: date) -> date:
    source_span = (source_end - source_start).days
    target_span = (target_end - target_start).days
    if source_span <= 0:
        return target_start
    offset = (value - source_start).days * target_span // source_span
    return target_start + timedelta(days=offset)


def redistribute_date(
    value: date,
    source_start: date,
    source_end: date,
    target_start: date,
    target_end: date,
) -> date:
    source_days = (source_end - source_start).days + 1
    target_days = (target_end - target_start).days + 1
    index = (value - source_start).days * target_days // source_days
    return target_start + timedelta(days=index)


def map_target_date(
    value: date,
    *,
    move_type: MoveType,
    source_start: date,
    source_end: date,
    target_start: date,
    target_end: date,
) -> date:
    if move_type == "shift":
        return shift_date(value, source_start, target_start)
    if move_type == "map":
        return map_date(value, source_start, source_end, target_start, target_end)
    if move_type == "redistribute":
        return redistribute_date(value, source_start, source_end, target_start, target_end)
    raise BulkOperationInputError(f"Unsupported move type: {move_type}")


def is_weekend(value: date) -> bool:
    return value.weekday() >= SATURDAY


def advance_past_weekend(value: date) -> tuple[date, bool]:
    """Return the next weekday on or after ``value`` and whether it moved."""
    moved = value
    while is_weekend(moved):
        moved += timedelta(days=1)
    return moved, moved != value
