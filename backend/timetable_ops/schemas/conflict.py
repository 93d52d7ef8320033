from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CalendarEvent(BaseModel):
    id: str
    title: str = ""
    start: datetime
    end: datetime
    batch_id: str = Field(alias="batchId")
    faculty_id: Optional[str] = Field(default=None, alias="facultyId")
    subject_id: Optional[str] = Field(default=None, alias="subjectId")
    time_slot_id: Optional[str] = Field(default=None, alias="timeSlotId")
    batch_name: Optional[str] = Field(default=None, alias="batchName")
    faculty_name: Optional[str] = Field(default=None, alias="facultyName")
    # Weekly entries occupy their weekday in every week, not just the anchor date.
    recurring: bool = False

    model_config = ConfigDict(populate_by_name=True)


class EventConflict(BaseModel):
    event_id: str = Field(alias="eventId")
    conflicting_event_id: str = Field(alias="conflictingEventId")
    dimension: Literal["faculty", "batch"]
    severity: Literal["critical", "medium"]
    message: str

    model_config = ConfigDict(populate_by_name=True)


class ConflictResult(BaseModel):
    has_conflicts: bool = Field(default=False, alias="hasConflicts")
    conflict_count: int = Field(default=0, alias="conflictCount")
    critical_count: int = Field(default=0, alias="criticalCount")
    conflicts: List[EventConflict] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def involved_event_ids(self) -> set[str]:
        ids: set[str] = set()
        for conflict in self.conflicts:
            ids.add(conflict.event_id)
            ids.add(conflict.conflicting_event_id)
        return ids
