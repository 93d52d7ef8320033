from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from timetable_ops.models.bulk_operation import BulkOperationType, LogLevel, OperationStatus
from timetable_ops.schemas.conflict import CalendarEvent, EventConflict

ConflictPolicy = Literal["skip", "override"]
MoveType = Literal["shift", "map", "redistribute"]


# Request shape


class DateRange(BaseModel):
    start: date
    end: Optional[date] = None


class SourceData(BaseModel):
    batch_id: Optional[str] = Field(default=None, alias="batchId")
    faculty_id: Optional[str] = Field(default=None, alias="facultyId")
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    template_id: Optional[str] = Field(default=None, alias="templateId")
    batch_ids: list[str] = Field(default_factory=list, alias="batchIds")
    subject_ids: list[str] = Field(default_factory=list, alias="subjectIds")

    model_config = ConfigDict(populate_by_name=True)


class TargetData(BaseModel):
    batch_id: Optional[str] = Field(default=None, alias="batchId")
    faculty_id: Optional[str] = Field(default=None, alias="facultyId")
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    day_offset: Optional[int] = Field(default=None, alias="dayOffset")

    model_config = ConfigDict(populate_by_name=True)


class RequestOptions(BaseModel):
    preserve_conflicts: Optional[bool] = Field(default=None, alias="preserveConflicts")
    update_existing: Optional[bool] = Field(default=None, alias="updateExisting")
    create_backup: bool = Field(default=False, alias="createBackup")
    validate_only: bool = Field(default=False, alias="validateOnly")
    dry_run: bool = Field(default=False, alias="dryRun")
    show_conflict_visualization: bool = Field(default=True, alias="showConflictVisualization")
    handle_conflicts: Optional[ConflictPolicy] = Field(default=None, alias="handleConflicts")
    move_type: Optional[MoveType] = Field(default=None, alias="moveType")
    exclude_weekends: Optional[bool] = Field(default=None, alias="excludeWeekends")
    respect_blackouts: Optional[bool] = Field(default=None, alias="respectBlackouts")
    maintain_workload: Optional[bool] = Field(default=None, alias="maintainWorkload")
    preserve_faculty: Optional[bool] = Field(default=None, alias="preserveFaculty")

    model_config = ConfigDict(populate_by_name=True)


class BulkOperationRequest(BaseModel):
    operation: Literal["clone", "faculty_replace", "reschedule", "template_apply", "batch_assign"]
    source_data: SourceData = Field(default_factory=SourceData, alias="sourceData")
    target_data: TargetData = Field(default_factory=TargetData, alias="targetData")
    options: RequestOptions = Field(default_factory=RequestOptions)

    model_config = ConfigDict(populate_by_name=True)


# Typed parameters, persisted as JSON on the operation row


class CloneParams(BaseModel):
    kind: Literal["clone"] = "clone"
    source_batch_id: str = Field(min_length=1, max_length=36)
    target_batch_id: str = Field(min_length=1, max_length=36)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    preserve_faculty: bool = True
    handle_conflicts: ConflictPolicy = "skip"


class FacultyReplaceParams(BaseModel):
    kind: Literal["faculty_replace"] = "faculty_replace"
    current_faculty_id: str = Field(min_length=1, max_length=36)
    new_faculty_id: str = Field(min_length=1, max_length=36)
    batch_ids: list[str] = Field(default_factory=list)
    subject_ids: list[str] = Field(default_factory=list)
    effective_date: Optional[date] = None
    maintain_workload: bool = True


class RescheduleParams(BaseModel):
    kind: Literal["reschedule"] = "reschedule"
    source_start: date
    source_end: date
    target_start: date
    target_end: Optional[date] = None
    batch_ids: list[str] = Field(default_factory=list)
    move_type: MoveType = "shift"
    exclude_weekends: bool = True
    respect_blackouts: bool = True


OperationParams = Annotated[
    Union[CloneParams, FacultyReplaceParams, RescheduleParams],
    Field(discriminator="kind"),
]

OPERATION_PARAMS_ADAPTER: TypeAdapter[OperationParams] = TypeAdapter(OperationParams)

OPERATION_TYPE_BY_KIND: dict[str, BulkOperationType] = {
    "clone": BulkOperationType.clone_timetable,
    "faculty_replace": BulkOperationType.faculty_replace,
    "reschedule": BulkOperationType.bulk_reschedule,
}


def params_to_json(params: OperationParams) -> dict[str, Any]:
    return params.model_dump(mode="json")


def params_from_json(payload: dict[str, Any]) -> OperationParams:
    return OPERATION_PARAMS_ADAPTER.validate_python(payload)


# Results


class ValidationResult(BaseModel):
    is_valid: bool = Field(alias="isValid")
    conflicts: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    affected_count: int = Field(default=0, alias="affectedCount")
    detected_conflicts: list[EventConflict] = Field(default_factory=list, alias="detectedConflicts")
    suggestions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ProposedChanges(BaseModel):
    create: list[CalendarEvent] = Field(default_factory=list)
    update: list[CalendarEvent] = Field(default_factory=list)
    delete: list[CalendarEvent] = Field(default_factory=list)


class ConflictVisualization(BaseModel):
    conflicts: list[EventConflict] = Field(default_factory=list)
    affected_events: list[CalendarEvent] = Field(default_factory=list, alias="affectedEvents")
    proposed_changes: ProposedChanges = Field(default_factory=ProposedChanges, alias="proposedChanges")

    model_config = ConfigDict(populate_by_name=True)


class ResourceImpact(BaseModel):
    faculty_workload: dict[str, int] = Field(default_factory=dict, alias="facultyWorkload")
    batch_load: dict[str, int] = Field(default_factory=dict, alias="batchLoad")
    time_slot_utilization: dict[str, int] = Field(default_factory=dict, alias="timeSlotUtilization")

    model_config = ConfigDict(populate_by_name=True)


class PreviewResults(BaseModel):
    estimated_duration: int = Field(alias="estimatedDuration")
    resource_impact: ResourceImpact = Field(default_factory=ResourceImpact, alias="resourceImpact")
    recommendations: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class BulkOperationResult(BaseModel):
    success: bool
    affected: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: str
    operation_id: str = Field(alias="operationId")
    dry_run: Optional[bool] = Field(default=None, alias="dryRun")
    conflict_visualization: Optional[ConflictVisualization] = Field(default=None, alias="conflictVisualization")
    preview_results: Optional[PreviewResults] = Field(default=None, alias="previewResults")

    model_config = ConfigDict(populate_by_name=True)


# Tracking


class OperationProgress(BaseModel):
    status: OperationStatus
    progress: int = Field(ge=0, le=100)
    message: str
    estimated_time_remaining: Optional[int] = Field(default=None, alias="estimatedTimeRemaining")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    affected_count: Optional[int] = Field(default=None, alias="affectedCount")
    success_count: Optional[int] = Field(default=None, alias="successCount")
    failed_count: Optional[int] = Field(default=None, alias="failedCount")
    errors: Optional[list[str]] = None

    model_config = ConfigDict(populate_by_name=True)


class OperationHistoryItem(BaseModel):
    id: str
    type: BulkOperationType
    status: OperationStatus
    start_time: datetime = Field(alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    summary: str
    affected_count: int = Field(alias="affectedCount")
    success_count: int = Field(alias="successCount")
    failed_count: int = Field(alias="failedCount")
    progress: int
    parameters: Optional[dict[str, Any]] = None
    results: Optional[dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool = Field(alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)


class OperationHistoryPage(BaseModel):
    operations: list[OperationHistoryItem]
    pagination: Pagination


class OperationLogOut(BaseModel):
    id: str
    level: LogLevel
    message: str
    details: Optional[dict[str, Any]] = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class OperationLogPage(BaseModel):
    logs: list[OperationLogOut]
    pagination: Pagination


class OperationLogCreate(BaseModel):
    level: LogLevel
    message: str = Field(min_length=1, max_length=2000)
    details: Optional[dict[str, Any]] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class OperationLogCreated(BaseModel):
    success: bool = True
    log: OperationLogOut


class OperationActionRequest(BaseModel):
    action: Literal["pause", "resume"]


class OperationActionResponse(BaseModel):
    success: bool = True
    message: str
    status: OperationStatus


class CancelResponse(BaseModel):
    success: bool = True
    message: str
