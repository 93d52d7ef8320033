import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from timetable_ops.api.deps import get_bulk_service, get_current_user, get_tracker, require_roles
from timetable_ops.core.config import get_settings
from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.bulk_operation import BulkOperation, LogLevel, OperationStatus
from timetable_ops.models.user import User, UserRole
from timetable_ops.schemas.bulk_operation import (
    BulkOperationRequest,
    BulkOperationResult,
    CancelResponse,
    OperationActionRequest,
    OperationActionResponse,
    OperationHistoryPage,
    OperationLogCreate,
    OperationLogCreated,
    OperationLogPage,
    OperationProgress,
    ValidationResult,
)
from timetable_ops.services.bulk_operations import BulkOperationService
from timetable_ops.services.operation_params import operation_params_from_request
from timetable_ops.services.operation_tracker import OperationTracker

logger = logging.getLogger(__name__)

router = APIRouter()

settings = get_settings()

OPERATORS = (UserRole.admin, UserRole.scheduler)


def _is_admin(user: User) -> bool:
    return user.role == UserRole.admin


def _load_visible_operation(tracker: OperationTracker, operation_id: str, user: User) -> BulkOperation:
    operation = tracker.get(operation_id)
    if operation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Operation not found")
    if not _is_admin(user) and operation.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return operation


@router.post("", response_model=None)
def run_bulk_operation(
    payload: BulkOperationRequest,
    current_user: User = Depends(require_roles(*OPERATORS)),
    service: BulkOperationService = Depends(get_bulk_service),
) -> BulkOperationResult | ValidationResult:
    params = operation_params_from_request(payload)
    options = payload.options

    if options.dry_run:
        return service.preview(params, show_visualization=options.show_conflict_visualization)

    validation = service.validate(params)
    if options.validate_only:
        return validation
    if not validation.is_valid:
        raise BulkOperationInputError(
            "Validation failed",
            details={
                "conflicts": validation.conflicts,
                "warnings": validation.warnings,
                "suggestions": validation.suggestions,
                "detectedConflicts": [
                    item.model_dump(mode="json", by_alias=True) for item in validation.detected_conflicts
                ],
            },
        )
    return service.execute(params, current_user.id)


@router.post("/validate", response_model=ValidationResult)
def validate_bulk_operation(
    payload: BulkOperationRequest,
    _: User = Depends(require_roles(*OPERATORS)),
    service: BulkOperationService = Depends(get_bulk_service),
) -> ValidationResult:
    return service.validate(operation_params_from_request(payload))


@router.post("/dry-run", response_model=BulkOperationResult)
def preview_bulk_operation(
    payload: BulkOperationRequest,
    _: User = Depends(require_roles(*OPERATORS)),
    service: BulkOperationService = Depends(get_bulk_service),
) -> BulkOperationResult:
    params = operation_params_from_request(payload)
    return service.preview(params, show_visualization=payload.options.show_conflict_visualization)


@router.get("", response_model=OperationHistoryPage)
def list_operation_history(
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    operation_status: OperationStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    tracker: OperationTracker = Depends(get_tracker),
) -> OperationHistoryPage:
    page_size = min(limit or settings.bulk_history_default_limit, settings.bulk_history_max_limit)
    return tracker.get_history(
        user_id=None if _is_admin(current_user) else current_user.id,
        status=operation_status,
        limit=page_size,
        offset=offset,
    )


@router.get("/{operation_id}", response_model=OperationProgress)
def get_operation_progress(
    operation_id: str,
    current_user: User = Depends(get_current_user),
    tracker: OperationTracker = Depends(get_tracker),
) -> OperationProgress:
    _load_visible_operation(tracker, operation_id, current_user)
    progress = tracker.get_progress(operation_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Operation not found")
    return progress


@router.delete("/{operation_id}", response_model=CancelResponse)
def cancel_operation(
    operation_id: str,
    current_user: User = Depends(get_current_user),
    tracker: OperationTracker = Depends(get_tracker),
) -> CancelResponse:
    _load_visible_operation(tracker, operation_id, current_user)
    if not tracker.cancel(operation_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to cancel operation")
    logger.info("User %s cancelled operation %s", current_user.id, operation_id)
    return CancelResponse(message="Operation cancelled successfully")


@router.patch("/{operation_id}", response_model=OperationActionResponse)
def change_operation_state(
    operation_id: str,
    payload: OperationActionRequest,
    _: User = Depends(require_roles(UserRole.admin)),
    tracker: OperationTracker = Depends(get_tracker),
) -> OperationActionResponse:
    if payload.action == "pause":
        new_status = tracker.pause(operation_id)
        return OperationActionResponse(message="Operation paused", status=new_status)
    new_status = tracker.resume(operation_id)
    return OperationActionResponse(message="Operation resumed", status=new_status)


@router.get("/{operation_id}/logs", response_model=OperationLogPage)
def list_operation_logs(
    operation_id: str,
    level: LogLevel | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    tracker: OperationTracker = Depends(get_tracker),
) -> OperationLogPage:
    _load_visible_operation(tracker, operation_id, current_user)
    page_size = min(limit or settings.bulk_log_page_limit, settings.bulk_history_max_limit)
    return tracker.list_logs(operation_id, level=level, limit=page_size, offset=offset)


@router.post("/{operation_id}/logs", response_model=OperationLogCreated, status_code=status.HTTP_201_CREATED)
def append_operation_log(
    operation_id: str,
    payload: OperationLogCreate,
    _: User = Depends(require_roles(UserRole.admin)),
    tracker: OperationTracker = Depends(get_tracker),
) -> OperationLogCreated:
    record = tracker.annotate(operation_id, payload.level, payload.message, payload.details)
    return OperationLogCreated(log=record)
