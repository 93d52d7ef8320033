from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetable_ops.core.exceptions import InvalidOperationStateError, ResourceNotFoundError
from timetable_ops.models.bulk_operation import (
    BulkOperation,
    BulkOperationType,
    LogLevel,
    OperationLog,
    OperationStatus,
)
from timetable_ops.schemas.bulk_operation import (
    OperationHistoryItem,
    OperationHistoryPage,
    OperationLogOut,
    OperationLogPage,
    OperationProgress,
    Pagination,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    OperationStatus.pending: frozenset(
        {OperationStatus.running, OperationStatus.cancelled, OperationStatus.failed}
    ),
    OperationStatus.running: frozenset(
        {
            OperationStatus.paused,
            OperationStatus.completed,
            OperationStatus.failed,
            OperationStatus.cancelled,
        }
    ),
    OperationStatus.paused: frozenset(
        {OperationStatus.running, OperationStatus.completed, OperationStatus.failed}
    ),
}

CANCELLABLE = frozenset({OperationStatus.pending, OperationStatus.running})

DEFAULT_PROGRESS_MESSAGE = "Processing timetable entries..."

HISTORY_FALLBACK_SUMMARY: dict[BulkOperationType, str] = {
    BulkOperationType.clone_timetable: "Timetable clone operation",
    BulkOperationType.faculty_replace: "Faculty replacement operation",
    BulkOperationType.bulk_reschedule: "Bulk reschedule operation",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def can_transition(current: OperationStatus, requested: OperationStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


class OperationTracker:
    """Persistent state machine for bulk operations and their log trail.

    Every call runs in its own short transaction so progress stays visible to
    pollers while an operation's schedule transaction is still open. Terminal
    operations are never written again: the write helpers return ``False``
    instead of touching them.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _append_log(
        db: Session,
        operation_id: str,
        level: LogLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> OperationLog:
        last = db.execute(
            select(func.max(OperationLog.sequence)).where(OperationLog.operation_id == operation_id)
        ).scalar_one()
        record = OperationLog(
            operation_id=operation_id,
            sequence=(last or 0) + 1,
            level=level,
            message=message,
            details=details,
            timestamp=_utc_now(),
        )
        db.add(record)
        db.flush()
        return record

    # Lifecycle

    def create(self, operation_type: BulkOperationType, user_id: str, parameters: dict[str, Any]) -> str:
        with self._session() as db:
            operation = BulkOperation(
                type=operation_type,
                status=OperationStatus.pending,
                progress=0,
                user_id=user_id,
                parameters=parameters,
                started_at=_utc_now(),
            )
            db.add(operation)
            db.flush()
            logger.info("Created %s operation %s for user %s", operation_type.value, operation.id, user_id)
            return operation.id

    def start(self, operation_id: str, message: str, details: dict[str, Any] | None = None) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None or not can_transition(operation.status, OperationStatus.running):
                return False
            operation.status = OperationStatus.running
            self._append_log(db, operation_id, LogLevel.info, message, details)
            return True

    def log(
        self,
        operation_id: str,
        level: LogLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None or operation.status.is_terminal:
                return False
            self._append_log(db, operation_id, level, message, details)
            return True

    def annotate(
        self,
        operation_id: str,
        level: LogLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> OperationLogOut:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None:
                raise ResourceNotFoundError("Operation", operation_id)
            if operation.status.is_terminal:
                raise InvalidOperationStateError(operation_id, operation.status.value, "log")
            record = self._append_log(db, operation_id, level, message, details)
            return OperationLogOut.model_validate(record)

    def update_progress(self, operation_id: str, progress: int) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None or operation.status.is_terminal:
                return False
            operation.progress = max(0, min(100, int(progress)))
            return True

    def complete(
        self,
        operation_id: str,
        *,
        affected: int,
        successful: int,
        failed: int,
        results: dict[str, Any],
        message: str,
        details: dict[str, Any] | None = None,
    ) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None or not can_transition(operation.status, OperationStatus.completed):
                return False
            operation.status = OperationStatus.completed
            operation.progress = 100
            operation.affected_count = affected
            operation.success_count = successful
            operation.failed_count = failed
            operation.results = results
            operation.completed_at = _utc_now()
            self._append_log(db, operation_id, LogLevel.info, message, details)
            return True

    def fail(self, operation_id: str, error: str, *, message: str | None = None) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None or not can_transition(operation.status, OperationStatus.failed):
                return False
            operation.status = OperationStatus.failed
            operation.error_log = error
            operation.completed_at = _utc_now()
            self._append_log(db, operation_id, LogLevel.error, message or error, {"error": error})
            return True

    def cancel(self, operation_id: str) -> bool:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None:
                raise ResourceNotFoundError("Operation", operation_id)
            if operation.status not in CANCELLABLE:
                return False
            operation.status = OperationStatus.cancelled
            operation.completed_at = _utc_now()
            self._append_log(db, operation_id, LogLevel.info, "Operation cancelled by user")
            logger.info("Operation %s cancelled", operation_id)
            return True

    def pause(self, operation_id: str) -> OperationStatus:
        return self._admin_transition(operation_id, OperationStatus.paused, "Operation paused by admin")

    def resume(self, operation_id: str) -> OperationStatus:
        return self._admin_transition(operation_id, OperationStatus.running, "Operation resumed by admin")

    def _admin_transition(self, operation_id: str, requested: OperationStatus, message: str) -> OperationStatus:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None:
                raise ResourceNotFoundError("Operation", operation_id)
            # Resume is only meaningful out of PAUSED, not as a way to start PENDING work.
            legal = can_transition(operation.status, requested)
            if requested == OperationStatus.running and operation.status != OperationStatus.paused:
                legal = False
            if not legal:
                raise InvalidOperationStateError(operation_id, operation.status.value, requested.value)
            operation.status = requested
            self._append_log(db, operation_id, LogLevel.info, message)
            return operation.status

    # Queries

    def get(self, operation_id: str) -> BulkOperation | None:
        with self._session() as db:
            return db.get(BulkOperation, operation_id)

    def is_cancelled(self, operation_id: str) -> bool:
        operation = self.get(operation_id)
        return operation is not None and operation.status == OperationStatus.cancelled

    def get_progress(self, operation_id: str) -> OperationProgress | None:
        with self._session() as db:
            operation = db.get(BulkOperation, operation_id)
            if operation is None:
                return None
            latest = db.execute(
                select(OperationLog.message)
                .where(OperationLog.operation_id == operation_id)
                .order_by(OperationLog.sequence.desc())
                .limit(1)
            ).scalar_one_or_none()

            started_at = _as_utc(operation.started_at)
            estimate = None
            in_flight = operation.status in (OperationStatus.running, OperationStatus.paused)
            if in_flight and 0 < operation.progress < 100 and started_at is not None:
                elapsed = (_utc_now() - started_at).total_seconds()
                estimate = int(elapsed / operation.progress * (100 - operation.progress))

            return OperationProgress(
                status=operation.status,
                progress=operation.progress,
                message=latest or DEFAULT_PROGRESS_MESSAGE,
                estimated_time_remaining=estimate,
                started_at=started_at,
                completed_at=_as_utc(operation.completed_at),
                affected_count=operation.affected_count,
                success_count=operation.success_count,
                failed_count=operation.failed_count,
                errors=[operation.error_log] if operation.error_log else [],
            )

    def get_history(
        self,
        *,
        user_id: str | None = None,
        status: OperationStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> OperationHistoryPage:
        with self._session() as db:
            query = select(BulkOperation)
            count_query = select(func.count(BulkOperation.id))
            if user_id is not None:
                query = query.where(BulkOperation.user_id == user_id)
                count_query = count_query.where(BulkOperation.user_id == user_id)
            if status is not None:
                query = query.where(BulkOperation.status == status)
                count_query = count_query.where(BulkOperation.status == status)

            total = int(db.execute(count_query).scalar_one())
            rows = db.execute(
                query.order_by(BulkOperation.started_at.desc(), BulkOperation.id).limit(limit).offset(offset)
            ).scalars().all()

            items = []
            for row in rows:
                results = row.results or None
                summary = (results or {}).get("summary") or HISTORY_FALLBACK_SUMMARY[row.type]
                items.append(
                    OperationHistoryItem(
                        id=row.id,
                        type=row.type,
                        status=row.status,
                        start_time=_as_utc(row.started_at),
                        end_time=_as_utc(row.completed_at),
                        summary=summary,
                        affected_count=row.affected_count,
                        success_count=row.success_count,
                        failed_count=row.failed_count,
                        progress=row.progress,
                        parameters=row.parameters,
                        results=results,
                    )
                )
            return OperationHistoryPage(
                operations=items,
                pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(items) < total),
            )

    def list_logs(
        self,
        operation_id: str,
        *,
        level: LogLevel | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> OperationLogPage:
        with self._session() as db:
            if db.get(BulkOperation, operation_id) is None:
                raise ResourceNotFoundError("Operation", operation_id)
            query = select(OperationLog).where(OperationLog.operation_id == operation_id)
            count_query = select(func.count(OperationLog.id)).where(OperationLog.operation_id == operation_id)
            if level is not None:
                query = query.where(OperationLog.level == level)
                count_query = count_query.where(OperationLog.level == level)

            total = int(db.execute(count_query).scalar_one())
            rows = db.execute(
                query.order_by(OperationLog.sequence.desc()).limit(limit).offset(offset)
            ).scalars().all()
            return OperationLogPage(
                logs=[OperationLogOut.model_validate(row) for row in rows],
                pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(rows) < total),
            )
