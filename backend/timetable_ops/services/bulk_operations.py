from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from timetable_ops.core.config import Settings
from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.models.bulk_operation import LogLevel
from timetable_ops.schemas.bulk_operation import (
    BulkOperationResult,
    OperationParams,
    ValidationResult,
    params_to_json,
)
from timetable_ops.services.bulk_handler import BulkOperationHandler
from timetable_ops.services.bulk_validation import BulkOperationValidator
from timetable_ops.services.dry_run import DryRunPreviewGenerator
from timetable_ops.services.operation_outcomes import OperationTally
from timetable_ops.services.operation_params import build_handler
from timetable_ops.services.operation_tracker import OperationTracker
from timetable_ops.services.schedule_repository import UnitOfWork

logger = logging.getLogger(__name__)

SETUP_PROGRESS = 10
LOOP_PROGRESS_SPAN = 80


def loop_progress(done: int, total: int) -> int:
    return SETUP_PROGRESS + (done * LOOP_PROGRESS_SPAN) // total


class BulkOperationService:
    """Runs bulk timetable operations end to end.

    Schedule writes for one operation share a single transaction; tracking
    writes go through the tracker in their own short transactions so progress
    can be polled while the schedule transaction is still open.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        tracker: OperationTracker,
        settings: Settings,
    ):
        self._session_factory = session_factory
        self.tracker = tracker
        self.settings = settings
        self.validator = BulkOperationValidator(session_factory, settings)
        self.previewer = DryRunPreviewGenerator(self.validator)

    def validate(self, params: OperationParams) -> ValidationResult:
        return self.validator.validate(params)

    def preview(self, params: OperationParams, *, show_visualization: bool = True) -> BulkOperationResult:
        return self.previewer.preview(params, show_visualization=show_visualization)

    def execute(self, params: OperationParams, user_id: str) -> BulkOperationResult:
        handler = build_handler(params, self.settings)
        parameters = params_to_json(params)
        operation_id = self.tracker.create(handler.operation_type, user_id, parameters)
        self.tracker.start(operation_id, handler.start_message(), parameters)
        logger.info("%s %s started by user %s", handler.label, operation_id, user_id)

        affected = 0
        try:
            with UnitOfWork(self._session_factory) as uow:
                try:
                    handler.resolve(uow.schedule)
                except BulkOperationInputError as exc:
                    self.tracker.fail(operation_id, exc.message)
                    logger.info("%s %s rejected: %s", handler.label, operation_id, exc.message)
                    return BulkOperationResult(
                        success=False,
                        errors=[exc.message],
                        summary=f"{handler.label} failed",
                        operation_id=operation_id,
                    )

                entries = handler.load_entries(uow.schedule)
                affected = len(entries)
                if not entries:
                    return self._nothing_to_do(handler, operation_id)

                self.tracker.update_progress(operation_id, SETUP_PROGRESS)
                if self.tracker.is_cancelled(operation_id):
                    logger.info("%s %s cancelled before any entry was processed", handler.label, operation_id)
                    return BulkOperationResult(
                        success=False,
                        affected=affected,
                        failed=affected,
                        errors=["Operation cancelled by user"],
                        summary=f"{handler.label} cancelled",
                        operation_id=operation_id,
                    )

                tally = OperationTally().with_warnings(*handler.prepare(uow.schedule, entries))
                interval = self.settings.bulk_progress_update_interval
                for index, entry in enumerate(entries, start=1):
                    tally = tally.record(handler.apply(uow.schedule, entry))
                    if index % interval == 0 or index == affected:
                        self.tracker.update_progress(operation_id, loop_progress(index, affected))
                tally = tally.with_warnings(*handler.finalize(uow.schedule, tally))

                uow.commit()
                summary = handler.summary(tally, affected)
                results = handler.results(tally, affected)
        except Exception as exc:
            logger.exception("%s %s aborted", handler.label, operation_id)
            self.tracker.fail(operation_id, str(exc), message=f"{handler.label} failed: {exc}")
            return BulkOperationResult(
                success=False,
                affected=affected,
                failed=affected,
                errors=[str(exc)],
                summary=f"{handler.label} failed",
                operation_id=operation_id,
            )

        warnings = list(tally.warnings)
        completed = self.tracker.complete(
            operation_id,
            affected=affected,
            successful=tally.successful,
            failed=tally.failed,
            results={**results, "errors": list(tally.errors), "warnings": warnings},
            message=f"{handler.label} completed: {tally.successful} successful, {tally.failed} failed",
            details={"errors": len(tally.errors), "warnings": len(warnings)},
        )
        if not completed:
            # Cancelled while the transaction was in flight; its writes are committed.
            warnings.append("Operation was cancelled while running; changes already applied were kept")
        logger.info(
            "%s %s finished: %s/%s successful",
            handler.label,
            operation_id,
            tally.successful,
            affected,
        )
        return BulkOperationResult(
            success=tally.clean,
            affected=affected,
            successful=tally.successful,
            failed=tally.failed,
            errors=list(tally.errors),
            warnings=warnings,
            summary=summary,
            operation_id=operation_id,
        )

    def _nothing_to_do(self, handler: BulkOperationHandler, operation_id: str) -> BulkOperationResult:
        self.tracker.log(operation_id, LogLevel.warn, handler.empty_message)
        self.tracker.complete(
            operation_id,
            affected=0,
            successful=0,
            failed=0,
            results={"summary": handler.empty_summary},
            message=f"{handler.label} completed: nothing to do",
        )
        return BulkOperationResult(
            success=True,
            warnings=[handler.empty_message],
            summary=handler.empty_summary,
            operation_id=operation_id,
        )
