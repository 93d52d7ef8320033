from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timetable_ops.core.config import Settings
from timetable_ops.core.exceptions import BulkOperationInputError
from timetable_ops.schemas.bulk_operation import OperationParams, ValidationResult
from timetable_ops.services.bulk_handler import BulkOperationHandler
from timetable_ops.services.calendar_events import Simulation
from timetable_ops.services.operation_params import build_handler
from timetable_ops.services.schedule_repository import UnitOfWork

logger = logging.getLogger(__name__)


class BulkOperationValidator:
    """Pre-flight checks for a bulk operation. Never writes to the schedule store."""

    def __init__(self, session_factory: Callable[[], Session], settings: Settings):
        self._session_factory = session_factory
        self.settings = settings

    def evaluate(
        self, params: OperationParams
    ) -> tuple[BulkOperationHandler, Optional[Simulation], ValidationResult]:
        """Resolve inputs and simulate the operation.

        The simulation is ``None`` when inputs could not be resolved; the
        validation result then carries the reason as its only conflict.
        """
        handler = build_handler(params, self.settings)
        try:
            with UnitOfWork(self._session_factory) as uow:
                handler.resolve(uow.schedule)
                entries = handler.load_entries(uow.schedule)
                simulation = handler.simulate(uow.schedule, entries)
        except BulkOperationInputError as exc:
            return handler, None, self._rejected(handler, exc.message)
        except SQLAlchemyError:
            logger.exception("Validation of %s operation failed", params.kind)
            return handler, None, self._rejected(handler, "Validation failed due to database error")
        return handler, simulation, self.result_from(handler, simulation)

    def validate(self, params: OperationParams) -> ValidationResult:
        return self.evaluate(params)[2]

    @staticmethod
    def _rejected(handler: BulkOperationHandler, message: str) -> ValidationResult:
        return ValidationResult(is_valid=False, conflicts=[message], suggestions=list(handler.suggestions))

    @staticmethod
    def result_from(handler: BulkOperationHandler, simulation: Simulation) -> ValidationResult:
        return ValidationResult(
            is_valid=not simulation.conflicts,
            conflicts=list(simulation.conflicts),
            warnings=list(simulation.warnings),
            affected_count=simulation.affected_count,
            detected_conflicts=list(simulation.detection.conflicts),
            suggestions=list(handler.suggestions),
        )
