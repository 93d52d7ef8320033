from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from timetable_ops.schemas.bulk_operation import (
    BulkOperationResult,
    ConflictVisualization,
    OperationParams,
    PreviewResults,
)
from timetable_ops.services.bulk_validation import BulkOperationValidator

logger = logging.getLogger(__name__)


def dry_run_id() -> str:
    return f"dryrun_{int(datetime.now(timezone.utc).timestamp() * 1000)}"


class DryRunPreviewGenerator:
    def __init__(self, validator: BulkOperationValidator):
        self.validator = validator

    def preview(self, params: OperationParams, *, show_visualization: bool = True) -> BulkOperationResult:
        handler, simulation, validation = self.validator.evaluate(params)
        if simulation is None or not validation.is_valid:
            return self._failed(validation.affected_count, validation.conflicts, validation.warnings)

        affected = simulation.affected_count
        conflicted = simulation.conflicted_proposals()
        conflict_total = simulation.detection.conflict_count
        logger.info(
            "Dry run of %s operation: %s entries, %s conflicts",
            params.kind,
            affected,
            conflict_total,
        )

        visualization = None
        if show_visualization:
            visualization = ConflictVisualization(
                conflicts=simulation.detection.conflicts,
                affected_events=simulation.proposed,
                proposed_changes=simulation.changes,
            )

        return BulkOperationResult(
            success=True,
            affected=affected,
            successful=affected - conflicted,
            failed=conflicted,
            errors=[],
            warnings=list(simulation.warnings),
            summary=f"Dry-run: Would {handler.preview_verb} {affected} entries with {conflict_total} conflicts",
            operation_id=dry_run_id(),
            dry_run=True,
            conflict_visualization=visualization,
            preview_results=PreviewResults(
                estimated_duration=math.ceil(affected / handler.throughput()) * 60,
                resource_impact=handler.resource_impact(simulation),
                recommendations=handler.recommendations(simulation),
            ),
        )

    @staticmethod
    def _failed(affected: int, conflicts: list[str], warnings: list[str]) -> BulkOperationResult:
        return BulkOperationResult(
            success=False,
            affected=affected,
            successful=0,
            failed=affected,
            errors=list(conflicts),
            warnings=list(warnings),
            summary="Dry-run failed validation",
            operation_id=dry_run_id(),
            dry_run=True,
        )
