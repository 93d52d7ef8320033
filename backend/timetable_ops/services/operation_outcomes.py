from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Union


@dataclass(frozen=True)
class Succeeded:
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class Skipped:
    """Entry left untouched by a business rule; the reason is reported as a warning."""

    reason: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class Failed:
    """Entry rejected by a hard rule; the reason is reported as an error."""

    reason: str
    warnings: tuple[str, ...] = ()


EntryOutcome = Union[Succeeded, Skipped, Failed]


@dataclass(frozen=True)
class OperationTally:
    successful: int = 0
    failed: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def clean(self) -> bool:
        return self.failed == 0

    def record(self, outcome: EntryOutcome) -> "OperationTally":
        warnings = self.warnings + tuple(outcome.warnings)
        if isinstance(outcome, Succeeded):
            return replace(self, successful=self.successful + 1, warnings=warnings)
        if isinstance(outcome, Skipped):
            return replace(
                self,
                failed=self.failed + 1,
                warnings=warnings + (outcome.reason,),
            )
        return replace(
            self,
            failed=self.failed + 1,
            warnings=warnings,
            errors=self.errors + (outcome.reason,),
        )

    def with_warnings(self, *messages: str) -> "OperationTally":
        if not messages:
            return self
        return replace(self, warnings=self.warnings + tuple(messages))
