from __future__ import annotations

from dataclasses import dataclass, field

from intune_reconciler.services.planner import OperationPhase


INTUNE_PORTAL_URL = "https://intune.microsoft.com"


@dataclass(frozen=True, slots=True)
class OperationFailure:
    application_name: str
    group_name: str
    message: str
    phase: OperationPhase
    was_deleted: bool = False
    is_update: bool = False
    app_id: str | None = None
    status_code: int | None = None
    cancelled: bool = False

    @property
    def is_critical(self) -> bool:
        """The original assignment is gone and its replacement never arrived."""
        return self.phase is OperationPhase.RECREATE and self.was_deleted

    @property
    def label(self) -> str:
        return f"{self.application_name} - {self.group_name}"


@dataclass(slots=True)
class PhaseCounts:
    completed: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.failed


@dataclass(slots=True)
class SaveReport:
    """Outcome of one save; always returned, never raised."""

    total: int = 0
    phases: dict[OperationPhase, PhaseCounts] = field(
        default_factory=lambda: {phase: PhaseCounts() for phase in OperationPhase}
    )
    not_found: int = 0
    cancelled: bool = False
    failures: list[OperationFailure] = field(default_factory=list)

    def counts(self, phase: OperationPhase) -> PhaseCounts:
        return self.phases[phase]

    def record_success(self, phase: OperationPhase, *, count: int = 1) -> None:
        self.phases[phase].completed += count

    def record_failure(self, failure: OperationFailure) -> None:
        self.phases[failure.phase].failed += 1
        self.failures.append(failure)

    @property
    def completed(self) -> int:
        return sum(counts.completed for counts in self.phases.values())

    @property
    def failed(self) -> int:
        return sum(counts.failed for counts in self.phases.values())

    @property
    def critical_failures(self) -> list[OperationFailure]:
        return [failure for failure in self.failures if failure.is_critical]

    @property
    def has_critical_failures(self) -> bool:
        return any(failure.is_critical for failure in self.failures)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def succeeded(self) -> bool:
        return not self.failures and not self.cancelled

    @property
    def requires_refresh(self) -> bool:
        """Whether remote state may differ from the locally cached copy."""
        return self.completed > 0 or self.failed > 0

    def summary(self) -> str:
        if not self.failures:
            if self.cancelled:
                return f"Save cancelled after {self.completed} operation(s) completed."
            return f"All {self.completed} operation(s) completed successfully."

        deletions = [
            failure
            for failure in self.failures
            if failure.phase is OperationPhase.DELETE and not failure.is_update
        ]
        critical = self.critical_failures
        updates = [
            failure
            for failure in self.failures
            if failure.is_update and not failure.is_critical
        ]
        creations = [
            failure for failure in self.failures if failure.phase is OperationPhase.CREATE
        ]

        sections: list[str] = ["Assignment operation completed with errors:"]
        if self.cancelled:
            sections.append("The save was cancelled before all operations were submitted.")
        if deletions:
            sections.append(_section("Failed Deletions:", deletions))
        if critical:
            sections.append(
                _section(
                    "CRITICAL - Assignments in inconsistent state (deleted but not recreated):",
                    critical,
                )
                + f"\nPlease manually check these assignments in Intune ({INTUNE_PORTAL_URL})!"
            )
        if updates:
            sections.append(_section("Failed Updates:", updates))
        if creations:
            sections.append(_section("Failed Creations:", creations))
        return "\n\n".join(sections)


def _section(title: str, failures: list[OperationFailure]) -> str:
    lines = [title]
    lines.extend(f"- {failure.label}: {failure.message}" for failure in failures)
    return "\n".join(lines)


__all__ = [
    "INTUNE_PORTAL_URL",
    "OperationFailure",
    "PhaseCounts",
    "SaveReport",
]
