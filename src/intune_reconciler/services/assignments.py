from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from intune_reconciler.config import EngineSettings
from intune_reconciler.graph.transport import RemoteTransport
from intune_reconciler.services.base import EventHook, MutationStatus
from intune_reconciler.services.edit_session import EditSession
from intune_reconciler.services.executor import BatchExecutor
from intune_reconciler.services.planner import Plan, build_plan
from intune_reconciler.services.report import SaveReport
from intune_reconciler.utils import (
    CancellationToken,
    ProgressReporter,
    ProgressTracker,
    get_logger,
)


logger = get_logger(__name__)


@dataclass(slots=True)
class AssignmentsSavedEvent:
    """Published after every save; subscribers should refetch assignments."""

    app_ids: tuple[str, ...]
    status: MutationStatus
    report: SaveReport


ExecutorFactory = Callable[[ProgressTracker], BatchExecutor]


class AssignmentService:
    """Commit an edit session: plan, execute, report."""

    def __init__(
        self,
        transport: RemoteTransport,
        settings: EngineSettings | None = None,
        *,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or EngineSettings()
        self._executor_factory = executor_factory or self._default_executor
        self.saved: EventHook[AssignmentsSavedEvent] = EventHook()

    def _default_executor(self, progress: ProgressTracker) -> BatchExecutor:
        return BatchExecutor(self._transport, self._settings, progress=progress)

    def plan(self, session: EditSession) -> Plan:
        return build_plan(session)

    async def save(
        self,
        session: EditSession,
        *,
        progress: ProgressReporter | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> SaveReport:
        if session.conflicts:
            logger.warning(
                "Saving with unresolved assignment conflicts",
                conflicts=len(session.conflicts),
            )
        plan = build_plan(session)
        if plan.is_empty:
            logger.debug("Nothing to save")
            report = SaveReport()
        else:
            executor = self._executor_factory(ProgressTracker(progress))
            report = await executor.execute(plan, cancellation_token=cancellation_token)

        if report.has_failures:
            status = MutationStatus.PARTIAL if report.completed else MutationStatus.FAILED
            logger.error("Assignment save reported failures", summary=report.summary())
        else:
            status = MutationStatus.SUCCEEDED
        self.saved.emit(
            AssignmentsSavedEvent(
                app_ids=tuple(session.application_ids),
                status=status,
                report=report,
            )
        )
        return report


__all__ = ["AssignmentService", "AssignmentsSavedEvent"]
