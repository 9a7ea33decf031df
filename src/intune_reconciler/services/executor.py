from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Sequence

from intune_reconciler.config import EngineSettings
from intune_reconciler.graph.errors import GraphAPIError
from intune_reconciler.graph.transport import BatchResponse, PartialBatchError, RemoteTransport
from intune_reconciler.services.planner import (
    AssignBatch,
    CreateOperation,
    DeleteOperation,
    OperationPhase,
    Plan,
)
from intune_reconciler.services.report import OperationFailure, SaveReport
from intune_reconciler.utils import (
    CancellationError,
    CancellationToken,
    ProgressTracker,
    get_logger,
)
from intune_reconciler.utils.errors import describe_exception


logger = get_logger(__name__)

NO_RESPONSE_MESSAGE = "No response returned for request"
CANCELLED_MESSAGE = "Cancelled before submission"
IN_FLIGHT_CANCELLED_MESSAGE = "Cancelled before Graph answered this request"


class ExecutorState(StrEnum):
    IDLE = "idle"
    DELETING = "deleting"
    RECREATING = "recreating"
    CREATING = "creating"
    DONE = "done"


_STATE_ORDER = tuple(ExecutorState)


class BatchExecutor:
    """Single-use runner for one plan."""

    def __init__(
        self,
        transport: RemoteTransport,
        settings: EngineSettings | None = None,
        *,
        progress: ProgressTracker | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or EngineSettings()
        self._progress = progress or ProgressTracker()
        self._lock = asyncio.Lock()
        self.state = ExecutorState.IDLE

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    async def execute(
        self,
        plan: Plan,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> SaveReport:
        if self.state is not ExecutorState.IDLE:
            raise RuntimeError("BatchExecutor has already run; create a new one per plan")

        report = SaveReport(total=plan.total_operations)
        self._progress.start(total=plan.total_operations, phase=ExecutorState.DELETING.value)
        logger.info(
            "Executing assignment plan",
            deletes=len(plan.deletes),
            recreations=len(plan.tagged_deletes),
            creations=len(plan.creations),
            issues=len(plan.issues),
        )

        self._advance(ExecutorState.DELETING)
        survivors = await self._run_deletes(plan, report, cancellation_token)

        self._advance(ExecutorState.RECREATING)
        recreations = await self._collect_recreations(survivors, report)

        self._advance(ExecutorState.CREATING)
        await self._run_creates(plan, recreations, report, cancellation_token)

        self._advance(ExecutorState.DONE)
        if report.has_critical_failures:
            logger.error(
                "Save finished with assignments in an inconsistent state",
                critical=len(report.critical_failures),
                failed=report.failed,
                completed=report.completed,
            )
        else:
            logger.info(
                "Save finished",
                completed=report.completed,
                failed=report.failed,
                not_found=report.not_found,
                cancelled=report.cancelled,
            )
        return report

    def _advance(self, state: ExecutorState) -> None:
        if _STATE_ORDER.index(state) <= _STATE_ORDER.index(self.state):
            raise RuntimeError(f"Invalid executor transition {self.state} -> {state}")
        logger.debug("Executor state changed", previous=self.state.value, state=state.value)
        self.state = state
        if state is not ExecutorState.DONE:
            self._progress.enter_phase(state.value)

    # ---------------------------------------------------------------- Deletes

    async def _run_deletes(
        self,
        plan: Plan,
        report: SaveReport,
        cancellation_token: CancellationToken | None,
    ) -> list[DeleteOperation]:
        deletes = plan.deletes
        if not deletes:
            return []

        size = self._settings.max_batch_size
        chunks = [deletes[index : index + size] for index in range(0, len(deletes), size)]
        semaphore = asyncio.Semaphore(max(1, self._settings.max_concurrent_batches))
        survivors: list[DeleteOperation] = []

        async def run_chunk(number: int, chunk: Sequence[DeleteOperation]) -> None:
            async with semaphore:
                if cancellation_token is not None and cancellation_token.cancelled:
                    await self._fail_deletes(chunk, report, CANCELLED_MESSAGE, cancelled=True)
                    return
                request_ids = [str(index) for index in range(1, len(chunk) + 1)]
                requests = [
                    operation.to_request(request_id)
                    for operation, request_id in zip(chunk, request_ids)
                ]
                logger.debug("Submitting delete batch", chunk=number, size=len(requests))
                try:
                    responses = await self._transport.submit_batch(
                        requests,
                        cancellation_token=cancellation_token,
                    )
                except PartialBatchError as exc:
                    if exc.cancelled:
                        message = IN_FLIGHT_CANCELLED_MESSAGE
                    else:
                        logger.error("Delete batch retry failed", chunk=number, error=str(exc.error))
                        message = describe_exception(exc.error).as_message()
                    await self._fold_delete_responses(
                        chunk,
                        request_ids,
                        exc.responses,
                        report,
                        survivors,
                        missing_message=message,
                        missing_status=_status_code(exc.error),
                        cancelled=exc.cancelled,
                    )
                    return
                except CancellationError:
                    await self._fail_deletes(chunk, report, CANCELLED_MESSAGE, cancelled=True)
                    return
                except Exception as exc:  # noqa: BLE001
                    logger.error("Delete batch failed", chunk=number, error=str(exc))
                    await self._fail_deletes(
                        chunk,
                        report,
                        describe_exception(exc).as_message(),
                        status_code=_status_code(exc),
                    )
                    return
                await self._fold_delete_responses(chunk, request_ids, responses, report, survivors)

        await asyncio.gather(*(run_chunk(number, chunk) for number, chunk in enumerate(chunks, start=1)))

        order = {operation.key: index for index, operation in enumerate(deletes)}
        survivors.sort(key=lambda operation: order[operation.key])
        return survivors

    async def _fold_delete_responses(
        self,
        chunk: Sequence[DeleteOperation],
        request_ids: Sequence[str],
        responses: Sequence[BatchResponse],
        report: SaveReport,
        survivors: list[DeleteOperation],
        *,
        missing_message: str = NO_RESPONSE_MESSAGE,
        missing_status: int | None = None,
        cancelled: bool = False,
    ) -> None:
        by_id = {response.id: response for response in responses}
        async with self._lock:
            if cancelled:
                report.cancelled = True
            for operation, request_id in zip(chunk, request_ids):
                response = by_id.get(request_id)
                if response is None:
                    self._record_delete_failure(
                        operation,
                        report,
                        missing_message,
                        status_code=missing_status,
                        cancelled=cancelled,
                    )
                    continue
                if response.ok or response.status == 404:
                    report.record_success(OperationPhase.DELETE)
                    if response.status == 404:
                        report.not_found += 1
                    self._progress.succeeded(current=operation.group_name)
                    if operation.recreate_after:
                        survivors.append(operation)
                    continue
                self._record_delete_failure(
                    operation,
                    report,
                    response.error_message(),
                    status_code=response.status,
                )

    async def _fail_deletes(
        self,
        chunk: Sequence[DeleteOperation],
        report: SaveReport,
        message: str,
        *,
        status_code: int | None = None,
        cancelled: bool = False,
    ) -> None:
        async with self._lock:
            if cancelled:
                report.cancelled = True
            for operation in chunk:
                self._record_delete_failure(
                    operation,
                    report,
                    message,
                    status_code=status_code,
                    cancelled=cancelled,
                )

    def _record_delete_failure(
        self,
        operation: DeleteOperation,
        report: SaveReport,
        message: str,
        *,
        status_code: int | None = None,
        cancelled: bool = False,
    ) -> None:
        report.record_failure(
            OperationFailure(
                application_name=operation.app_name,
                group_name=operation.group_name,
                message=message,
                phase=OperationPhase.DELETE,
                was_deleted=False,
                is_update=operation.recreate_after,
                app_id=operation.app_id,
                status_code=status_code,
                cancelled=cancelled,
            )
        )
        self._progress.failed(current=operation.group_name)
        if operation.recreate_after:
            # Original is still in place; its recreation will never run.
            self._progress.abandon()
        if not cancelled:
            logger.error(
                "Failed to delete assignment",
                app=operation.app_name,
                group=operation.group_name,
                key=str(operation.key),
                status=status_code,
                error=message,
            )

    # ------------------------------------------------------------ Recreations

    async def _collect_recreations(
        self,
        survivors: Sequence[DeleteOperation],
        report: SaveReport,
    ) -> list[CreateOperation]:
        recreations: list[CreateOperation] = []
        async with self._lock:
            for operation in survivors:
                if operation.recreation is not None:
                    recreations.append(operation.recreation)
                    continue
                report.record_failure(
                    OperationFailure(
                        application_name=operation.app_name,
                        group_name=operation.group_name,
                        message=operation.recreation_error or "No valid intent available",
                        phase=OperationPhase.RECREATE,
                        was_deleted=True,
                        is_update=True,
                        app_id=operation.app_id,
                    )
                )
                self._progress.failed(current=operation.group_name)
                logger.error(
                    "Assignment deleted but cannot be recreated",
                    app=operation.app_name,
                    group=operation.group_name,
                    key=str(operation.key),
                    error=operation.recreation_error,
                )
        return recreations

    # ---------------------------------------------------------------- Creates

    async def _run_creates(
        self,
        plan: Plan,
        recreations: Sequence[CreateOperation],
        report: SaveReport,
        cancellation_token: CancellationToken | None,
    ) -> None:
        async with self._lock:
            for issue in plan.issues:
                report.record_failure(
                    OperationFailure(
                        application_name=issue.app_name,
                        group_name=issue.group_name,
                        message=issue.message,
                        phase=issue.phase,
                        app_id=issue.app_id,
                    )
                )
                self._progress.failed(current=issue.group_name)

        batches = plan.assign_batches(tuple(recreations) + plan.creations)
        if not batches:
            return
        semaphore = asyncio.Semaphore(max(1, self._settings.max_concurrent_batches))

        async def run_batch(batch: AssignBatch) -> None:
            async with semaphore:
                if cancellation_token is not None and cancellation_token.cancelled:
                    await self._fail_creates(batch, report, CANCELLED_MESSAGE, cancelled=True)
                    return
                logger.debug(
                    "Submitting assign call",
                    app=batch.app_name,
                    size=len(batch.operations),
                )
                try:
                    await self._transport.post(
                        batch.endpoint,
                        batch.to_graph(),
                        cancellation_token=cancellation_token,
                    )
                except CancellationError:
                    await self._fail_creates(
                        batch,
                        report,
                        "Cancelled while the assign call was in flight",
                        cancelled=True,
                    )
                    return
                except Exception as exc:  # noqa: BLE001
                    logger.error("Assign call failed", app=batch.app_name, error=str(exc))
                    await self._fail_creates(
                        batch,
                        report,
                        describe_exception(exc).as_message(),
                        status_code=_status_code(exc),
                    )
                    return
                async with self._lock:
                    for operation in batch.operations:
                        report.record_success(operation.phase)
                        self._progress.succeeded(current=operation.group_name)

        await asyncio.gather(*(run_batch(batch) for batch in batches))

    async def _fail_creates(
        self,
        batch: AssignBatch,
        report: SaveReport,
        message: str,
        *,
        status_code: int | None = None,
        cancelled: bool = False,
    ) -> None:
        async with self._lock:
            if cancelled:
                report.cancelled = True
            for operation in batch.operations:
                failure = OperationFailure(
                    application_name=operation.app_name,
                    group_name=operation.group_name,
                    message=message,
                    phase=operation.phase,
                    was_deleted=operation.is_recreation,
                    is_update=operation.is_recreation,
                    app_id=operation.app_id,
                    status_code=status_code,
                    cancelled=cancelled,
                )
                report.record_failure(failure)
                self._progress.failed(current=operation.group_name)
                if failure.is_critical:
                    logger.error(
                        "Assignment deleted but recreation failed",
                        app=operation.app_name,
                        group=operation.group_name,
                        key=str(operation.source_key),
                        error=message,
                    )


def _status_code(error: BaseException) -> int | None:
    if isinstance(error, GraphAPIError):
        return error.status_code
    cause = error.__cause__
    if isinstance(cause, GraphAPIError):
        return cause.status_code
    return None


__all__ = ["BatchExecutor", "ExecutorState"]
