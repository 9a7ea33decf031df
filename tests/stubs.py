from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from intune_reconciler.graph.requests import GraphRequest, app_id_from_path
from intune_reconciler.graph.transport import RETRYABLE_BATCH_STATUSES, BatchResponse, PartialBatchError
from intune_reconciler.utils.cancellation import CancellationToken


class FakeTransport:
    """In-memory RemoteTransport that records every call.

    ``delete_statuses`` maps an assignment id to the status its delete
    should receive (default 204); ``None`` omits the response entirely.
    Responses come back in reverse order to exercise id correlation. With
    ``retry_error`` set, throttled (429/503) items stay unanswered and the
    resubmission fails with that error, the way :class:`GraphTransport` does.
    """

    def __init__(
        self,
        *,
        delete_statuses: dict[str, int | None] | None = None,
        batch_error: Exception | None = None,
        retry_error: BaseException | None = None,
        post_errors: dict[str, Exception] | None = None,
        on_batch: Callable[[Sequence[GraphRequest]], None] | None = None,
        on_post: Callable[[str, dict[str, Any]], None] | None = None,
    ) -> None:
        self.delete_statuses = dict(delete_statuses or {})
        self.batch_error = batch_error
        self.retry_error = retry_error
        self.post_errors = dict(post_errors or {})
        self.on_batch = on_batch
        self.on_post = on_post
        self.batches: list[list[GraphRequest]] = []
        self.posts: list[tuple[str, dict[str, Any]]] = []

    @property
    def deleted_ids(self) -> list[str]:
        return [request.url.rsplit("/", 1)[-1] for batch in self.batches for request in batch]

    async def submit_batch(
        self,
        requests: Sequence[GraphRequest],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> list[BatchResponse]:
        self.batches.append(list(requests))
        if self.on_batch is not None:
            self.on_batch(requests)
        if self.batch_error is not None:
            raise self.batch_error

        responses: list[BatchResponse] = []
        for request in reversed(list(requests)):
            assignment_id = request.url.rsplit("/", 1)[-1]
            status = self.delete_statuses.get(assignment_id, 204)
            if status is None:
                continue
            if self.retry_error is not None and status in RETRYABLE_BATCH_STATUSES:
                continue
            body = None
            if status >= 400:
                body = {"error": {"code": "Failure", "message": f"delete {assignment_id} failed"}}
            responses.append(BatchResponse(id=str(request.request_id), status=status, body=body))
        if self.retry_error is not None and len(responses) < len(requests):
            if not responses:
                raise self.retry_error
            raise PartialBatchError(responses, self.retry_error)
        return responses

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        self.posts.append((endpoint, body))
        if self.on_post is not None:
            self.on_post(endpoint, body)
        error = self.post_errors.get(app_id_from_path(endpoint) or "")
        if error is not None:
            raise error

    def posted_assignments(self, app_id: str) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        for endpoint, body in self.posts:
            if app_id_from_path(endpoint) == app_id:
                entries.extend(body["mobileAppAssignments"])
        return entries
