"""Remote transport seam between the batch executor and Microsoft Graph.

The executor only depends on :class:`RemoteTransport`: submit a batch of
typed requests and get one typed response per request back, or post an
``assign`` body for one application. Paging, authentication and throttling
back-off live behind this seam.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Protocol, Sequence

from intune_reconciler.graph.client import GraphClient
from intune_reconciler.graph.errors import GraphAPIError, GraphErrorCategory
from intune_reconciler.graph.requests import GraphRequest
from intune_reconciler.utils.cancellation import CancellationError, CancellationToken
from intune_reconciler.utils.logging import get_logger


logger = get_logger(__name__)

RETRYABLE_BATCH_STATUSES = frozenset({429, 503})


@dataclass(frozen=True, slots=True)
class BatchResponse:
    """One ``$batch`` response item, correlated to its request by ``id``."""

    id: str
    status: int
    body: Any | None = None
    headers: dict[str, str] | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def from_graph(cls, payload: dict[str, Any]) -> "BatchResponse":
        try:
            status = int(payload.get("status", 0))
        except (TypeError, ValueError):
            status = 0
        headers = payload.get("headers")
        return cls(
            id=str(payload.get("id", "")),
            status=status,
            body=payload.get("body"),
            headers=headers if isinstance(headers, dict) else None,
        )

    def error_message(self) -> str:
        body = self.body
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return f"HTTP {self.status}: {error['message']}"
        return f"HTTP {self.status}"


class PartialBatchError(Exception):
    """A resubmission failed after earlier attempts already got answers.

    ``responses`` holds every item Graph settled before ``error`` was
    raised; those writes have taken effect and must not be reported as
    failures.
    """

    def __init__(self, responses: Sequence[BatchResponse], error: BaseException) -> None:
        super().__init__(str(error) or type(error).__name__)
        self.responses = list(responses)
        self.error = error

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, CancellationError)


class RemoteTransport(Protocol):
    async def submit_batch(
        self,
        requests: Sequence[GraphRequest],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> list[BatchResponse]: ...

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> None: ...


class GraphTransport:
    """:class:`RemoteTransport` backed by :class:`GraphClient`.

    Batch items answered with 429/503 are resubmitted (honouring the
    largest ``Retry-After``) up to ``max_retries`` times; whatever status
    remains after that is handed back to the caller. If a resubmission
    raises, :class:`PartialBatchError` carries the items already settled.
    """

    def __init__(self, client: GraphClient, *, max_retries: int = 2) -> None:
        self._client = client
        self._max_retries = max(0, max_retries)

    async def submit_batch(
        self,
        requests: Sequence[GraphRequest],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> list[BatchResponse]:
        pending = [
            request if request.request_id is not None else replace(request, request_id=str(index))
            for index, request in enumerate(requests, start=1)
        ]

        final: dict[str, BatchResponse] = {}
        attempt = 0
        delay = 0.0
        while pending:
            try:
                if delay > 0:
                    await asyncio.sleep(delay)
                payload = await self._client.execute_batch(
                    pending,
                    cancellation_token=cancellation_token,
                )
            except (Exception, CancellationError) as exc:
                if not final:
                    raise
                logger.warning(
                    "Batch resubmission failed after partial success",
                    settled=len(final),
                    unsettled=len(pending),
                    error=str(exc),
                )
                raise PartialBatchError(list(final.values()), exc) from exc
            raw = payload.get("responses", []) if isinstance(payload, dict) else []
            responses = {
                item.id: item
                for item in (BatchResponse.from_graph(entry) for entry in raw if isinstance(entry, dict))
            }

            retry: list[GraphRequest] = []
            retry_after = 0.0
            for request in pending:
                request_id = str(request.request_id)
                response = responses.get(request_id)
                if response is None:
                    continue
                if (
                    response.status in RETRYABLE_BATCH_STATUSES
                    and attempt < self._max_retries
                ):
                    retry.append(request)
                    retry_after = max(retry_after, _retry_after_seconds(response))
                    continue
                final[request_id] = response

            if not retry:
                break
            attempt += 1
            delay = max(retry_after, self._client.rate_limiter.calculate_retry_delay(attempt=attempt))
            logger.info(
                "Retrying throttled batch items",
                count=len(retry),
                attempt=attempt,
                delay=delay,
            )
            pending = retry

        return list(final.values())

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        response = await self._client.request(
            "POST",
            endpoint,
            json_body=body,
            headers={"Content-Type": "application/json"},
            cancellation_token=cancellation_token,
        )
        if response.status_code >= 300:
            raise GraphAPIError(
                message=f"Unexpected status {response.status_code} from {endpoint}",
                category=GraphErrorCategory.UNKNOWN,
                status_code=response.status_code,
            )


def _retry_after_seconds(response: BatchResponse) -> float:
    headers = response.headers or {}
    raw = headers.get("Retry-After") or headers.get("retry-after")
    try:
        return max(float(raw or 0.0), 0.0)
    except (TypeError, ValueError):
        return 0.0


__all__ = [
    "BatchResponse",
    "GraphTransport",
    "PartialBatchError",
    "RemoteTransport",
]
