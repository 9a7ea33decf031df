from __future__ import annotations

import json

import httpx
import pytest
import respx

from intune_reconciler.graph.client import GraphClient
from intune_reconciler.graph.errors import GraphAPIError, GraphErrorCategory, PermissionError
from intune_reconciler.graph.requests import (
    mobile_app_assign_path,
    mobile_app_assignment_delete_request,
)
from intune_reconciler.graph.transport import GraphTransport, PartialBatchError
from intune_reconciler.utils import CancellationError, CancellationTokenSource


BATCH_URL = "https://graph.microsoft.com/beta/$batch"
ASSIGN_URL = "https://graph.microsoft.com/beta/deviceAppManagement/mobileApps/app-1/assign"


def _deletes(*assignment_ids: str):
    return [
        mobile_app_assignment_delete_request("app-1", assignment_id, request_id=str(index))
        for index, assignment_id in enumerate(assignment_ids, start=1)
    ]


def _sent_ids(request: httpx.Request) -> list[str]:
    return [entry["id"] for entry in json.loads(request.content)["requests"]]


@pytest.mark.asyncio
async def test_batch_responses_are_correlated_by_id(respx_mock: respx.Router) -> None:
    route = respx_mock.post(BATCH_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "responses": [
                    {"id": "2", "status": 404, "body": {"error": {"message": "Not found"}}},
                    {"id": "1", "status": 204},
                ]
            },
        )
    )
    async with GraphClient(lambda: "token-123") as client:
        responses = await GraphTransport(client).submit_batch(_deletes("a1", "a2"))

    by_id = {response.id: response for response in responses}
    assert by_id["1"].ok
    assert by_id["2"].status == 404
    assert by_id["2"].error_message() == "HTTP 404: Not found"

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer token-123"
    payload = json.loads(request.content)
    assert payload["requests"][0] == {
        "id": "1",
        "method": "DELETE",
        "url": "/deviceAppManagement/mobileApps/app-1/assignments/a1",
    }


@pytest.mark.asyncio
async def test_throttled_items_are_resubmitted(
    respx_mock: respx.Router,
    no_retry_delay: None,
) -> None:
    route = respx_mock.post(BATCH_URL).mock(
        side_effect=[
            httpx.Response(
                200,
                json={
                    "responses": [
                        {"id": "1", "status": 204},
                        {"id": "2", "status": 429, "headers": {"Retry-After": "0"}},
                    ]
                },
            ),
            httpx.Response(200, json={"responses": [{"id": "2", "status": 204}]}),
        ]
    )
    async with GraphClient(lambda: "token") as client:
        responses = await GraphTransport(client).submit_batch(_deletes("a1", "a2"))

    assert sorted((response.id, response.status) for response in responses) == [("1", 204), ("2", 204)]
    assert route.call_count == 2
    assert _sent_ids(route.calls[1].request) == ["2"]


@pytest.mark.asyncio
async def test_retry_budget_returns_last_status(
    respx_mock: respx.Router,
    no_retry_delay: None,
) -> None:
    route = respx_mock.post(BATCH_URL).mock(
        return_value=httpx.Response(200, json={"responses": [{"id": "1", "status": 503}]})
    )
    async with GraphClient(lambda: "token") as client:
        (response,) = await GraphTransport(client, max_retries=1).submit_batch(_deletes("a1"))

    assert response.status == 503
    assert route.call_count == 2



@pytest.mark.asyncio
async def test_failed_resubmission_keeps_settled_items(
    respx_mock: respx.Router,
    no_retry_delay: None,
) -> None:
    route = respx_mock.post(BATCH_URL).mock(
        side_effect=[
            httpx.Response(
                200,
                json={"responses": [{"id": "1", "status": 204}, {"id": "2", "status": 429}]},
            ),
            httpx.Response(503, json={"error": {"code": "ServiceUnavailable", "message": "Down"}}),
        ]
    )
    async with GraphClient(lambda: "token") as client:
        with pytest.raises(PartialBatchError) as excinfo:
            await GraphTransport(client).submit_batch(_deletes("a1", "a2"))

    partial = excinfo.value
    assert [(response.id, response.status) for response in partial.responses] == [("1", 204)]
    assert isinstance(partial.error, GraphAPIError)
    assert partial.error.status_code == 503
    assert not partial.cancelled
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_cancel_between_attempts_keeps_settled_items(
    respx_mock: respx.Router,
    no_retry_delay: None,
) -> None:
    source = CancellationTokenSource()

    def first_attempt(request: httpx.Request) -> httpx.Response:
        source.cancel(reason="user")
        return httpx.Response(
            200,
            json={"responses": [{"id": "1", "status": 204}, {"id": "2", "status": 503}]},
        )

    route = respx_mock.post(BATCH_URL).mock(side_effect=first_attempt)
    async with GraphClient(lambda: "token") as client:
        with pytest.raises(PartialBatchError) as excinfo:
            await GraphTransport(client).submit_batch(
                _deletes("a1", "a2"),
                cancellation_token=source.token,
            )

    assert excinfo.value.cancelled
    assert [response.id for response in excinfo.value.responses] == ["1"]
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_missing_request_ids_are_assigned_on_copies(respx_mock: respx.Router) -> None:
    route = respx_mock.post(BATCH_URL).mock(
        return_value=httpx.Response(200, json={"responses": [{"id": "1", "status": 204}]})
    )
    request = mobile_app_assignment_delete_request("app-1", "a1")

    async with GraphClient(lambda: "token") as client:
        (response,) = await GraphTransport(client).submit_batch([request])

    assert response.id == "1"
    assert _sent_ids(route.calls.last.request) == ["1"]
    assert request.request_id is None

@pytest.mark.asyncio
async def test_items_without_response_are_omitted(respx_mock: respx.Router) -> None:
    respx_mock.post(BATCH_URL).mock(
        return_value=httpx.Response(200, json={"responses": [{"id": "1", "status": 204}]})
    )
    async with GraphClient(lambda: "token") as client:
        responses = await GraphTransport(client).submit_batch(_deletes("a1", "a2"))

    assert [response.id for response in responses] == ["1"]


@pytest.mark.asyncio
async def test_whole_batch_rejection_raises(respx_mock: respx.Router) -> None:
    respx_mock.post(BATCH_URL).mock(
        return_value=httpx.Response(403, json={"error": {"code": "Forbidden", "message": "Denied"}})
    )
    async with GraphClient(lambda: "token") as client:
        with pytest.raises(PermissionError) as excinfo:
            await GraphTransport(client).submit_batch(_deletes("a1"))

    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Denied"


@pytest.mark.asyncio
async def test_post_sends_assign_body(respx_mock: respx.Router) -> None:
    route = respx_mock.post(ASSIGN_URL).mock(return_value=httpx.Response(204))
    body = {"mobileAppAssignments": [{"intent": "required"}]}

    async with GraphClient(lambda: "token") as client:
        await GraphTransport(client).post(mobile_app_assign_path("app-1"), body)

    assert json.loads(route.calls.last.request.content) == body


@pytest.mark.asyncio
async def test_post_error_is_mapped(respx_mock: respx.Router) -> None:
    respx_mock.post(ASSIGN_URL).mock(
        return_value=httpx.Response(
            400,
            json={"error": {"code": "BadRequest", "message": "Intent not supported"}},
        )
    )
    async with GraphClient(lambda: "token") as client:
        with pytest.raises(GraphAPIError) as excinfo:
            await GraphTransport(client).post(mobile_app_assign_path("app-1"), {"mobileAppAssignments": []})

    error = excinfo.value
    assert error.status_code == 400
    assert error.category is GraphErrorCategory.VALIDATION
    assert error.code == "BadRequest"


@pytest.mark.respx(assert_all_called=False)
@pytest.mark.asyncio
async def test_cancelled_token_short_circuits(respx_mock: respx.Router) -> None:
    route = respx_mock.post(BATCH_URL)
    source = CancellationTokenSource()
    source.cancel(reason="user")

    async with GraphClient(lambda: "token") as client:
        with pytest.raises(CancellationError):
            await GraphTransport(client).submit_batch(
                _deletes("a1"),
                cancellation_token=source.token,
            )

    assert not route.called
