from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence


GraphMethod = Literal["GET", "POST", "PATCH", "DELETE", "PUT"]
BETA_VERSION = "beta"

MOBILE_APPS_PATH = "/deviceAppManagement/mobileApps"


@dataclass(slots=True)
class GraphRequest:
    """Structured representation of a Microsoft Graph request."""

    method: GraphMethod
    url: str
    request_id: str | None = None
    headers: dict[str, str] | None = None
    body: Any | None = None


def mobile_app_assign_path(app_id: str) -> str:
    return f"{MOBILE_APPS_PATH}/{app_id}/assign"


def mobile_app_assign_body(
    assignments: Sequence[dict[str, Any]],
) -> dict[str, Any]:
    return {"mobileAppAssignments": list(assignments)}


def mobile_app_assignment_delete_request(
    app_id: str,
    assignment_id: str,
    *,
    request_id: str | None = None,
) -> GraphRequest:
    path = f"{MOBILE_APPS_PATH}/{app_id}/assignments/{assignment_id}"
    return GraphRequest(method="DELETE", url=path, request_id=request_id)


def app_id_from_path(url: str) -> str | None:
    """Extract the mobile app id from an assign/assignments URL."""

    if "/mobileApps/" not in url:
        return None
    tail = url.split("/mobileApps/", maxsplit=1)[-1]
    return tail.split("/", maxsplit=1)[0] or None


def graph_request_to_batch_entry(
    request: GraphRequest,
    *,
    request_id: str,
) -> dict[str, Any]:
    effective_id = request.request_id or request_id
    url = request.url if request.url.startswith("/") else "/" + request.url
    entry: dict[str, Any] = {
        "id": effective_id,
        "method": request.method,
        "url": url,
    }
    if request.headers:
        entry["headers"] = request.headers
    if request.body is not None and request.method in {"POST", "PATCH", "PUT"}:
        entry["body"] = request.body
    return entry


__all__ = [
    "BETA_VERSION",
    "GraphMethod",
    "GraphRequest",
    "app_id_from_path",
    "graph_request_to_batch_entry",
    "mobile_app_assign_body",
    "mobile_app_assign_path",
    "mobile_app_assignment_delete_request",
]
