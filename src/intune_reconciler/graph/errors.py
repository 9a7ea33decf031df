from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class GraphErrorCategory(str, Enum):
    PERMISSION = "permission"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    UNKNOWN = "unknown"


def category_for_status(status: int) -> GraphErrorCategory:
    if status == 401:
        return GraphErrorCategory.AUTHENTICATION
    if status == 403:
        return GraphErrorCategory.PERMISSION
    if status == 404:
        return GraphErrorCategory.NOT_FOUND
    if status == 409:
        return GraphErrorCategory.CONFLICT
    if status == 429:
        return GraphErrorCategory.RATE_LIMIT
    if status == 400:
        return GraphErrorCategory.VALIDATION
    return GraphErrorCategory.UNKNOWN


@dataclass(slots=True)
class GraphAPIError(Exception):
    message: str
    category: GraphErrorCategory = GraphErrorCategory.UNKNOWN
    status_code: int | None = None
    code: str | None = None
    retry_after: str | None = None
    inner_error: Exception | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.category is GraphErrorCategory.AUTHENTICATION:
            return "Sign in again with an account that can manage Intune apps."
        if self.category is GraphErrorCategory.PERMISSION:
            return "Grant DeviceManagementApps.ReadWrite.All and Group.Read.All to the app registration."
        if self.category is GraphErrorCategory.RATE_LIMIT:
            if self.retry_after:
                return f"Microsoft Graph throttled the request. Retry after {self.retry_after} seconds."
            return "Microsoft Graph throttled the request. Retry shortly."
        if self.category is GraphErrorCategory.NETWORK:
            return "Check your internet connection and try again."
        if self.category is GraphErrorCategory.CONFLICT:
            return "The assignment changed remotely. Refresh and review the latest state."
        if self.category is GraphErrorCategory.VALIDATION:
            return "Intune rejected the assignment payload. Review intent and target."
        return None

    @property
    def is_retriable(self) -> bool:
        if self.category in {GraphErrorCategory.RATE_LIMIT, GraphErrorCategory.NETWORK}:
            return True
        if self.status_code and 500 <= self.status_code <= 599:
            return True
        return False


class RateLimitError(GraphAPIError):
    def __init__(
        self, message: str = "Rate limited", retry_after: str | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=GraphErrorCategory.RATE_LIMIT,
            status_code=429,
            retry_after=retry_after,
        )


class AuthenticationError(GraphAPIError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(
            message=message,
            category=GraphErrorCategory.AUTHENTICATION,
            status_code=401,
        )


class PermissionError(GraphAPIError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(
            message=message,
            category=GraphErrorCategory.PERMISSION,
            status_code=403,
        )


__all__ = [
    "GraphAPIError",
    "GraphErrorCategory",
    "RateLimitError",
    "AuthenticationError",
    "PermissionError",
    "category_for_status",
]
