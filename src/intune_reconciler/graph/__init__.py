"""Microsoft Graph access for assignment reconciliation."""

from .client import GraphClient, GraphClientConfig, TokenProvider
from .errors import (
    AuthenticationError,
    GraphAPIError,
    GraphErrorCategory,
    PermissionError,
    RateLimitError,
)
from .rate_limiter import RateLimiter
from .requests import (
    GraphRequest,
    mobile_app_assign_body,
    mobile_app_assign_path,
    mobile_app_assignment_delete_request,
)
from .transport import BatchResponse, GraphTransport, PartialBatchError, RemoteTransport

__all__ = [
    "GraphClient",
    "GraphClientConfig",
    "TokenProvider",
    "GraphAPIError",
    "GraphErrorCategory",
    "RateLimitError",
    "AuthenticationError",
    "PermissionError",
    "RateLimiter",
    "GraphRequest",
    "mobile_app_assign_body",
    "mobile_app_assign_path",
    "mobile_app_assignment_delete_request",
    "BatchResponse",
    "GraphTransport",
    "PartialBatchError",
    "RemoteTransport",
]
