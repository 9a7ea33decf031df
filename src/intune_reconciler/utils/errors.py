from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import httpx

from intune_reconciler.graph.errors import GraphAPIError, GraphErrorCategory


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class ErrorDescriptor:
    headline: str
    detail: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    transient: bool = False
    suggestion: str | None = None

    def as_message(self) -> str:
        return f"{self.headline} {self.detail}".strip()


def describe_exception(error: BaseException) -> ErrorDescriptor:
    """Turn a transport failure into text suitable for a save report."""

    graph_error = _locate_graph_error(error)
    if graph_error is not None:
        return ErrorDescriptor(
            headline=_graph_headline(graph_error),
            detail=_format_graph_detail(graph_error),
            severity=(
                ErrorSeverity.WARNING if graph_error.is_retriable else ErrorSeverity.ERROR
            ),
            transient=graph_error.is_retriable,
            suggestion=graph_error.recovery_suggestion,
        )

    if isinstance(error, httpx.TimeoutException):
        return ErrorDescriptor(
            headline="Timed out contacting Microsoft Graph.",
            detail=f"{type(error).__name__}: {error}",
            severity=ErrorSeverity.WARNING,
            transient=True,
            suggestion="Check your network connection and retry shortly.",
        )

    if isinstance(error, asyncio.TimeoutError):
        return ErrorDescriptor(
            headline="Operation timed out before Microsoft Graph responded.",
            detail="asyncio.TimeoutError",
            severity=ErrorSeverity.WARNING,
            transient=True,
        )

    return ErrorDescriptor(
        headline="Operation failed.",
        detail=f"{type(error).__name__}: {error}",
    )


def _locate_graph_error(error: BaseException) -> GraphAPIError | None:
    current: BaseException | None = error
    visited: set[int] = set()
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        if isinstance(current, GraphAPIError):
            return current
        current = current.__cause__ or current.__context__
    return None


def _graph_headline(error: GraphAPIError) -> str:
    match error.category:
        case GraphErrorCategory.RATE_LIMIT:
            return "Microsoft Graph throttled the request."
        case GraphErrorCategory.NETWORK:
            return "Network issue contacting Microsoft Graph."
        case GraphErrorCategory.AUTHENTICATION:
            return "Authentication is required to call Microsoft Graph."
        case GraphErrorCategory.PERMISSION:
            return "The signed-in account lacks required Graph permissions."
        case GraphErrorCategory.CONFLICT:
            return "The requested change conflicts with existing data."
        case GraphErrorCategory.VALIDATION:
            return "Microsoft Graph rejected the request payload."
        case _:
            return "Microsoft Graph request failed."


def _format_graph_detail(error: GraphAPIError) -> str:
    if error.code:
        return f"{error.code}: {error}"
    return str(error)


__all__ = [
    "ErrorDescriptor",
    "ErrorSeverity",
    "describe_exception",
]
