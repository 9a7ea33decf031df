"""Shared utility helpers for the Intune assignment reconciler."""

from .cancellation import CancellationError, CancellationToken, CancellationTokenSource
from .logging import LoggingOptions, configure_logging, get_logger, log_file_path
from .progress import (
    ProgressCallback,
    ProgressReporter,
    ProgressTracker,
    ProgressUpdate,
)

__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "log_file_path",
    "CancellationToken",
    "CancellationTokenSource",
    "CancellationError",
    "ProgressUpdate",
    "ProgressTracker",
    "ProgressReporter",
    "ProgressCallback",
]
