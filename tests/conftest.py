from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from intune_reconciler.graph.rate_limiter import RateLimiter
from intune_reconciler.utils import LoggingOptions, configure_logging


@pytest.fixture(scope="session", autouse=True)
def _console_logging() -> None:
    """Keep test runs from writing log files into the user cache directory."""

    configure_logging(LoggingOptions(level="DEBUG", file_sink=False))


@pytest.fixture
def no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make Graph retries immediate."""

    monkeypatch.setattr(RateLimiter, "base_retry_delay", 0.0)
    monkeypatch.setattr(RateLimiter, "max_retry_delay", 0.0)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Strip INTUNE_RECONCILER_* variables for settings tests."""

    for name in list(os.environ):
        if name.startswith("INTUNE_RECONCILER_"):
            monkeypatch.delenv(name, raising=False)
    yield
