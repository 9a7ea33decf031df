from __future__ import annotations

import asyncio

import pytest

from intune_reconciler.utils import CancellationError, CancellationTokenSource


def test_cancel_notifies_once() -> None:
    source = CancellationTokenSource()
    seen: list[str | None] = []
    source.token.on_cancel(lambda token: seen.append(token.reason))

    assert source.cancel(reason="user")
    assert not source.cancel(reason="again")

    assert source.token.cancelled
    assert seen == ["user"]
    with pytest.raises(CancellationError) as excinfo:
        source.token.raise_if_cancelled()
    assert excinfo.value.reason == "user"


def test_cancellation_error_is_not_a_plain_exception() -> None:
    assert issubclass(CancellationError, asyncio.CancelledError)
    assert not issubclass(CancellationError, Exception)


def test_linked_source_follows_parent() -> None:
    parent = CancellationTokenSource()
    with CancellationTokenSource(linked_token=parent.token) as child_source_token:
        parent.cancel(reason="shutdown")
        assert child_source_token.cancelled
        assert child_source_token.reason == "shutdown"


def test_late_subscriber_fires_immediately() -> None:
    source = CancellationTokenSource()
    source.cancel()
    calls: list[bool] = []

    unsubscribe = source.token.on_cancel(lambda token: calls.append(token.cancelled))
    unsubscribe()

    assert calls == [True]
