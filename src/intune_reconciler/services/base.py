from __future__ import annotations

from enum import StrEnum
from typing import Callable, Generic, TypeVar

from intune_reconciler.utils import get_logger


logger = get_logger(__name__)

T_co = TypeVar("T_co", covariant=True)


class MutationStatus(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


class EventHook(Generic[T_co]):
    """Synchronous observer list; subscribers are called in registration order."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[[T_co], None]] = []

    def subscribe(self, callback: Callable[[T_co], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:  # pragma: no cover - already removed
                pass

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, payload: T_co) -> None:
        for callback in list(self._subscribers):
            try:
                callback(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Event subscriber failed", callback=repr(callback))


__all__ = ["EventHook", "MutationStatus"]
