from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProgressUpdate:
    """Snapshot of save progress, suitable for driving a progress bar."""

    total: int
    completed: int
    failed: int
    phase: str | None = None
    current: str | None = None

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def remaining(self) -> int:
        return max(self.total - self.processed, 0)

    @property
    def percent_complete(self) -> float:
        if self.total <= 0:
            return 0.0
        return min((self.processed / self.total) * 100, 100.0)


class ProgressReporter(Protocol):
    """Protocol describing callables that consume progress updates."""

    def __call__(self, update: ProgressUpdate) -> None: ...


class ProgressTracker:
    """Mutable helper publishing monotonic ``(completed, failed)`` counters.

    Counters only ever grow; the total may shrink when planned work is
    abandoned (for example a recreation whose delete failed) so that the
    bar still reaches 100%.
    """

    __slots__ = ("_total", "_completed", "_failed", "_phase", "_current", "_callback")

    def __init__(self, callback: ProgressReporter | None = None) -> None:
        self._total = 0
        self._completed = 0
        self._failed = 0
        self._phase: str | None = None
        self._current: str | None = None
        self._callback = callback

    def start(self, *, total: int, phase: str | None = None) -> ProgressUpdate:
        self._total = max(total, 0)
        self._completed = 0
        self._failed = 0
        self._phase = phase
        self._current = None
        return self._emit()

    def enter_phase(self, phase: str, *, current: str | None = None) -> ProgressUpdate:
        self._phase = phase
        self._current = current
        return self._emit()

    def succeeded(self, *, count: int = 1, current: str | None = None) -> ProgressUpdate:
        self._completed += max(count, 0)
        if current is not None:
            self._current = current
        return self._emit()

    def failed(self, *, count: int = 1, current: str | None = None) -> ProgressUpdate:
        self._failed += max(count, 0)
        if current is not None:
            self._current = current
        return self._emit()

    def abandon(self, *, count: int = 1) -> ProgressUpdate:
        self._total = max(self._total - max(count, 0), self._completed + self._failed)
        return self._emit()

    def snapshot(self) -> ProgressUpdate:
        return ProgressUpdate(
            total=self._total,
            completed=self._completed,
            failed=self._failed,
            phase=self._phase,
            current=self._current,
        )

    def _emit(self) -> ProgressUpdate:
        update = self.snapshot()
        callback = self._callback
        if callback is not None:
            try:
                callback(update)
            except Exception:  # pragma: no cover - progress consumers must not break a save
                logger.exception("Progress callback raised an exception.")
        return update


ProgressCallback = Callable[[ProgressUpdate], None]


__all__ = ["ProgressUpdate", "ProgressTracker", "ProgressReporter", "ProgressCallback"]
