from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping

from intune_reconciler.data.models import AssignmentFilterMode, AssignmentTarget


@dataclass(frozen=True, slots=True)
class AssignmentKey:
    """Composite key of an existing assignment: owning app plus assignment id."""

    app_id: str
    assignment_id: str

    def __str__(self) -> str:
        return f"{self.app_id}_{self.assignment_id}"


@dataclass(frozen=True, slots=True)
class FilterSelection:
    """Normalised ``(filter id, mode)`` pair. Both fields are ``None`` for "no filter"."""

    filter_id: str | None = None
    mode: AssignmentFilterMode | None = None

    @classmethod
    def normalized(
        cls,
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None = None,
    ) -> "FilterSelection":
        trimmed = filter_id.strip() if isinstance(filter_id, str) else None
        if not trimmed:
            return cls()
        # A "none" or unrecognised mode on a filtered target means include.
        parsed = AssignmentFilterMode.parse(mode)
        if parsed is None:
            parsed = AssignmentFilterMode.INCLUDE
        return cls(filter_id=trimmed, mode=parsed)

    @classmethod
    def from_target(cls, target: AssignmentTarget) -> "FilterSelection":
        return cls.normalized(target.assignment_filter_id, target.assignment_filter_type)

    @property
    def is_empty(self) -> bool:
        return self.filter_id is None

    def __bool__(self) -> bool:
        return not self.is_empty


NO_FILTER = FilterSelection()


class FilterOverrideStore:
    """Filter edits keyed by assignment, stored only when they differ from the original."""

    def __init__(self) -> None:
        self._overrides: dict[AssignmentKey, FilterSelection] = {}

    def set_override(
        self,
        key: AssignmentKey,
        original: FilterSelection,
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None = None,
    ) -> bool:
        """Record an edit; returns whether the stored state changed."""

        desired = FilterSelection.normalized(filter_id, mode)
        baseline = FilterSelection.normalized(original.filter_id, original.mode)
        if desired == baseline:
            return self._overrides.pop(key, None) is not None
        if self._overrides.get(key) == desired:
            return False
        self._overrides[key] = desired
        return True

    def effective(self, key: AssignmentKey, original: FilterSelection) -> FilterSelection:
        override = self._overrides.get(key)
        if override is not None:
            return override
        return FilterSelection.normalized(original.filter_id, original.mode)

    def get(self, key: AssignmentKey) -> FilterSelection | None:
        return self._overrides.get(key)

    def discard(self, key: AssignmentKey) -> bool:
        return self._overrides.pop(key, None) is not None

    def merge(self, overrides: Mapping[AssignmentKey, FilterSelection]) -> None:
        for key, selection in overrides.items():
            self._overrides[key] = FilterSelection.normalized(selection.filter_id, selection.mode)

    def clear(self) -> None:
        self._overrides.clear()

    def keys(self) -> set[AssignmentKey]:
        return set(self._overrides)

    def items(self) -> list[tuple[AssignmentKey, FilterSelection]]:
        return list(self._overrides.items())

    def __contains__(self, key: object) -> bool:
        return key in self._overrides

    def __len__(self) -> int:
        return len(self._overrides)

    def __iter__(self) -> Iterator[AssignmentKey]:
        return iter(list(self._overrides))


__all__ = ["AssignmentKey", "FilterOverrideStore", "FilterSelection", "NO_FILTER"]
