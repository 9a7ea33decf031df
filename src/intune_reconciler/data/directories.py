"""Read-only lookups injected into the edit session.

The reconciler never fetches reference data itself; callers hand over
whatever they already have loaded (typically from their own cache).
"""

from __future__ import annotations

from typing import Generic, Iterable, Iterator, TypeVar

from intune_reconciler.data.models import (
    AssignmentFilter,
    DirectoryGroup,
    GraphResource,
)


ResourceT = TypeVar("ResourceT", bound=GraphResource)


class _Directory(Generic[ResourceT]):
    def __init__(self, items: Iterable[ResourceT] = ()) -> None:
        self._items: dict[str, ResourceT] = {}
        for item in items:
            self._items[item.id] = item

    def get(self, resource_id: str | None) -> ResourceT | None:
        if resource_id is None:
            return None
        return self._items.get(resource_id)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._items

    def __iter__(self) -> Iterator[ResourceT]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)


class GroupDirectory(_Directory[DirectoryGroup]):
    def display_name(self, group_id: str | None) -> str | None:
        group = self.get(group_id)
        return group.display_name if group is not None else None

    def member_count(self, group_id: str | None) -> int | None:
        group = self.get(group_id)
        return group.member_count if group is not None else None


class FilterDirectory(_Directory[AssignmentFilter]):
    def display_name(self, filter_id: str | None) -> str | None:
        assignment_filter = self.get(filter_id)
        return assignment_filter.display_name if assignment_filter is not None else None


__all__ = ["FilterDirectory", "GroupDirectory"]
