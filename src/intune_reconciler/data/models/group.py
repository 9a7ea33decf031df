from __future__ import annotations

from pydantic import AliasChoices, Field

from .assignment import AssignmentTargetKind
from .common import GraphResource


ALL_DEVICES_GROUP_ID = "intune-all-devices"
ALL_USERS_GROUP_ID = "intune-all-users"

_BUILTIN_KINDS = {
    ALL_DEVICES_GROUP_ID: AssignmentTargetKind.ALL_DEVICES,
    ALL_USERS_GROUP_ID: AssignmentTargetKind.ALL_USERS,
}


class DirectoryGroup(GraphResource):
    display_name: str = Field(
        alias="displayName",
        validation_alias=AliasChoices("displayName", "name"),
    )
    description: str | None = None
    member_count: int | None = Field(default=None, alias="memberCount")

    @property
    def is_builtin(self) -> bool:
        return self.id in _BUILTIN_KINDS

    @property
    def target_kind(self) -> AssignmentTargetKind:
        return _BUILTIN_KINDS.get(self.id, AssignmentTargetKind.GROUP)

    @property
    def target_group_id(self) -> str | None:
        """Group id sent on the wire; built-in targets carry none."""
        return None if self.is_builtin else self.id


def builtin_targets() -> list[DirectoryGroup]:
    """Pseudo groups representing the tenant-wide built-in targets."""

    return [
        DirectoryGroup(
            id=ALL_DEVICES_GROUP_ID,
            display_name="All Devices",
            description="Assign to all enrolled devices",
        ),
        DirectoryGroup(
            id=ALL_USERS_GROUP_ID,
            display_name="All Users",
            description="Assign to all licensed users",
        ),
    ]


__all__ = [
    "ALL_DEVICES_GROUP_ID",
    "ALL_USERS_GROUP_ID",
    "DirectoryGroup",
    "builtin_targets",
]
