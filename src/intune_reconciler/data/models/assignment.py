from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field

from .common import GraphBaseModel, GraphResource


class AssignmentIntent(StrEnum):
    """Deployment action requested by an assignment.

    Declaration order is the canonical order used wherever a list of
    intents is presented or a fallback intent is picked.
    """

    AVAILABLE = "available"
    REQUIRED = "required"
    UNINSTALL = "uninstall"
    AVAILABLE_WITHOUT_ENROLLMENT = "availableWithoutEnrollment"

    @property
    def display_name(self) -> str:
        match self:
            case AssignmentIntent.AVAILABLE:
                return "Available"
            case AssignmentIntent.REQUIRED:
                return "Required"
            case AssignmentIntent.UNINSTALL:
                return "Uninstall"
            case AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT:
                return "Available without enrollment"


class AssignmentFilterMode(StrEnum):
    """Filter mode for assignment targeting.

    - INCLUDE: Include only devices that match the filter
    - EXCLUDE: Exclude devices that match the filter

    Graph reports ``"none"`` when no filter is attached; :meth:`parse`
    maps that (and anything unrecognised) to ``None``.
    """

    INCLUDE = "include"
    EXCLUDE = "exclude"

    @classmethod
    def parse(cls, value: object) -> "AssignmentFilterMode | None":
        if isinstance(value, AssignmentFilterMode):
            return value
        if not isinstance(value, str):
            return None
        normalised = value.strip().lower()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class AssignmentTargetKind(StrEnum):
    GROUP = "#microsoft.graph.groupAssignmentTarget"
    EXCLUSION_GROUP = "#microsoft.graph.exclusionGroupAssignmentTarget"
    ALL_DEVICES = "#microsoft.graph.allDevicesAssignmentTarget"
    ALL_USERS = "#microsoft.graph.allUsersAssignmentTarget"
    ALL_LICENSED_USERS = "#microsoft.graph.allLicensedUsersAssignmentTarget"

    @property
    def requires_group_id(self) -> bool:
        return self in {AssignmentTargetKind.GROUP, AssignmentTargetKind.EXCLUSION_GROUP}

    @property
    def is_builtin(self) -> bool:
        return not self.requires_group_id

    @property
    def is_user_based(self) -> bool:
        return self in {
            AssignmentTargetKind.ALL_USERS,
            AssignmentTargetKind.ALL_LICENSED_USERS,
        }

    @property
    def display_name(self) -> str:
        match self:
            case AssignmentTargetKind.GROUP:
                return "Group"
            case AssignmentTargetKind.EXCLUSION_GROUP:
                return "Exclusion Group"
            case AssignmentTargetKind.ALL_DEVICES:
                return "All Devices"
            case AssignmentTargetKind.ALL_USERS:
                return "All Users"
            case AssignmentTargetKind.ALL_LICENSED_USERS:
                return "All Licensed Users"


def target_identity(group_id: str | None, kind: AssignmentTargetKind) -> str:
    """Identity of a target for grouping: the group id, or the built-in kind."""

    if kind.requires_group_id and group_id:
        return group_id
    return kind.value


class AssignmentTarget(GraphBaseModel):
    kind: AssignmentTargetKind = Field(alias="@odata.type")
    group_id: str | None = Field(default=None, alias="groupId")
    # Not part of the Graph schema; populated locally from the group directory.
    group_name: str | None = Field(default=None, alias="groupName")
    assignment_filter_id: str | None = Field(
        default=None,
        alias="deviceAndAppManagementAssignmentFilterId",
    )
    assignment_filter_type: str | None = Field(
        default=None,
        alias="deviceAndAppManagementAssignmentFilterType",
    )

    @property
    def identity(self) -> str:
        return target_identity(self.group_id, self.kind)

    @property
    def display_name(self) -> str:
        if self.group_name:
            return self.group_name
        if self.kind.requires_group_id and self.group_id:
            return self.group_id
        return self.kind.display_name

    @property
    def filter_mode(self) -> AssignmentFilterMode | None:
        return AssignmentFilterMode.parse(self.assignment_filter_type)


class MobileAppAssignment(GraphResource):
    intent: AssignmentIntent
    target: AssignmentTarget
    settings: dict[str, Any] | None = None


__all__ = [
    "AssignmentFilterMode",
    "AssignmentIntent",
    "AssignmentTarget",
    "AssignmentTargetKind",
    "MobileAppAssignment",
    "target_identity",
]
