"""Pydantic models for the Graph resources the reconciler reads and writes."""

from .application import AppCategory, MobileApp
from .assignment import (
    AssignmentFilterMode,
    AssignmentIntent,
    AssignmentTarget,
    AssignmentTargetKind,
    MobileAppAssignment,
    target_identity,
)
from .common import GraphBaseModel, GraphResource
from .filters import AssignmentFilter, AssignmentFilterPlatform
from .group import (
    ALL_DEVICES_GROUP_ID,
    ALL_USERS_GROUP_ID,
    DirectoryGroup,
    builtin_targets,
)

__all__ = [
    "GraphBaseModel",
    "GraphResource",
    "AppCategory",
    "MobileApp",
    "AssignmentFilterMode",
    "AssignmentIntent",
    "AssignmentTarget",
    "AssignmentTargetKind",
    "MobileAppAssignment",
    "target_identity",
    "AssignmentFilter",
    "AssignmentFilterPlatform",
    "ALL_DEVICES_GROUP_ID",
    "ALL_USERS_GROUP_ID",
    "DirectoryGroup",
    "builtin_targets",
]
