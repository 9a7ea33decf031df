from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, Field

from .common import GraphResource


class AssignmentFilterPlatform(StrEnum):
    UNKNOWN = "unknown"
    ANDROID = "android"
    IOS = "iOS"
    MACOS = "macOS"
    WINDOWS = "windows10AndLater"

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            normalised = value.lower()
            for member in cls:
                if member.value.lower() == normalised:
                    return member
            return cls.UNKNOWN
        return None


class AssignmentFilter(GraphResource):
    display_name: str = Field(
        alias="displayName",
        validation_alias=AliasChoices("displayName", "name"),
    )
    description: str | None = None
    platform: AssignmentFilterPlatform | None = None


__all__ = ["AssignmentFilter", "AssignmentFilterPlatform"]
