from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, Field

from .assignment import MobileAppAssignment
from .common import GraphResource


ODATA_PREFIX = "#microsoft.graph."


class AppCategory(StrEnum):
    """Application type derived from the ``@odata.type`` suffix."""

    UNKNOWN = "unknown"
    # iOS
    IOS_STORE = "iosStoreApp"
    IOS_LOB = "iosLobApp"
    IOS_VPP = "iosVppApp"
    MANAGED_IOS_STORE = "managedIOSStoreApp"
    MANAGED_IOS_LOB = "managedIOSLobApp"
    # macOS
    MACOS_LOB = "macOSLobApp"
    MACOS_VPP = "macOsVppApp"
    MACOS_DMG = "macOSDmgApp"
    MACOS_PKG = "macOSPkgApp"
    MACOS_OFFICE_SUITE = "macOSOfficeSuiteApp"
    # Windows
    WIN32_LOB = "win32LobApp"
    WINGET = "winGetApp"
    WINDOWS_MSI = "windowsMobileMSI"
    WINDOWS_UNIVERSAL_APPX = "windowsUniversalAppX"
    WINDOWS_WEB = "windowsWebApp"
    WINDOWS_STORE = "windowsStoreApp"
    OFFICE_SUITE = "officeSuiteApp"
    # Android
    ANDROID_STORE = "androidStoreApp"
    ANDROID_LOB = "androidLobApp"
    ANDROID_MANAGED_STORE = "androidManagedStoreApp"
    # Cross-platform
    WEB = "webApp"

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            normalised = value.lower()
            for member in cls:
                if member.value.lower() == normalised:
                    return member
        return None

    @classmethod
    def from_odata_type(cls, odata_type: str | None) -> "AppCategory":
        if not odata_type:
            return cls.UNKNOWN
        suffix = odata_type.removeprefix(ODATA_PREFIX).lstrip("#")
        try:
            return cls(suffix)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_vpp(self) -> bool:
        return self in {AppCategory.IOS_VPP, AppCategory.MACOS_VPP}

    @property
    def is_web(self) -> bool:
        return self in {AppCategory.WEB, AppCategory.WINDOWS_WEB}


class MobileApp(GraphResource):
    display_name: str = Field(
        alias="displayName",
        validation_alias=AliasChoices("displayName", "name"),
    )
    odata_type: str | None = Field(default=None, alias="@odata.type")
    assignments: list[MobileAppAssignment] | None = None

    @property
    def category(self) -> AppCategory:
        return AppCategory.from_odata_type(self.odata_type)


__all__ = ["AppCategory", "MobileApp", "ODATA_PREFIX"]
