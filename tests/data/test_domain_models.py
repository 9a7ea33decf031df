from __future__ import annotations

import pytest
from pydantic import ValidationError

from intune_reconciler.data.directories import FilterDirectory, GroupDirectory
from intune_reconciler.data.models import (
    ALL_USERS_GROUP_ID,
    AppCategory,
    AssignmentFilterMode,
    AssignmentFilterPlatform,
    AssignmentIntent,
    AssignmentTargetKind,
    MobileApp,
    MobileAppAssignment,
    builtin_targets,
)

from tests.factories import make_filter, make_group


def test_assignment_round_trips_graph_aliases() -> None:
    payload = {
        "id": "assignment-1",
        "intent": "availableWithoutEnrollment",
        "target": {
            "@odata.type": "#microsoft.graph.groupAssignmentTarget",
            "groupId": "group-1",
            "deviceAndAppManagementAssignmentFilterId": "filter-1",
            "deviceAndAppManagementAssignmentFilterType": "exclude",
        },
        "settings": {"@odata.type": "#microsoft.graph.iosStoreAppAssignmentSettings"},
    }
    assignment = MobileAppAssignment.from_graph(payload)

    assert assignment.intent is AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT
    assert assignment.target.kind is AssignmentTargetKind.GROUP
    assert assignment.target.identity == "group-1"
    assert assignment.target.filter_mode is AssignmentFilterMode.EXCLUDE
    assert assignment.to_graph() == payload


def test_builtin_target_identity_and_name() -> None:
    assignment = MobileAppAssignment.from_graph(
        {
            "id": "assignment-2",
            "intent": "required",
            "target": {
                "@odata.type": "#microsoft.graph.allLicensedUsersAssignmentTarget",
                "deviceAndAppManagementAssignmentFilterType": "none",
            },
        }
    )

    target = assignment.target
    assert target.kind.is_builtin and target.kind.is_user_based
    assert target.identity == AssignmentTargetKind.ALL_LICENSED_USERS.value
    assert target.display_name == "All Licensed Users"
    assert target.filter_mode is None


def test_unknown_intent_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        MobileAppAssignment.from_graph(
            {
                "id": "assignment-3",
                "intent": "sideload",
                "target": {"@odata.type": "#microsoft.graph.allDevicesAssignmentTarget"},
            }
        )

    assert "intent" in str(excinfo.value)


@pytest.mark.parametrize(
    ("odata_type", "expected"),
    [
        ("#microsoft.graph.win32LobApp", AppCategory.WIN32_LOB),
        ("#microsoft.graph.macOsVppApp", AppCategory.MACOS_VPP),
        ("#microsoft.graph.macOSVppApp", AppCategory.MACOS_VPP),
        ("#microsoft.graph.webApp", AppCategory.WEB),
        ("#microsoft.graph.somethingNew", AppCategory.UNKNOWN),
        (None, AppCategory.UNKNOWN),
    ],
)
def test_app_category_from_odata_type(odata_type: str | None, expected: AppCategory) -> None:
    app = MobileApp.from_graph({"id": "app-1", "displayName": "App", "@odata.type": odata_type})

    assert app.category is expected


def test_app_category_flags() -> None:
    assert AppCategory.IOS_VPP.is_vpp
    assert AppCategory.WINDOWS_WEB.is_web
    assert not AppCategory.WIN32_LOB.is_vpp


def test_builtin_groups_map_to_target_kinds() -> None:
    devices, users = builtin_targets()

    assert devices.target_kind is AssignmentTargetKind.ALL_DEVICES
    assert users.id == ALL_USERS_GROUP_ID
    assert users.target_group_id is None
    assert make_group("group-1").target_kind is AssignmentTargetKind.GROUP
    assert make_group("group-1").target_group_id == "group-1"


def test_directories_resolve_names() -> None:
    groups = GroupDirectory([make_group("group-1", "Pilot", member_count=4)])
    filters = FilterDirectory([make_filter("filter-1", "Corporate laptops")])

    assert groups.display_name("group-1") == "Pilot"
    assert groups.member_count("group-1") == 4
    assert groups.display_name(None) is None
    assert "group-1" in groups and len(groups) == 1
    assert filters.display_name("filter-1") == "Corporate laptops"
    assert filters.get("filter-1").platform is AssignmentFilterPlatform.WINDOWS
    assert filters.display_name("missing") is None


def test_filter_platform_tolerates_unknown_values() -> None:
    assert AssignmentFilterPlatform("IOS") is AssignmentFilterPlatform.IOS
    assert AssignmentFilterPlatform("tvOS") is AssignmentFilterPlatform.UNKNOWN
